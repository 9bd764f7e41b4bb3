# app/campaigns/registry.py
from typing import Dict
from app.campaigns.sender import CampaignConfig
from app.email.templates import (
    FEEDBACK_PLACEHOLDER, launch_announcement_content, product_update_content
)
from app.errors import NotFoundError
from app.models.email import EmailContent
from app.models.newsletter import Subscriber
from app.utils.tokens import generate_feedback_page_url

LAUNCH_ANNOUNCEMENT = "launch_announcement_2025_06"
JANUARY_2026_UPDATE = "launch_announcement_2026_01"

def feedback_personalizer(campaign_id: str):
    """Replace the feedback placeholder with a per-user signed feedback link"""
    def personalize(content: EmailContent, user: Subscriber) -> EmailContent:
        feedback_url = generate_feedback_page_url(user.id, campaign_id)
        return EmailContent(
            subject=content.subject,
            html=content.html.replace(FEEDBACK_PLACEHOLDER, feedback_url),
            text=content.text.replace(FEEDBACK_PLACEHOLDER, feedback_url),
        )
    return personalize

CAMPAIGNS: Dict[str, CampaignConfig] = {
    LAUNCH_ANNOUNCEMENT: CampaignConfig(
        campaign_id=LAUNCH_ANNOUNCEMENT,
        get_content=launch_announcement_content,
    ),
    JANUARY_2026_UPDATE: CampaignConfig(
        campaign_id=JANUARY_2026_UPDATE,
        get_content=product_update_content,
        personalize=feedback_personalizer(JANUARY_2026_UPDATE),
    ),
}

def is_valid_campaign_id(campaign_id: str) -> bool:
    return campaign_id in CAMPAIGNS

def get_campaign(campaign_id: str) -> CampaignConfig:
    if not is_valid_campaign_id(campaign_id):
        raise NotFoundError(f"Unknown campaign: {campaign_id}")
    return CAMPAIGNS[campaign_id]
