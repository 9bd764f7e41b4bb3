# app/campaigns/__init__.py
from .sender import CampaignConfig, MarketingCampaignSender
from .registry import get_campaign, is_valid_campaign_id

__all__ = ["CampaignConfig", "MarketingCampaignSender", "get_campaign", "is_valid_campaign_id"]
