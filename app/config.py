from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    # AWS / SES
    aws_region: str = "us-east-1"
    from_email: str = "newsletter@example.com"
    support_email: str = "support@example.com"
    ses_configuration_set: Optional[str] = None
    ses_transactional_configuration_set: Optional[str] = None
    sns_ses_bounces_topic_arn: Optional[str] = None

    # Database Settings
    database_url: Optional[str] = None

    # App Settings
    frontend_url: str = "http://localhost:3000"
    backend_url: str = "http://localhost:8000"
    jwt_secret_key: str = "change-me"
    cron_secret: str = "change-me"
    admin_email: str = "admin@example.com"
    default_subject_id: int = 1
    environment: str = "development"

    # Bulk delivery (SES allows 14 sends/second on a default account)
    bulk_batch_size: int = 14
    bulk_db_fetch_size: int = 500
    bulk_max_retries: int = 3
    bulk_batch_delay_seconds: float = 1.0

    # Unsubscribe and feedback links
    unsubscribe_token_expire_days: int = 180
    feedback_token_expire_days: int = 90

    class Config:
        env_file = ".env"
        extra = "ignore"  # This line allows extra env vars without errors

settings = Settings()
