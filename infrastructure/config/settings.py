"""
Environment-specific deployment settings.

Cost-optimized defaults for development; prod gets a larger database and
backups.
"""

from dataclasses import dataclass
import os


@dataclass
class Settings:
    """Deployment settings with cost-optimized defaults."""

    environment: str = "dev"
    aws_region: str = "us-east-1"

    # Payment proof validation (empty = auto-approve stub)
    validator_model_id: str = "anthropic.claude-3-haiku-20240307-v1:0"

    # Operator notifications, passed through to the Lambda when set
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    # Database
    db_instance_class: str = "t3.micro"  # Free tier eligible
    db_allocated_storage: int = 20

    # Lambda
    lambda_memory_mb: int = 512
    lambda_timeout_seconds: int = 30

    # Uploads
    upload_max_bytes: int = 5 * 1024 * 1024

    @classmethod
    def from_environment(cls) -> "Settings":
        """Load settings from environment variables."""
        env = os.environ.get("ENVIRONMENT", "dev")
        common = dict(
            environment=env,
            aws_region=os.environ.get("CDK_DEFAULT_REGION", cls.aws_region),
            validator_model_id=os.environ.get("VALIDATOR_MODEL_ID", cls.validator_model_id),
            telegram_bot_token=os.environ.get("TELEGRAM_BOT_TOKEN", ""),
            telegram_chat_id=os.environ.get("TELEGRAM_CHAT_ID", ""),
        )

        if env == "prod":
            return cls(
                **common,
                db_instance_class="t3.small",
                db_allocated_storage=50,
                lambda_memory_mb=1024,
                lambda_timeout_seconds=60,
            )

        return cls(**common)
