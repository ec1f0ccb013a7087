# src/nginx_deployer/settings.py
from datetime import datetime
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from nginx_deployer.models import RetryPolicy

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARN", "WARNING", "ERROR"]


class Settings(BaseSettings):
    """
    Defaults for every deployment option.

    Configuration precedence:
    1. Command line flags (applied by the CLI on top of these values)
    2. Environment variables
    3. .env file (if exists)
    4. Default values in this class (lowest priority)

    Usage:
        from nginx_deployer.settings import get_settings
        settings = get_settings()
        region = settings.aws_region
    """

    # AWS Core Settings
    aws_region: str = Field(
        default="us-west-2",
        alias="AWS_DEFAULT_REGION"
    )

    aws_profile: Optional[str] = Field(
        default=None,
        alias="AWS_PROFILE",
        description="Named profile used to build boto3 sessions"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL",
        description="Override endpoint, e.g. a local moto server"
    )

    candidate_regions: List[str] = Field(
        default=["us-east-1", "us-east-2", "us-west-1", "us-west-2", "eu-west-1", "eu-central-1"],
        description="Regions considered by --auto-region"
    )

    # Stack Configuration
    stack_name_prefix: str = Field(
        default="nginx-stack",
        description="Prefix of the generated default stack name"
    )

    instance_type: str = Field(
        default="t2.micro",
        description="EC2 instance type for the Nginx host"
    )

    stack_timeout_minutes: int = Field(
        default=30,
        description="Upper bound for the stack readiness wait"
    )

    template_path: Optional[str] = Field(
        default=None,
        description="CloudFormation template (packaged template when unset)"
    )

    # Local Files
    config_path: str = Field(
        default="./nginx.conf",
        description="Nginx configuration file"
    )

    cert_path: str = Field(default="./cert.pem")
    key_path: str = Field(default="./key.pem")

    build_context: str = Field(
        default=".",
        description="Docker build context directory"
    )

    dockerfile: str = Field(default="Dockerfile")

    image_tag: str = Field(default="latest")

    # Retry Configuration
    retry_max_attempts: int = Field(
        default=3,
        description="Attempt ceiling for retryable remote calls"
    )

    retry_delay_seconds: float = Field(
        default=5.0,
        description="Fixed delay between attempts"
    )

    # Prerequisites
    required_tools: List[str] = Field(
        default=["docker"],
        description="Executables that must be on PATH"
    )

    # Backup Configuration
    backup_retention_count: Optional[int] = Field(
        default=None,
        description="Snapshots kept by the recurring lifecycle policy"
    )

    backup_role_arn: Optional[str] = Field(
        default=None,
        alias="BACKUP_ROLE_ARN",
        description="IAM role used by Data Lifecycle Manager"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Accept debug/info/warn/error in any case."""
        level = v.upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return level

    @field_validator("retry_max_attempts")
    @classmethod
    def validate_max_attempts(cls, v):
        if v < 1:
            raise ValueError("retry_max_attempts must be at least 1")
        return v

    @field_validator("retry_delay_seconds")
    @classmethod
    def validate_retry_delay(cls, v):
        if v < 0:
            raise ValueError("retry_delay_seconds must not be negative")
        return v

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.retry_max_attempts, delay=self.retry_delay_seconds)

    def default_stack_name(self) -> str:
        """Generate a timestamped stack name, e.g. nginx-stack-20240101120000."""
        return f"{self.stack_name_prefix}-{datetime.now().strftime('%Y%m%d%H%M%S')}"

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_prefix="NGINX_DEPLOYER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
