"""
Module: settings.py
Description: Application configuration using pydantic-settings.

Configures all application settings from environment variables with
validation and defaults. Supports .env files for local development.
"""

import re

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application settings
    app_name: str = Field(default="Flight SMS Dispatch", description="Application name")
    app_version: str = Field(default="0.3.0", description="Application version")
    log_level: str = Field(default="INFO", description="Logging level")

    # AWS settings
    aws_region: str = Field(default="us-east-1", description="AWS region")
    stage: str = Field(default="dev", description="Deployment stage")

    # DynamoDB settings
    sms_requests_table_name: str = Field(
        default="sms-requests",
        description="Name of the DynamoDB table holding SMS requests"
    )
    api_keys_table_name: str = Field(
        default="sms-api-keys",
        description="Name of the DynamoDB table holding operator API key hashes"
    )

    # Provider settings
    sms_api_url: str = Field(
        default="https://capi.inforu.co.il/api/v2/SMS/SendSms",
        description="SMS provider SendSms endpoint"
    )
    sms_api_authorization: SecretStr = Field(
        default=SecretStr(""),
        description="Authorization header value sent to the SMS provider"
    )
    default_sender: str = Field(
        default="ELAL",
        min_length=1,
        max_length=11,
        description="Sender label used when a request does not carry one"
    )
    delivery_timeout: int = Field(
        default=10,
        ge=1,
        le=30,
        description="HTTP timeout in seconds for provider calls"
    )

    # Monitoring settings
    metrics_namespace: str = Field(
        default="FlightSms",
        description="CloudWatch namespace for custom metrics"
    )

    @field_validator('sms_requests_table_name', 'api_keys_table_name')
    @classmethod
    def validate_table_names(cls, v: str) -> str:
        """Validate DynamoDB table names."""
        if not v or not isinstance(v, str):
            raise ValueError("Table name must be a non-empty string")

        if not re.match(r'^[a-zA-Z0-9_.-]+$', v):
            raise ValueError(
                "Table name must contain only letters, numbers, dots, hyphens, and underscores"
            )

        return v

    @field_validator('sms_api_url')
    @classmethod
    def validate_sms_api_url(cls, v: str) -> str:
        """Validate the provider endpoint is an HTTP(S) URL."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError("sms_api_url must be a valid HTTP/HTTPS URL")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()


# Global settings instance
settings = Settings()
