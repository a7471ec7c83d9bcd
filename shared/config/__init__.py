"""Shared configuration base classes.

Common settings every reporting service inherits so that logging and AWS
access are configured the same way everywhere.
"""

from pydantic_settings import BaseSettings


class BaseLoggingConfig(BaseSettings):
    """Common logging configuration for all services."""

    app_log_level: str = "INFO"
    app_log_redaction_patterns: list[str] = [
        "password",
        "token",
        "secret",
        "credential",
        "authorization",
        "signature",
    ]
    app_environment: str = "production"


class BaseAwsConfig(BaseSettings):
    """Common AWS client configuration for all services."""

    aws_region: str = "us-east-1"
    aws_profile: str | None = None
    aws_max_attempts: int = 3


class BaseServiceConfig(BaseLoggingConfig, BaseAwsConfig):
    """Base configuration combining logging and AWS settings.

    Services inherit from this and add their own specific settings.
    The otel_service_name should be overridden by each service.
    """

    otel_service_name: str = "unknown"


__all__ = ["BaseLoggingConfig", "BaseAwsConfig", "BaseServiceConfig"]
