from enum import Enum


class Environment(str, Enum):
    """Application environment types."""

    PRODUCTION = "production"
    STAGING = "staging"
    TESTING = "testing"
    DEVELOPMENT = "development"

    @classmethod
    def is_testing(cls, env: str) -> bool:
        return env.lower() == cls.TESTING.value

    @classmethod
    def is_development(cls, env: str) -> bool:
        return env.lower() == cls.DEVELOPMENT.value

    @classmethod
    def wants_plain_logs(cls, env: str) -> bool:
        """Local runs print human-readable lines instead of JSON."""
        return cls.is_development(env) or cls.is_testing(env)
