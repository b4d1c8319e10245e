"""Runtime settings loaded from the environment."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field


def _csv(value: str | None) -> frozenset[str]:
    if not value:
        return frozenset()
    return frozenset(item.strip() for item in value.split(",") if item.strip())


class Settings(BaseModel):
    """Service settings.

    Every field maps to an environment variable; a ``.env`` file in the working
    directory is loaded first when present.
    """

    anthropic_api_key: str | None = None
    model: str = "claude-sonnet-4-20250514"
    temperature: float = 1.0
    max_tokens: int = 4096
    max_steps: int = Field(default=10, ge=1)

    google_client_id: str | None = None
    google_client_secret: str | None = None
    google_redirect_uri: str | None = None

    token_file: Path = Path(".orbit/tokens.json")
    http_timeout: float = 30.0

    # Empty by default: the confirmation path exists but no tool is gated
    tools_requiring_confirmation: frozenset[str] = frozenset()

    @property
    def has_model_key(self) -> bool:
        return bool(self.anthropic_api_key)

    @property
    def google_oauth_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret and self.google_redirect_uri)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        load_dotenv()

        values: dict = {
            "anthropic_api_key": os.getenv("ANTHROPIC_API_KEY") or None,
            "google_client_id": os.getenv("GOOGLE_CLIENT_ID") or None,
            "google_client_secret": os.getenv("GOOGLE_CLIENT_SECRET") or None,
            "google_redirect_uri": os.getenv("GOOGLE_REDIRECT_URI") or None,
            "tools_requiring_confirmation": _csv(os.getenv("ORBIT_TOOLS_REQUIRING_CONFIRMATION")),
        }
        optional = {
            "model": "ORBIT_MODEL",
            "temperature": "ORBIT_TEMPERATURE",
            "max_tokens": "ORBIT_MAX_TOKENS",
            "max_steps": "ORBIT_MAX_STEPS",
            "token_file": "ORBIT_TOKEN_FILE",
            "http_timeout": "ORBIT_HTTP_TIMEOUT",
        }
        for field, env_name in optional.items():
            raw = os.getenv(env_name)
            if raw:
                values[field] = raw

        return cls.model_validate(values)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
