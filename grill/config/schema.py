"""Configuration schema for grill."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

HOOK_EVENTS = ("on_enter", "on_leave")


def _default_clis() -> dict[str, str]:
    return {"q": "q chat"}


class TaskConfig(BaseModel):
    """Per-task configuration stored in ``tasks/<name>/task.json``."""

    cli: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    working_dir: str = ""
    hooks: dict[str, str] = Field(default_factory=dict)
    created_at: str = ""

    model_config = ConfigDict(extra="ignore")


class GrillConfig(BaseSettings):
    """Project configuration stored in ``.grill/config.json``."""

    default_cli: str = "q chat"
    clis: dict[str, str] = Field(default_factory=_default_clis)
    hooks: dict[str, str] = Field(default_factory=dict)
    grace_period_s: float = 3.0
    prompt_refresh: str = ""
    log_level: str = "INFO"

    def resolve_alias(self, value: str) -> str:
        """Map a named CLI alias (``q``) onto its invocation string."""
        key = (value or "").strip()
        return self.clis.get(key, key)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment wins over values loaded from config.json.
        return env_settings, init_settings, file_secret_settings

    model_config = SettingsConfigDict(
        env_prefix="GRILL_",
        extra="ignore",
    )
