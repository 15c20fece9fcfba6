"""Configuration models for CLA Bot."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from cla_bot.exceptions import ConfigError


class AppConfig(BaseModel):
    """GitHub App identity used to mint installation tokens."""
    app_id: str | None = None
    private_key: str | None = None
    private_key_path: str | None = None
    jwt_ttl_seconds: int = 600
    token_refresh_margin_seconds: int = 300
    # The App's own account, e.g. "cla-bot[bot]"
    bot_login: str | None = None

    def load_private_key(self) -> str:
        """Return the PEM private key from inline config or from disk.

        Raises:
            ConfigError: If neither source yields a key.
        """
        if self.private_key:
            # Env vars often carry the PEM with escaped newlines
            return self.private_key.replace("\\n", "\n")
        if self.private_key_path:
            path = Path(self.private_key_path)
            if not path.exists():
                raise ConfigError(f"Private key file not found: {path}")
            return path.read_text()
        raise ConfigError("No GitHub App private key configured")


class ClaConfig(BaseModel):
    """The agreement contributors must sign."""
    version: str = "1.0"
    sign_url: str = "https://cla.example.com/sign"


class OrganizationConfig(BaseModel):
    """The organization operating the bot.

    Committers whose email belongs to ``domain`` are pointed at the
    internal signing instructions instead of the public CLA form.
    """
    domain: str | None = None
    internal_instructions_url: str | None = None

    def is_internal_email(self, email: str | None) -> bool:
        if not self.domain or not email or "@" not in email:
            return False
        return email.rsplit("@", 1)[1].lower() == self.domain.lower()


class StatusConfig(BaseModel):
    """Commit status parameters."""
    context: str = "cla-bot"


class LabelConfig(BaseModel):
    """Names and colors of the mutually exclusive CLA labels."""
    missing_name: str = "cla:missing"
    missing_color: str = "c40b0b"
    signed_name: str = "cla:signed"
    signed_color: str = "5ebc41"


class FetchConfig(BaseModel):
    """GitHub API fetch parameters."""
    max_pages: int = 10
    per_page: int = 100
    timeout_seconds: float = 30.0


class ClaBotConfig(BaseModel):
    """Top-level configuration composing all sub-configs."""
    app: AppConfig = Field(default_factory=AppConfig)
    cla: ClaConfig = Field(default_factory=ClaConfig)
    organization: OrganizationConfig = Field(default_factory=OrganizationConfig)
    status: StatusConfig = Field(default_factory=StatusConfig)
    labels: LabelConfig = Field(default_factory=LabelConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)


def load_config(path: str | Path | None = None) -> ClaBotConfig:
    """Load configuration from YAML file, environment variables, and defaults.

    Priority (highest to lowest):
    1. Environment variables (CLA_BOT_*)
    2. YAML config file
    3. Defaults
    """
    config_data: dict[str, Any] = {}

    if path is not None:
        candidates = [Path(path)]
    else:
        candidates = [Path(".cla-bot.yml"), Path(".cla-bot.yaml")]

    config_path = next((p for p in candidates if p.exists()), None)
    if config_path is not None:
        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

    env_mapping = {
        "CLA_BOT_APP_ID": ("app", "app_id", str),
        "CLA_BOT_PRIVATE_KEY": ("app", "private_key", str),
        "CLA_BOT_PRIVATE_KEY_PATH": ("app", "private_key_path", str),
        "CLA_BOT_BOT_LOGIN": ("app", "bot_login", str),
        "CLA_BOT_CLA_VERSION": ("cla", "version", str),
        "CLA_BOT_SIGN_URL": ("cla", "sign_url", str),
        "CLA_BOT_ORG_DOMAIN": ("organization", "domain", str),
        "CLA_BOT_INTERNAL_INSTRUCTIONS_URL": (
            "organization", "internal_instructions_url", str,
        ),
        "CLA_BOT_STATUS_CONTEXT": ("status", "context", str),
        "CLA_BOT_MAX_PAGES": ("fetch", "max_pages", int),
    }

    for env_var, (section, key, type_fn) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            if section not in config_data:
                config_data[section] = {}
            config_data[section][key] = type_fn(value)

    return ClaBotConfig(**config_data)
