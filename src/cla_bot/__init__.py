"""CLA Bot - Contributor License Agreement checks for GitHub pull requests."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from cla_bot.auth import AppAuthenticator, TokenCache
from cla_bot.config import ClaBotConfig, load_config
from cla_bot.discovery import PullRequestDiscovery
from cla_bot.exceptions import ClaBotError
from cla_bot.models import ClaSignature, PullRequest, UnknownCommitter, User
from cla_bot.validator import PullRequestValidator

try:
    __version__ = version("cla-bot")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "AppAuthenticator",
    "ClaBotConfig",
    "ClaBotError",
    "ClaSignature",
    "PullRequest",
    "PullRequestDiscovery",
    "PullRequestValidator",
    "TokenCache",
    "UnknownCommitter",
    "User",
    "__version__",
    "load_config",
]
