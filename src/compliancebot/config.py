from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
from typing import Mapping, Optional, Tuple

import dotenv

from compliancebot.errors import ConfigError

DEFAULT_REQUIRED_FILES = ("README.md", "CONTRIBUTING.md")


def _split_list(value: Optional[str]) -> Optional[Tuple[str, ...]]:
    if value is None:
        return None
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() == "true"


@dataclass(frozen=True)
class Settings:
    github_app_id: int
    github_private_key: str = field(repr=False)
    github_webhook_secret: Optional[str] = field(default=None, repr=False)

    check_run_name: str = "Compliance"
    required_files: Tuple[str, ...] = DEFAULT_REQUIRED_FILES
    post_comment: bool = True
    api_timeout: float = 10.0

    override_logging: int = logging.WARNING
    telegram_token: Optional[str] = field(default=None, repr=False)
    telegram_chat_id: Optional[str] = None

    repo_allowlist: Optional[Tuple[str, ...]] = None
    dry_run: bool = False
    port: int = 3000

    def is_repo_allowed(self, full_name: str) -> bool:
        if self.repo_allowlist is None:
            return True
        return full_name in self.repo_allowlist

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, load_dotenv: bool = True
    ) -> "Settings":
        if environ is None:
            if load_dotenv:
                dotenv.load_dotenv()
            environ = os.environ

        app_id = environ.get("GITHUB_APP_ID")
        if app_id is None:
            raise ConfigError("GITHUB_APP_ID is not set")
        try:
            github_app_id = int(app_id)
        except ValueError as e:
            raise ConfigError(f"GITHUB_APP_ID must be an integer, got {app_id!r}") from e

        private_key = environ.get("GITHUB_PRIVATE_KEY")
        key_path = environ.get("GITHUB_PRIVATE_KEY_PATH")
        if private_key is None and key_path is not None:
            try:
                private_key = Path(key_path).read_text(encoding="utf-8")
            except OSError as e:
                raise ConfigError(f"Unable to read private key from {key_path}") from e
        if not private_key:
            raise ConfigError("Set GITHUB_PRIVATE_KEY or GITHUB_PRIVATE_KEY_PATH")

        required_files = _split_list(environ.get("REQUIRED_FILES"))
        if required_files is None:
            required_files = DEFAULT_REQUIRED_FILES
        if len(required_files) == 0:
            raise ConfigError("REQUIRED_FILES must name at least one path")

        level = logging.getLevelName(environ.get("OVERRIDE_LOGGING", "WARNING"))
        if not isinstance(level, int):
            raise ConfigError(f"Unknown log level {environ['OVERRIDE_LOGGING']!r}")

        try:
            api_timeout = float(environ.get("API_TIMEOUT", 10))
            port = int(environ.get("PORT", 3000))
        except ValueError as e:
            raise ConfigError(str(e)) from e
        if api_timeout <= 0:
            raise ConfigError("API_TIMEOUT must be positive")

        return cls(
            github_app_id=github_app_id,
            github_private_key=private_key,
            github_webhook_secret=environ.get("GITHUB_WEBHOOK_SECRET"),
            check_run_name=environ.get("CHECK_RUN_NAME", "Compliance"),
            required_files=required_files,
            post_comment=_parse_bool(environ.get("POST_COMMENT"), True),
            api_timeout=api_timeout,
            override_logging=level,
            telegram_token=environ.get("TELEGRAM_TOKEN"),
            telegram_chat_id=environ.get("TELEGRAM_CHAT_ID"),
            repo_allowlist=_split_list(environ.get("REPO_ALLOWLIST")),
            dry_run=_parse_bool(environ.get("DRY_RUN"), False),
            port=port,
        )
