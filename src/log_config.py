"""Logging setup for the bridge process.

Handlers come from the ``logging`` section of config.json. Every handler
shares one formatter that masks the appservice tokens and Instagram access
tokens before anything is written.
"""

from __future__ import annotations

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from typing import Optional

FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MASK = "***"

# aiohttp errors repeat the request URL, including its query string.
_ACCESS_TOKEN_PARAM = re.compile(r"(access_token=)[^&\s'\"]+")


class RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str = FORMAT, datefmt: Optional[str] = DATE_FORMAT) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        # Longest first so a secret containing another is masked whole.
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, MASK)
        return _ACCESS_TOKEN_PARAM.sub(r"\g<1>" + MASK, message)


def secrets_from_env(redact_cfg: dict) -> list[str]:
    if not redact_cfg.get("enabled", True):
        return []
    names = redact_cfg.get("env_vars", ["AS_TOKEN", "HS_TOKEN"])
    return [value for value in (os.getenv(name) for name in names) if value]


def build_handlers(config: dict, project_root: str, formatter: logging.Formatter) -> list[logging.Handler]:
    """Console and rotating-file handlers as enabled in the logging config."""

    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/instabridge.log")
        if not os.path.isabs(path):
            path = os.path.join(project_root, path)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
                backupCount=int(file_cfg.get("backup_count", 5)),
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(config: dict, project_root: str) -> None:
    if not config.get("enabled", True):
        return

    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
    formatter = RedactingFormatter(secrets_from_env(config.get("redact", {})))
    handlers = build_handlers(config, project_root, formatter)
    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # mautrix logs every transaction at DEBUG; keep it one step quieter than us.
    logging.getLogger("mau").setLevel(max(level, logging.INFO))
