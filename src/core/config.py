"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BridgeConfig:
    """Identity and naming settings shared by every core component."""

    domain: str
    bot_localpart: str
    user_prefix: str = "_instagram_"
    source_label: str = "Instagram"
    media_grace_hours: float = 24.0
    account_info_event_type: str = "org.instabridge.account_info"

    @property
    def bot_user_id(self) -> str:
        return f"@{self.bot_localpart}:{self.domain}"


@dataclass(frozen=True)
class AppearanceConfig:
    """Desired look of the bridge bot itself."""

    display_name: str = "Instagram Bridge"
    avatar_url: Optional[str] = None
