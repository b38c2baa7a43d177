"""Mapping between Instagram handles and Matrix identities."""

from __future__ import annotations

import logging
from typing import Optional

from core.config import BridgeConfig
from core.errors import InvalidAlias
from core.models import UserKind, VirtualIdentity
from core.ports import ChatTransportPort, ContentSourcePort, IntentPort

LOGGER = logging.getLogger(__name__)


class IdentityResolver:
    """Derive virtual identities from handles and classify Matrix user ids."""

    def __init__(
        self,
        config: BridgeConfig,
        transport: ChatTransportPort,
        content_source: ContentSourcePort,
    ) -> None:
        self._config = config
        self._transport = transport
        self._content_source = content_source

    @property
    def bot_user_id(self) -> str:
        return self._config.bot_user_id

    def virtual_localpart(self, handle: str) -> str:
        return f"{self._config.user_prefix}{handle}"

    def virtual_user_id(self, handle: str) -> str:
        return f"@{self.virtual_localpart(handle)}:{self._config.domain}"

    def handle_from_localpart(self, localpart: str) -> str:
        """Return the handle encoded in a user or alias localpart.

        Raises InvalidAlias when the prefix is missing or nothing follows it.
        """

        prefix = self._config.user_prefix
        if not localpart.startswith(prefix):
            raise InvalidAlias(localpart)
        handle = localpart[len(prefix):]
        if not handle:
            raise InvalidAlias(localpart)
        return handle

    def classify_user(self, user_id: str) -> UserKind:
        if user_id == self.bot_user_id:
            return UserKind.BOT
        is_virtual = user_id.startswith(f"@{self._config.user_prefix}") and user_id.endswith(
            f":{self._config.domain}"
        )
        return UserKind.VIRTUAL if is_virtual else UserKind.REGULAR

    def is_bridge_user(self, user_id: str) -> bool:
        return self.classify_user(user_id) is not UserKind.REGULAR

    def bot_intent(self) -> IntentPort:
        return self._transport.get_intent(self.bot_user_id)

    def intent_for(self, handle: str) -> IntentPort:
        """Return the virtual user's intent and ask for a profile freshness check."""

        intent = self._transport.get_intent(self.virtual_user_id(handle))
        # Fire-and-forget: the refreshed profile comes back on the profile channel.
        self._content_source.request_profile_refresh(handle)
        return intent

    def on_identity_query(self, localpart: str) -> Optional[VirtualIdentity]:
        """Answer a homeserver query for a user in the bridge's namespace."""

        try:
            handle = self.handle_from_localpart(localpart)
        except InvalidAlias:
            LOGGER.info("Rejecting user query for %s", localpart)
            return None
        # Name and avatar arrive later through the profile update channel.
        self._content_source.request_profile_refresh(handle)
        return VirtualIdentity(user_id=self.virtual_user_id(handle), handle=handle)
