"""Keep the bridge bot's own display name and avatar in line with config."""

from __future__ import annotations

import logging

from core.config import AppearanceConfig
from core.identity import IdentityResolver
from core.ports import DirectoryStorePort

LOGGER = logging.getLogger(__name__)

BOT_AVATAR_FILENAME = "bot.png"


async def update_bot_profile(
    appearance: AppearanceConfig,
    identities: IdentityResolver,
    store: DirectoryStorePort,
) -> None:
    """Apply the configured appearance to the bot.

    The stored profile remembers which source URL the current avatar came
    from, so the avatar is only uploaded again when the configured URL changes.
    """

    LOGGER.info("Updating appearance of bridge bot")
    bot = identities.bot_intent()

    current_name = await bot.get_display_name()
    if current_name != appearance.display_name:
        LOGGER.info("Updating display name from %r to %r", current_name, appearance.display_name)
        await bot.set_display_name(appearance.display_name)

    desired_avatar = appearance.avatar_url
    if not desired_avatar:
        return
    profile = store.get_bot_profile()
    if profile.avatar_url == desired_avatar:
        return

    content_ref = await bot.upload_media(desired_avatar, BOT_AVATAR_FILENAME)
    LOGGER.debug("Bot avatar content reference = %s", content_ref)
    await bot.set_avatar_url(content_ref)
    profile.avatar_url = desired_avatar
    store.set_bot_profile(profile)
