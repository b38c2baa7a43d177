from __future__ import annotations

import asyncio

from core.appearance import update_bot_profile
from core.config import AppearanceConfig
from fakes import BOT_ID, make_harness


def test_uploads_avatar_only_when_source_changes() -> None:
    harness = make_harness()
    appearance = AppearanceConfig(display_name="Bridge", avatar_url="http://x/bot.png")
    identities = harness.components.identities

    asyncio.run(update_bot_profile(appearance, identities, harness.store))
    asyncio.run(update_bot_profile(appearance, identities, harness.store))

    # The second run finds the name already in place and leaves it alone.
    assert harness.log.display_names == [(BOT_ID, "Bridge")]
    assert harness.log.uploads == [(BOT_ID, "http://x/bot.png", "bot.png")]
    assert harness.log.avatars == [(BOT_ID, "mxc://domain/upload1")]
    assert harness.store.bot_profile.avatar_url == "http://x/bot.png"


def test_renames_when_configured_name_changes() -> None:
    harness = make_harness()
    identities = harness.components.identities

    asyncio.run(update_bot_profile(AppearanceConfig(display_name="Old"), identities, harness.store))
    asyncio.run(update_bot_profile(AppearanceConfig(display_name="New"), identities, harness.store))

    assert harness.log.display_names == [(BOT_ID, "Old"), (BOT_ID, "New")]


def test_no_avatar_configured() -> None:
    harness = make_harness()

    asyncio.run(update_bot_profile(AppearanceConfig(), harness.components.identities, harness.store))

    assert harness.log.display_names == [(BOT_ID, "Instagram Bridge")]
    assert harness.log.uploads == []
