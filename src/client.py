"""Matrix application service factory for instabridge.

We explicitly manage the appservice's lifecycle (start/stop) so it is obvious
when the listener is bound and when it ends.
"""

from __future__ import annotations

import logging
import os
from typing import Awaitable, Callable, Optional

from dotenv import load_dotenv
from mautrix.appservice import AppService

QueryHandler = Callable[[str], Awaitable[Optional[dict]]]


def build_appservice(
    *,
    appservice_id: str,
    homeserver_url: str,
    domain: str,
    bot_localpart: str,
    query_user: QueryHandler,
    query_alias: QueryHandler,
) -> AppService:
    """Create a mautrix AppService from environment secrets.

    AS_TOKEN/HS_TOKEN come from the registration file and are read via
    python-dotenv to keep them out of config.json.
    """

    load_dotenv()

    as_token = os.getenv("AS_TOKEN")
    hs_token = os.getenv("HS_TOKEN")

    # Fail fast on missing tokens; the homeserver would reject every request.
    if not as_token or not hs_token:
        raise RuntimeError("Missing AS_TOKEN or HS_TOKEN in environment")

    logging.getLogger(__name__).info("Initializing appservice %s for %s", appservice_id, domain)

    return AppService(
        id=appservice_id,
        server=homeserver_url,
        domain=domain,
        as_token=as_token,
        hs_token=hs_token,
        bot_localpart=bot_localpart,
        query_user=query_user,
        query_alias=query_alias,
    )
