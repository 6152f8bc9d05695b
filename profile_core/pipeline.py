from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from profile_core.client import ApiClient
from profile_core.dataset import ProfileDataset, build_dataset
from profile_core.errors import FetchFailed, Unauthorized
from profile_core.fetcher import RecordFetcher
from profile_core.filters import DashboardOptions
from profile_core.session import ProfileSession

logger = logging.getLogger(__name__)


async def sign_in(session: ProfileSession, client: ApiClient, username: str, password: str) -> str:
    """Exchange credentials for a token and start a fresh session with it."""
    token = await client.sign_in(username, password)
    session.login(token)
    return token


async def refresh(
    session: ProfileSession,
    client: ApiClient,
    *,
    now: Optional[float] = None,
    options: Optional[DashboardOptions] = None,
    assembled_at: Optional[datetime] = None,
) -> Optional[ProfileDataset]:
    """Run one fetch cycle and commit its dataset.

    Returns the committed dataset, or None when a newer cycle (or a logout)
    superseded this one while it was in flight. On ``Unauthorized`` the
    session is cleared; on any other ``FetchFailed`` the previous dataset
    stays in place. Both propagate.
    """
    identity = session.validate(now)
    ticket = session.begin_cycle()
    fetcher = RecordFetcher(client, session.token or "")
    try:
        records = await fetcher.fetch_all(identity)
    except Unauthorized:
        if session.is_current(ticket):
            session.logout()
        raise
    except FetchFailed:
        logger.warning("fetch cycle %d failed; keeping previous dataset", ticket.cycle)
        raise

    if not records.skills_available:
        logger.info("cycle %d: skills derived without the skills query", ticket.cycle)
    dataset = build_dataset(records, identity, options=options, assembled_at=assembled_at)
    if not session.commit(ticket, dataset):
        return None
    return dataset
