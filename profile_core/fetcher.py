"""Record fetcher: one coroutine per record set, plus the fan-out/fan-in cycle."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from profile_core import queries
from profile_core.client import ApiClient
from profile_core.config import ERRORS
from profile_core.data import RawRecords, Record, as_records
from profile_core.errors import FetchFailed, PartialDataUnavailable, Unauthorized
from profile_core.queries import Query

logger = logging.getLogger(__name__)

REQUIRED_SETS = ("user", "transactions", "audits", "progress", "results", "projects")
OPTIONAL_SETS = ("skills",)


def _rows(data: Dict[str, Any], root: str) -> List[Record]:
    value = data.get(root)
    if value is None:
        return []
    if not isinstance(value, list):
        raise FetchFailed(f"{ERRORS['GRAPHQL_ERROR']}: '{root}' is not a list")
    return list(as_records(value))


class RecordFetcher:
    """Issues the dashboard's queries for one token against one client."""

    def __init__(self, client: ApiClient, token: str) -> None:
        self.client = client
        self.token = token

    async def _fetch(self, query: Query, user_id: Optional[int]) -> List[Record]:
        data = await self.client.execute(query, self.token, user_id=user_id)
        rows = _rows(data, query.root)
        logger.debug("%s returned %d rows", query.name, len(rows))
        return rows

    async def fetch_user(self, identity: int) -> Dict[str, Any]:
        # The user table is row-filtered by the token itself
        rows = await self._fetch(queries.USER_INFO, None)
        if not rows:
            raise FetchFailed(ERRORS["NO_DATA"])
        return rows[0]

    async def fetch_transactions(self, identity: int) -> List[Record]:
        return await self._fetch(queries.TRANSACTIONS, identity)

    async def fetch_audits(self, identity: int) -> List[Record]:
        return await self._fetch(queries.AUDITS, identity)

    async def fetch_progress(self, identity: int) -> List[Record]:
        return await self._fetch(queries.PROGRESS, identity)

    async def fetch_results(self, identity: int) -> List[Record]:
        return await self._fetch(queries.RESULTS, identity)

    async def fetch_projects(self, identity: int) -> List[Record]:
        return await self._fetch(queries.PROJECTS, identity)

    async def fetch_skills(self, identity: int) -> List[Record]:
        return await self._fetch(queries.SKILLS, identity)

    def _operations(self) -> Dict[str, Callable[[int], Awaitable[Any]]]:
        return {
            "user": self.fetch_user,
            "transactions": self.fetch_transactions,
            "audits": self.fetch_audits,
            "progress": self.fetch_progress,
            "results": self.fetch_results,
            "projects": self.fetch_projects,
            "skills": self.fetch_skills,
        }

    async def fetch_all(self, identity: int) -> RawRecords:
        """Run every query concurrently and return once all required sets settled.

        ``Unauthorized`` from any query, or ``FetchFailed`` from a required one,
        cancels whatever is still in flight and propagates. A failing skills
        query only degrades the bundle (``skills_available=False``).
        """
        tasks = {asyncio.ensure_future(op(identity)): name for name, op in self._operations().items()}
        results: Dict[str, Any] = {}
        skills_available = True
        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    name = tasks[task]
                    try:
                        results[name] = task.result()
                    except Unauthorized:
                        logger.warning("query %s rejected the token; aborting cycle", name)
                        raise
                    except FetchFailed as exc:
                        if name not in OPTIONAL_SETS:
                            logger.warning("required query %s failed: %s", name, exc)
                            raise
                        partial = PartialDataUnavailable(f"{name} unavailable: {exc}")
                        logger.warning("%s; falling back to inferred skills", partial)
                        results[name] = []
                        skills_available = False
        finally:
            for task in pending:
                task.cancel()
            # Settles cancelled tasks and retrieves sibling exceptions of an aborted cycle
            await asyncio.gather(*tasks, return_exceptions=True)

        return RawRecords(
            user=results["user"],
            transactions=as_records(results["transactions"]),
            audits=as_records(results["audits"]),
            progress=as_records(results["progress"]),
            results=as_records(results["results"]),
            projects=as_records(results["projects"]),
            skills=as_records(results["skills"]),
            skills_available=skills_available,
        )
