import asyncio

import httpx
import pytest

from conftest import mint_token
from profile_core.config import TOKEN_KEY, USER_KEY
from profile_core.errors import AuthError, FetchFailed, TokenExpired, Unauthorized
from profile_core.pipeline import refresh, sign_in
from profile_core.session import MemoryStorage, ProfileSession
from profile_core.skills import SkillSource


def _refresh(graphql, settings, session, **kwargs):
    async def go():
        async with graphql.client(settings) as client:
            return await refresh(session, client, **kwargs)

    return asyncio.run(go())


def _session(token=None):
    session = ProfileSession(MemoryStorage())
    session.login(token or mint_token("42"))
    return session


def test_refresh_builds_and_commits_dataset(graphql, test_settings):
    session = _session()
    dataset = _refresh(graphql, test_settings, session)
    assert dataset is session.dataset
    assert dataset.identity == 42
    assert dataset.login == "alice"
    assert dataset.first_name == "Alice"
    assert dataset.total_xp == 3000
    assert dataset.audit_given == 300 and dataset.audit_received == 200
    assert dataset.audit_ratio == 1.5
    assert (dataset.passed, dataset.failed, dataset.pass_rate) == (2, 1, 67)
    assert dataset.skill_source is SkillSource.EXPLICIT
    assert dataset.skills[0].name == "Go"
    assert [t["track"] for t in dataset.piscine] == ["JavaScript", "Go"]
    assert session.storage.get(USER_KEY)["login"] == "alice"


def test_end_to_end_plain_events_and_grades(make_graphql, test_settings):
    graphql = make_graphql(
        {
            "UserInfo": {"user": [{"id": 42, "login": "bob"}]},
            "Transactions": {
                "transaction": [
                    {"amount": 1000, "createdAt": "2024-01-01T00:00:00Z"},
                    {"amount": 2000, "createdAt": "2024-01-02T00:00:00Z"},
                ]
            },
            "Audits": {"transaction": []},
            "Progress": {"progress": [{"grade": 1}, {"grade": 0}, {"grade": 1}]},
            "Results": {"result": []},
            "Projects": {"progress": []},
            "Skills": {"transaction": []},
        }
    )
    dataset = _refresh(graphql, test_settings, _session())
    assert dataset.total_xp == 3000
    assert dataset.level == 0
    assert dataset.passed == 2
    assert dataset.failed == 1
    assert dataset.pass_rate == 67


def test_skills_query_failure_falls_back_to_inferred_skills(graphql, test_settings):
    graphql.rows["Progress"] = {"progress": [{"id": 1, "grade": 1, "path": "/a/b/javascript-basics"}]}
    graphql.rows["Projects"] = {"progress": []}
    graphql.fail("Skills", httpx.Response(500))
    dataset = _refresh(graphql, test_settings, _session())
    assert dataset.skill_source is SkillSource.INFERRED
    js = [s for s in dataset.skills if s.name == "JavaScript"]
    assert js and js[0].magnitude >= 1


def test_required_failure_keeps_previous_dataset(graphql, test_settings):
    session = _session()
    previous = _refresh(graphql, test_settings, session)
    graphql.fail("Results", httpx.Response(502))
    with pytest.raises(FetchFailed):
        _refresh(graphql, test_settings, session)
    assert session.dataset is previous
    assert session.is_authenticated


def test_unauthorized_logs_out(graphql, test_settings):
    session = _session()
    graphql.fail("Transactions", httpx.Response(401))
    with pytest.raises(Unauthorized):
        _refresh(graphql, test_settings, session)
    assert not session.is_authenticated
    assert session.storage.get(TOKEN_KEY) is None


def test_expired_token_fails_before_any_fetch(graphql, test_settings):
    session = _session(mint_token("42", exp=100))
    with pytest.raises(TokenExpired):
        _refresh(graphql, test_settings, session, now=200)
    assert graphql.requests == []
    assert not session.is_authenticated


def test_newer_cycle_wins_over_slow_one(make_graphql, test_settings):
    session = _session()
    slow = make_graphql()
    fast = make_graphql()
    fast.rows["UserInfo"] = {"user": [{"id": 42, "login": "fresh"}]}
    release = asyncio.Event()

    async def slow_handler(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return slow.handler(request)

    async def go():
        slow_client = slow.client(test_settings, handler=slow_handler)
        fast_client = fast.client(test_settings)
        stale = asyncio.ensure_future(refresh(session, slow_client))
        await asyncio.sleep(0)
        fresh = await refresh(session, fast_client)
        release.set()
        return await stale, fresh

    stale_result, fresh_result = asyncio.run(go())
    assert stale_result is None
    assert session.dataset is fresh_result
    assert session.dataset.login == "fresh"


def test_sign_in_starts_session(graphql, test_settings):
    session = ProfileSession(MemoryStorage())
    jwt = mint_token("42")
    graphql.signin_response = httpx.Response(200, json=jwt)

    async def go():
        async with graphql.client(test_settings) as client:
            return await sign_in(session, client, "alice", "secret")

    assert asyncio.run(go()) == jwt
    assert session.token == jwt
    assert session.storage.get(TOKEN_KEY) == jwt


def test_sign_in_failure_leaves_session_untouched(graphql, test_settings):
    session = ProfileSession(MemoryStorage())
    graphql.signin_response = httpx.Response(401)

    async def go():
        async with graphql.client(test_settings) as client:
            await sign_in(session, client, "alice", "bad")

    with pytest.raises(AuthError):
        asyncio.run(go())
    assert not session.is_authenticated
