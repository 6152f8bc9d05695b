"""Session context: the bearer token, the last committed dataset and their persisted copy."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional, Protocol

from profile_core.config import ERRORS, TOKEN_KEY, USER_KEY
from profile_core.dataset import ProfileDataset
from profile_core.errors import TokenExpired, TokenInvalid
from profile_core.token import decode, extract_identity, is_live, token_user_info

logger = logging.getLogger(__name__)


class SessionStorage(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    """Keys held in a plain mapping, e.g. a dict or one browser's ``st.session_state`` slot."""

    def __init__(self, values: Optional[MutableMapping[str, Any]] = None) -> None:
        self._values: MutableMapping[str, Any] = values if values is not None else {}

    def get(self, key: str) -> Optional[Any]:
        return self._values.get(key)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class FileSessionStorage:
    """One JSON document on disk. A missing or unreadable file reads as empty.

    Every reader of the same path shares one session, so this is only for a
    single-user process such as the local API.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("ignoring unreadable session file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: Dict[str, Any]) -> None:
        try:
            self.path.write_text(json.dumps(data), encoding="utf-8")
        except OSError as exc:
            logger.warning("could not persist session to %s: %s", self.path, exc)

    def get(self, key: str) -> Optional[Any]:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


@dataclass(frozen=True)
class CycleTicket:
    cycle: int
    generation: int


class ProfileSession:
    """Holds the token and the current dataset; only commits from the newest cycle stick.

    ``generation`` changes on every login/logout so cycles started under a
    previous token are discarded even if they are the newest ones.
    """

    def __init__(self, storage: Optional[SessionStorage] = None) -> None:
        self.storage: SessionStorage = storage if storage is not None else MemoryStorage()
        self._token: Optional[str] = None
        self._dataset: Optional[ProfileDataset] = None
        self._cycle = 0
        self._generation = 0

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def dataset(self) -> Optional[ProfileDataset]:
        return self._dataset

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    def restore(self) -> bool:
        """Reload token and dataset from storage; returns whether a token was found."""
        token = self.storage.get(TOKEN_KEY)
        if not isinstance(token, str) or not token:
            return False
        self._token = token
        raw = self.storage.get(USER_KEY)
        if isinstance(raw, dict):
            try:
                self._dataset = ProfileDataset.from_dict(raw)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("discarding unreadable cached dataset: %s", exc)
                self.storage.remove(USER_KEY)
        return True

    def login(self, token: str) -> None:
        self._token = token
        self._dataset = None
        self._generation += 1
        self.storage.set(TOKEN_KEY, token)
        self.storage.remove(USER_KEY)
        logger.info("session started")

    def logout(self) -> None:
        self._token = None
        self._dataset = None
        self._generation += 1
        self.storage.remove(TOKEN_KEY)
        self.storage.remove(USER_KEY)
        logger.info("session cleared")

    def validate(self, now: Optional[float] = None) -> int:
        """Identity from the current token. Invalid or expired tokens end the session."""
        if not self._token:
            raise TokenInvalid(ERRORS["NOT_AUTHENTICATED"])
        try:
            claims = decode(self._token)
            identity = extract_identity(claims)
        except TokenInvalid:
            self.logout()
            raise
        if not is_live(claims, time.time() if now is None else now):
            self.logout()
            raise TokenExpired(ERRORS["TOKEN_EXPIRED"])
        return identity

    def user_info(self) -> Optional[Dict[str, Any]]:
        if not self._token:
            return None
        try:
            return token_user_info(decode(self._token))
        except TokenInvalid:
            return None

    def begin_cycle(self) -> CycleTicket:
        self._cycle += 1
        return CycleTicket(cycle=self._cycle, generation=self._generation)

    def is_current(self, ticket: CycleTicket) -> bool:
        return ticket.cycle == self._cycle and ticket.generation == self._generation

    def commit(self, ticket: CycleTicket, dataset: ProfileDataset) -> bool:
        if not self.is_current(ticket):
            logger.warning("discarding result of superseded cycle %d", ticket.cycle)
            return False
        self._dataset = dataset
        self.storage.set(USER_KEY, dataset.to_dict())
        logger.info("committed dataset for user %s (cycle %d)", dataset.identity, ticket.cycle)
        return True


def browser_session(state: MutableMapping[str, Any], key: str = "profile_session") -> ProfileSession:
    """The session bound to one browser's state, created on first use.

    Storage lives inside ``state`` itself, so a new browser starts signed out
    no matter who signed in elsewhere.
    """
    session = state.get(key)
    if isinstance(session, ProfileSession):
        return session
    session = ProfileSession(MemoryStorage(state.setdefault(f"{key}_storage", {})))
    session.restore()
    state[key] = session
    return session
