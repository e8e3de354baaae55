"""
Session collection with one current session, mirrored to a durable key-value store.
"""

import logging
import os
from typing import Callable, Dict, List, Optional, Protocol
from pydantic import TypeAdapter, ValidationError

from models import Session, now_ms

logger = logging.getLogger(__name__)

SESSIONS_KEY = "aidesigner_sessions"
CURRENT_ID_KEY = "aidesigner_current_id"

TITLE_LENGTH = 30
UPLOAD_TITLE = "Image Upload"

_sessions_adapter = TypeAdapter(List[Session])


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self, items: Optional[Dict[str, str]] = None):
        self.items: Dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value


class FileKeyValueStore:
    """Stores each key as a UTF-8 text file inside ``directory``."""

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.txt")

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()

    def set_item(self, key: str, value: str) -> None:
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(key)
        tmp_path = path + ".tmp"
        with open(tmp_path, 'w', encoding='utf-8') as f:
            f.write(value)
        os.replace(tmp_path, path)


def serialize_sessions(sessions: List[Session]) -> str:
    return _sessions_adapter.dump_json(sessions).decode("utf-8")


def deserialize_sessions(raw: str) -> List[Session]:
    return _sessions_adapter.validate_json(raw)


def shorten(text: str, limit: int = TITLE_LENGTH) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def derive_title(text: Optional[str], has_upload: bool) -> str:
    """Title for a session's first user turn, or "" when the turn has nothing to name it by."""
    text = (text or "").strip()
    if text:
        return shorten(text)
    if has_upload:
        return UPLOAD_TITLE
    return ""


class SessionStore:
    """
    Application state: every session plus the id of the current one.

    All changes go through ``_apply`` which keeps the collection non-empty,
    points the current id at an existing session and persists the result.
    """

    def __init__(self, storage: KeyValueStore, sessions: Optional[List[Session]] = None,
                 current_id: str = ""):
        self.storage = storage
        self._sessions: List[Session] = []
        self._current_id = ""
        self._last_id = 0
        self._apply(list(sessions or []), current_id)

    @classmethod
    def load(cls, storage: KeyValueStore) -> "SessionStore":
        """Restore sessions from storage, starting fresh if nothing usable is saved."""
        sessions: List[Session] = []
        current_id = ""
        try:
            saved = storage.get_item(SESSIONS_KEY)
            if saved:
                sessions = deserialize_sessions(saved)
            current_id = storage.get_item(CURRENT_ID_KEY) or ""
        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"Failed to load saved sessions, starting fresh: {str(e)}")
            sessions = []
            current_id = ""
        return cls(storage, sessions, current_id)

    @property
    def sessions(self) -> List[Session]:
        return list(self._sessions)

    @property
    def current_id(self) -> str:
        return self._current_id

    @property
    def current(self) -> Session:
        for session in self._sessions:
            if session.id == self._current_id:
                return session
        return self._sessions[0]

    def new_session(self) -> Session:
        """Build an empty session with a unique id (not yet added)."""
        stamp = now_ms()
        taken = {s.id for s in self._sessions}
        candidate = max(stamp, self._last_id + 1)
        while str(candidate) in taken:
            candidate += 1
        self._last_id = candidate
        return Session(id=str(candidate), last_modified=stamp)

    def create_session(self) -> Session:
        session = self.new_session()
        self._apply([session] + self._sessions, session.id)
        logger.info(f"Created session {session.id}")
        return session

    def delete_session(self, session_id: str) -> None:
        remaining = [s for s in self._sessions if s.id != session_id]
        self._apply(remaining, self._current_id)
        logger.info(f"Deleted session {session_id}")

    def select_session(self, session_id: str) -> None:
        if not any(s.id == session_id for s in self._sessions):
            logger.warning(f"Ignoring selection of unknown session {session_id}")
            return
        self._apply(self._sessions, session_id)

    def update_current(self, mutator: Callable[[Session], Session]) -> Session:
        """Replace the current session with ``mutator(current)`` and stamp its modification time."""
        current = self.current
        updated = mutator(current).model_copy(update={"last_modified": now_ms()})
        self._apply([updated if s.id == current.id else s for s in self._sessions], current.id)
        return updated

    def set_sessions(self, sessions: List[Session]) -> None:
        self._apply(list(sessions), self._current_id)

    def _apply(self, sessions: List[Session], current_id: str) -> None:
        if not sessions:
            sessions = [self.new_session()]
        if not any(s.id == current_id for s in sessions):
            current_id = sessions[0].id
        self._sessions = sessions
        self._current_id = current_id
        self._persist()

    def _persist(self) -> None:
        try:
            self.storage.set_item(SESSIONS_KEY, serialize_sessions(self._sessions))
            self.storage.set_item(CURRENT_ID_KEY, self._current_id)
        except OSError as e:
            logger.warning(f"Could not save sessions, keeping them in memory only: {str(e)}")
