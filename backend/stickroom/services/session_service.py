# stickroom/services/session_service.py

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, NamedTuple, Optional, Union

from pydantic import ValidationError as SchemaError

from stickroom.models import JoinedRoomRef, UserSession
from stickroom.repositories.session_storage import (
    BACKUP_KEY,
    SESSION_KEY,
    FileSessionStorage,
)

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"

SessionListener = Callable[[UserSession], None]


class SessionCheck(NamedTuple):
    """Outcome of a shape check: either `session` or `error` is set."""

    ok: bool
    session: Optional[UserSession] = None
    error: Optional[str] = None


def validate_session(data: Any) -> SessionCheck:
    if isinstance(data, UserSession):
        # 代入で壊れている可能性があるので dump して検証し直す
        data = data.model_dump()
    if not isinstance(data, dict):
        return SessionCheck(ok=False, error="session is not an object")
    try:
        return SessionCheck(ok=True, session=UserSession.model_validate(data))
    except SchemaError as e:
        return SessionCheck(ok=False, error=str(e))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Which rooms this device has joined, and which one is open.

    The store never raises: storage and validation failures are logged and
    degrade to `False` or to an empty session. Every successful save first
    copies the previous in-memory session to the backup slot, then writes
    the primary slot, then notifies listeners in subscription order.
    """

    def __init__(self, storage, clock: Callable[[], datetime] = _utcnow):
        self.storage = storage
        self._clock = clock
        self._current: Optional[UserSession] = None
        self._listeners: List[SessionListener] = []

    # ─── storage helpers ───

    def _read(self, key: str) -> Optional[str]:
        try:
            return self.storage.get(key)
        except Exception as e:
            logger.warning("Failed to read session slot %s: %s", key, e)
            return None

    def _write(self, key: str, value: str) -> bool:
        try:
            self.storage.set(key, value)
            return True
        except Exception as e:
            logger.error("Failed to write session slot %s: %s", key, e)
            return False

    @staticmethod
    def _parse(raw: str) -> Any:
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Failed to parse session JSON: %s", e)
            return None

    def _write_backup(self, session: UserSession) -> None:
        envelope = {
            "session": session.model_dump(),
            "timestamp": self._clock().isoformat(),
            "version": BACKUP_VERSION,
        }
        self._write(BACKUP_KEY, json.dumps(envelope))

    def _restore_from_backup(self) -> Optional[UserSession]:
        raw = self._read(BACKUP_KEY)
        if not raw:
            return None
        envelope = self._parse(raw)
        if not isinstance(envelope, dict) or "session" not in envelope:
            return None
        check = validate_session(envelope["session"])
        if not check.ok:
            logger.warning("Backup session is invalid: %s", check.error)
            return None
        logger.info("Session restored from backup")
        return check.session

    def _persist(self, session: UserSession) -> None:
        # load 時の書き戻しは購読者に通知しない
        if self._current is not None:
            self._write_backup(self._current)
        self._write(SESSION_KEY, session.model_dump_json())
        self._current = session

    # ─── public API ───

    def load(self) -> UserSession:
        try:
            raw = self._read(SESSION_KEY)
            if raw:
                check = validate_session(self._parse(raw))
                if check.ok:
                    self._current = check.session
                    return check.session
                logger.warning("Invalid session data found, attempting backup restore")

            restored = self._restore_from_backup()
            if restored is not None:
                self._persist(restored)
                return restored

            empty = UserSession()
            self._persist(empty)
            return empty
        except Exception as e:
            logger.exception("Critical error loading session: %s", e)
            self._current = UserSession()
            return self._current

    def save(self, session: Union[UserSession, dict]) -> bool:
        try:
            check = validate_session(session)
            if not check.ok:
                logger.error("Invalid session data, cannot save: %s", check.error)
                return False

            if self._current is not None:
                self._write_backup(self._current)

            if not self._write(SESSION_KEY, check.session.model_dump_json()):
                return False

            self._current = check.session
            self._notify(check.session)
            return True
        except Exception as e:
            logger.exception("Error saving session: %s", e)
            return False

    def current_session(self) -> UserSession:
        if self._current is None:
            return self.load()
        return self._current

    def current_room(self) -> Optional[JoinedRoomRef]:
        session = self.current_session()
        if session.current_room_name is None:
            return None
        return next(
            (r for r in session.joined_rooms if r.name == session.current_room_name),
            None,
        )

    def add_room(self, ref: Union[JoinedRoomRef, dict]) -> bool:
        if isinstance(ref, dict):
            try:
                ref = JoinedRoomRef.model_validate(ref)
            except SchemaError as e:
                logger.error("Invalid room data: %s", e)
                return False
        elif not isinstance(ref, JoinedRoomRef):
            logger.error("Invalid room data: %r", ref)
            return False

        session = self.current_session().model_copy(deep=True)
        now = self._clock().isoformat()

        for i, existing in enumerate(session.joined_rooms):
            if existing.name == ref.name and existing.secret_key == ref.secret_key:
                session.joined_rooms[i] = existing.model_copy(update={"last_visited": now})
                break
        else:
            session.joined_rooms.append(
                ref.model_copy(update={"last_visited": ref.last_visited or now})
            )

        return self.save(session)

    def remove_room(self, name: str) -> bool:
        session = self.current_session().model_copy(deep=True)
        session.joined_rooms = [r for r in session.joined_rooms if r.name != name]
        if session.current_room_name == name:
            session.current_room_name = None
        return self.save(session)

    def set_current_room(self, name: Optional[str]) -> bool:
        session = self.current_session().model_copy(deep=True)

        if name is not None:
            index = next(
                (i for i, r in enumerate(session.joined_rooms) if r.name == name),
                None,
            )
            if index is None:
                logger.error("Cannot set current room: %s is not a joined room", name)
                return False
            session.joined_rooms[index] = session.joined_rooms[index].model_copy(
                update={"last_visited": self._clock().isoformat()}
            )

        session.current_room_name = name
        return self.save(session)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, session: UserSession) -> None:
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception as e:
                logger.exception("Error in session listener: %s", e)

    def backup_info(self) -> Optional[dict]:
        raw = self._read(BACKUP_KEY)
        if not raw:
            return None
        parsed = self._parse(raw)
        return parsed if isinstance(parsed, dict) else None

    def clear(self) -> None:
        for key in (SESSION_KEY, BACKUP_KEY):
            try:
                self.storage.remove(key)
            except Exception as e:
                logger.error("Error clearing session slot %s: %s", key, e)
        self._current = None
        logger.info("All session data cleared")


def build_session_store(directory) -> SessionStore:
    """Wire a store to on-disk slots; call once from the client's entry point."""
    return SessionStore(FileSessionStorage(directory))
