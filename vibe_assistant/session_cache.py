# vibe_assistant/session_cache.py

import copy
import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from vibe_assistant.errors import NotFoundError

logger = logging.getLogger("vibe_assistant")

SESSION_NOT_FOUND = "Сессия не найдена"

# fields a client may not overwrite through update()
_PROTECTED_FIELDS = {"id", "createdAt", "updatedAt"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _blank_wizard_state() -> dict:
    return {
        "currentStep": 1,
        "ideaDescription": None,
        "category": None,
        "categoryConfidence": None,
        "baseAnswers": {},
        "adaptiveQuestions": [],
        "adaptiveAnswers": {},
        "prd": None,
        "prompts": {},
        "projectGoal": None,
    }


class SessionStore:
    """
    In-memory wizard sessions keyed by UUID.

    - thread-safe (FastAPI runs sync handlers in a threadpool)
    - sessions expire ttl_seconds after creation; sweep_expired() removes them
    - callers always get copies, never the stored dicts
    """

    def __init__(self, ttl_seconds: int = 24 * 3600, clock: Optional[Callable[[], datetime]] = None):
        self.ttl_seconds = ttl_seconds
        self._clock = clock or _utcnow
        self._lock = threading.Lock()
        self._items: dict[str, dict] = {}

    def create(self) -> dict:
        now = self._clock()
        session = {
            "id": str(uuid.uuid4()),
            **_blank_wizard_state(),
            "createdAt": now,
            "updatedAt": now,
        }
        with self._lock:
            self._items[session["id"]] = session
            out = copy.deepcopy(session)
        logger.info("Session created: %s", session["id"])
        return out

    def get(self, session_id: str) -> Optional[dict]:
        with self._lock:
            session = self._items.get(str(session_id))
            if session is None:
                logger.warning("Session not found: %s", session_id)
                return None
            return copy.deepcopy(session)

    def update(self, session_id: str, fields: dict) -> dict:
        sid = str(session_id)
        with self._lock:
            session = self._items.get(sid)
            if session is None:
                raise NotFoundError(SESSION_NOT_FOUND)
            for key, value in (fields or {}).items():
                if key in _PROTECTED_FIELDS:
                    continue
                session[key] = copy.deepcopy(value)
            session["updatedAt"] = self._clock()
            out = copy.deepcopy(session)
        logger.info("Session updated: %s", sid)
        return out

    def reset(self, session_id: str) -> dict:
        sid = str(session_id)
        with self._lock:
            old = self._items.get(sid)
            if old is None:
                raise NotFoundError(SESSION_NOT_FOUND)
            session = {
                "id": sid,
                **_blank_wizard_state(),
                "createdAt": old["createdAt"],
                "updatedAt": self._clock(),
            }
            self._items[sid] = session
            out = copy.deepcopy(session)
        logger.info("Session reset: %s", sid)
        return out

    def delete(self, session_id: str) -> bool:
        with self._lock:
            deleted = self._items.pop(str(session_id), None) is not None
        if deleted:
            logger.info("Session deleted: %s", session_id)
        return deleted

    def all(self) -> list[dict]:
        with self._lock:
            return [copy.deepcopy(s) for s in self._items.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def stats(self) -> dict:
        by_step: dict[str, int] = {}
        by_category: dict[str, int] = {}
        by_goal: dict[str, int] = {}

        with self._lock:
            sessions = list(self._items.values())
            for s in sessions:
                step = str(s.get("currentStep"))
                by_step[step] = by_step.get(step, 0) + 1
                # update() stores arbitrary JSON; only string labels are counted
                category = s.get("category")
                if category and isinstance(category, str):
                    by_category[category] = by_category.get(category, 0) + 1
                goal = s.get("projectGoal")
                if goal and isinstance(goal, str):
                    by_goal[goal] = by_goal.get(goal, 0) + 1

        return {
            "total": len(sessions),
            "byStep": by_step,
            "byCategory": by_category,
            "byGoal": by_goal,
        }

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """
        Delete sessions created more than ttl_seconds ago.
        Returns how many entries were removed.
        """
        now = now or self._clock()
        max_age = timedelta(seconds=self.ttl_seconds)
        removed = 0
        with self._lock:
            expired = [k for k, v in self._items.items() if now - v["createdAt"] > max_age]
            for k in expired:
                del self._items[k]
                removed += 1
        return removed
