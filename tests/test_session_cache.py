"""Tests for the in-memory session store (vibe_assistant.session_cache)."""

from datetime import datetime, timedelta, timezone

import pytest

from vibe_assistant.errors import NotFoundError
from vibe_assistant.session_cache import SessionStore

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sessions(clock: FakeClock) -> SessionStore:
    return SessionStore(ttl_seconds=24 * 3600, clock=clock)


class TestSessionStore:
    def test_create_defaults(self, sessions):
        session = sessions.create()
        assert session["currentStep"] == 1
        assert session["ideaDescription"] is None
        assert session["baseAnswers"] == {}
        assert session["adaptiveQuestions"] == []
        assert session["prompts"] == {}
        assert session["createdAt"] == session["updatedAt"] == T0

    def test_ids_are_unique(self, sessions):
        assert sessions.create()["id"] != sessions.create()["id"]

    def test_get_missing_returns_none(self, sessions):
        assert sessions.get("missing") is None

    def test_get_returns_copy(self, sessions):
        sid = sessions.create()["id"]
        sessions.get(sid)["baseAnswers"]["audience"] = "x"
        assert sessions.get(sid)["baseAnswers"] == {}

    def test_update_merges_and_protects_identity(self, sessions, clock):
        session = sessions.create()
        clock.advance(minutes=5)
        updated = sessions.update(session["id"], {
            "currentStep": 3,
            "category": "BOT",
            "id": "hijack",
            "createdAt": T0 - timedelta(days=10),
        })
        assert updated["id"] == session["id"]
        assert updated["currentStep"] == 3
        assert updated["category"] == "BOT"
        assert updated["createdAt"] == T0
        assert updated["updatedAt"] == T0 + timedelta(minutes=5)

    def test_update_missing_raises(self, sessions):
        with pytest.raises(NotFoundError):
            sessions.update("missing", {"currentStep": 2})

    def test_reset_keeps_created_at(self, sessions, clock):
        session = sessions.create()
        sessions.update(session["id"], {"currentStep": 5, "prd": "# PRD"})
        clock.advance(hours=1)
        reset = sessions.reset(session["id"])
        assert reset["currentStep"] == 1
        assert reset["prd"] is None
        assert reset["createdAt"] == T0
        assert reset["updatedAt"] == T0 + timedelta(hours=1)

    def test_reset_missing_raises(self, sessions):
        with pytest.raises(NotFoundError):
            sessions.reset("missing")

    def test_delete(self, sessions):
        sid = sessions.create()["id"]
        assert sessions.delete(sid) is True
        assert sessions.delete(sid) is False
        assert sessions.get(sid) is None

    def test_stats(self, sessions):
        a = sessions.create()["id"]
        b = sessions.create()["id"]
        sessions.create()
        sessions.update(a, {"currentStep": 2, "category": "BOT", "projectGoal": "Портфолио"})
        sessions.update(b, {"currentStep": 2, "category": "BOT"})

        stats = sessions.stats()
        assert stats["total"] == 3
        assert stats["byStep"] == {"1": 1, "2": 2}
        assert stats["byCategory"] == {"BOT": 2}
        assert stats["byGoal"] == {"Портфолио": 1}

    def test_stats_skips_unhashable_labels(self, sessions):
        sid = sessions.create()["id"]
        sessions.update(sid, {"category": {"name": "WEB_APP"}, "projectGoal": ["Портфолио"]})
        stats = sessions.stats()
        assert stats["total"] == 1
        assert stats["byCategory"] == {}
        assert stats["byGoal"] == {}

    def test_sweep_uses_creation_time(self, sessions, clock):
        old = sessions.create()["id"]
        clock.advance(hours=23)
        young = sessions.create()["id"]
        sessions.update(old, {"currentStep": 2})

        clock.advance(hours=2)
        assert sessions.sweep_expired() == 1
        assert sessions.get(old) is None
        assert sessions.get(young) is not None

    def test_sweep_with_explicit_now(self, sessions):
        sessions.create()
        assert sessions.sweep_expired(now=T0 + timedelta(hours=24)) == 0
        assert sessions.sweep_expired(now=T0 + timedelta(hours=24, seconds=1)) == 1
        assert len(sessions) == 0
