import numpy as np
import pytest

from rasteredit.domain.entities.image import Image
from rasteredit.infrastructure.sessions.session_repository import SessionNotFound, SessionRepository


def image(value=0):
    return Image.from_array(np.full((2, 3, 4), value, dtype=np.uint8))


def test_create_get_delete():
    repo = SessionRepository(store={})
    session = repo.create(image(), "image/png", original_filename="a.png")
    assert repo.get(session.id) is session
    assert repo.require(session.id) is session
    assert repo.list_ids() == [session.id]
    assert repo.delete(session.id)
    assert not repo.delete(session.id)
    with pytest.raises(SessionNotFound):
        repo.require(session.id)


def test_loading_new_source_destroys_history():
    repo = SessionRepository(store={})
    session = repo.create(image(0), "image/png")
    session.history.apply("invert", "Invert", {}, lambda img: image(255))
    replaced = repo.create(image(9), "image/jpeg", session_id=session.id)
    assert replaced.id == session.id
    assert len(replaced.history) == 1
    assert replaced.history.current_image.pixels[0, 0, 0] == 9


def test_history_cap_from_env(monkeypatch):
    monkeypatch.setenv("RASTEREDIT_MAX_HISTORY", "2")
    repo = SessionRepository(store={})
    session = repo.create(image(), "image/png")
    for _ in range(3):
        session.history.apply("invert", "Invert", {}, lambda img: image(1))
    assert len(session.history) == 2


def test_history_cap_disabled(monkeypatch):
    monkeypatch.setenv("RASTEREDIT_MAX_HISTORY", "0")
    repo = SessionRepository(store={})
    session = repo.create(image(), "image/png")
    for _ in range(40):
        session.history.apply("invert", "Invert", {}, lambda img: image(1))
    assert len(session.history) == 41



def test_idle_sessions_expire(monkeypatch):
    monkeypatch.setenv("RASTEREDIT_SESSION_TTL", "60")
    repo = SessionRepository(store={})
    idle = repo.create(image(), "image/png")
    busy = repo.create(image(), "image/png")
    fresh = repo.create(image(), "image/png")
    idle.last_access -= 120
    busy.last_access -= 120
    busy.processing = True
    assert repo.purge_expired() == 1
    assert repo.get(idle.id) is None
    assert repo.get(busy.id) is busy
    assert repo.get(fresh.id) is fresh


def test_access_refreshes_idle_clock(monkeypatch):
    monkeypatch.setenv("RASTEREDIT_SESSION_TTL", "60")
    repo = SessionRepository(store={})
    session = repo.create(image(), "image/png")
    session.last_access -= 30
    repo.require(session.id)
    assert repo.purge_expired(now=session.last_access + 59) == 0
    assert repo.purge_expired(now=session.last_access + 61) == 1


def test_ttl_zero_keeps_sessions(monkeypatch):
    monkeypatch.setenv("RASTEREDIT_SESSION_TTL", "0")
    repo = SessionRepository(store={})
    session = repo.create(image(), "image/png")
    session.last_access -= 10**6
    assert repo.purge_expired() == 0
    assert repo.get(session.id) is session
