from __future__ import annotations

import pytest

from api.services.memory_view import MemoryView
from pytests.common import FakeClock, make_record


def test_empty_until_set():
    view = MemoryView(clock=FakeClock())
    assert view.get() is None
    assert view.has_data() is False
    assert view.expires_in() is None


def test_get_before_and_after_expiry():
    clock = FakeClock()
    view = MemoryView(clock=clock)
    view.set([make_record(name="A")], ttl_seconds=300)

    clock.advance(299)
    assert [r.name for r in view.get()] == ["A"]
    assert view.expires_in() == pytest.approx(1.0)

    clock.advance(1)
    assert view.get() is None
    assert view.expires_in() is None


def test_set_overwrites_and_restarts_ttl():
    clock = FakeClock()
    view = MemoryView(clock=clock)
    view.set([make_record(name="old")], ttl_seconds=10)
    clock.advance(8)
    view.set([make_record(name="new")], ttl_seconds=10)
    clock.advance(8)
    assert [r.name for r in view.get()] == ["new"]


def test_invalidate_clears_slot():
    view = MemoryView(clock=FakeClock())
    view.set([make_record()], ttl_seconds=10)
    view.invalidate()
    assert view.get() is None


def test_empty_list_is_a_hit_not_a_miss():
    view = MemoryView(clock=FakeClock())
    view.set([], ttl_seconds=10)
    assert view.get() == []


def test_returned_list_is_a_copy():
    view = MemoryView(clock=FakeClock())
    view.set([make_record(name="A")], ttl_seconds=10)
    got = view.get()
    got.clear()
    assert len(view.get()) == 1


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        MemoryView().set([], ttl_seconds=0)
