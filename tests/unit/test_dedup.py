"""Tests for the dedup gate."""

from unittest.mock import MagicMock

from apps.extractor.dedup import DedupGate


def test_accepts_unknown_event() -> None:
    events = MagicMock()
    events.exists.return_value = False

    assert DedupGate(events).accept("t1", "e1") is True
    events.exists.assert_called_once_with("t1", "e1")


def test_rejects_stored_event() -> None:
    events = MagicMock()
    events.exists.return_value = True

    assert DedupGate(events).accept("t1", "e1") is False


def test_rejects_repeat_within_run_without_store_lookup() -> None:
    events = MagicMock()
    events.exists.return_value = False
    gate = DedupGate(events)

    assert gate.accept("t1", "e1") is True
    assert gate.accept("t1", "e1") is False
    assert events.exists.call_count == 1


def test_identity_is_tenant_scoped() -> None:
    events = MagicMock()
    events.exists.return_value = False
    gate = DedupGate(events)

    assert gate.accept("t1", "e1") is True
    assert gate.accept("t2", "e1") is True
