"""Expiry & restoration sweep."""

from __future__ import annotations

import json


def test_immediate_restored_after_window_expires(service, make_item, clock, at):
    """TV1: immediate A, then B scheduled 10:00-10:10 at 09:55."""
    a = service.create_item(make_item("A"))
    clock.set(at(9, 55))
    b = service.create_item(make_item("B", windows=[(at(10), at(10, 10))]))

    assert service.get_item(a.item_id).active is False
    assert service.get_item(b.item_id).windows[0].suppressed_item_ids == {a.item_id}

    assert service.resolve_for_device("TV1", at(10, 5)).item_id == b.item_id

    clock.set(at(10, 11))
    report = service.run_sweep()

    assert report.windows_expired == 1
    assert report.items_restored == 1
    assert report.items_deactivated == 1
    b_stored = service.get_item(b.item_id)
    assert b_stored.windows[0].active is False
    assert b_stored.active is False
    assert service.get_item(a.item_id).active is True
    assert service.resolve_for_device("TV1", at(10, 11)).item_id == a.item_id


def test_sweep_is_idempotent(service, make_item, clock, at):
    service.create_item(make_item("A"))
    service.create_item(make_item("B", windows=[(at(10), at(10, 10))]))
    clock.set(at(10, 11))

    first = service.run_sweep()
    snapshot = [item.to_dict() for item in service.list_items()]
    second = service.run_sweep()

    assert first.changed
    assert not second.changed
    assert [item.to_dict() for item in service.list_items()] == snapshot


def test_sweep_before_expiry_changes_nothing(service, make_item, at):
    a = service.create_item(make_item("A"))
    service.create_item(make_item("B", windows=[(at(10), at(11))]))

    report = service.run_sweep(at(10, 30))
    assert not report.changed
    assert service.get_item(a.item_id).active is False


def test_window_ending_exactly_now_is_not_expired(service, make_item, at):
    service.create_item(make_item("B", windows=[(at(10), at(11))]))
    assert service.run_sweep(at(11)).windows_expired == 0
    assert service.run_sweep(at(11, 0, 1)).windows_expired == 1


def test_item_with_remaining_window_stays_active(service, make_item, at):
    item = service.create_item(make_item(windows=[(at(10), at(11)), (at(12), at(13))]))
    report = service.run_sweep(at(11, 30))

    assert report.windows_expired == 1
    assert report.items_deactivated == 0
    assert service.get_item(item.item_id).active is True
    assert service.resolve_for_device("TV1", at(12, 30)).item_id == item.item_id


def test_paused_window_resumes_when_suppressor_expires(service, make_item, at):
    first = service.create_item(make_item("First", windows=[(at(10), at(13))]))
    second = service.create_item(make_item("Second", windows=[(at(10, 30), at(11))]))

    assert service.resolve_for_device("TV1", at(10, 45)).item_id == second.item_id

    report = service.run_sweep(at(11, 5))
    assert report.windows_resumed == 1
    assert service.get_item(first.item_id).active is True
    window = service.get_item(first.item_id).windows[0]
    assert window.active is True and window.paused_by == set()
    assert service.resolve_for_device("TV1", at(11, 30)).item_id == first.item_id
    assert service.get_item(second.item_id).active is False


def test_paused_item_is_not_retired_while_paused(service, make_item, at):
    first = service.create_item(make_item("First", windows=[(at(10), at(13))]))
    service.create_item(make_item("Second", windows=[(at(9, 30), at(12))]))

    report = service.run_sweep(at(10, 30))
    assert report.items_deactivated == 0
    assert service.get_item(first.item_id).active is True


def test_paused_window_that_expired_meanwhile_becomes_terminal(service, make_item, at):
    a = service.create_item(make_item("A"))
    first = service.create_item(make_item("First", windows=[(at(10), at(11))]))
    service.create_item(make_item("Second", windows=[(at(10), at(12))]))

    report = service.run_sweep(at(12, 1))

    window = service.get_item(first.item_id).windows[0]
    assert window.active is False
    assert window.paused_by == set()
    assert report.windows_resumed == 0
    assert report.windows_expired == 2
    # The expired window's own suppression of A is released too
    assert service.get_item(a.item_id).active is True
    assert service.get_item(first.item_id).active is False


def test_window_stays_paused_while_second_window_of_same_item_covers_it(service, make_item, at):
    """C 10:00-12:00, then D with 10:30-10:45 and 11:00-11:30."""
    c = service.create_item(make_item("C", windows=[(at(10), at(12))]))
    d = service.create_item(make_item("D", windows=[(at(10, 30), at(10, 45)), (at(11), at(11, 30))]))

    report = service.run_sweep(at(10, 46))
    assert report.windows_expired == 1
    assert report.windows_resumed == 0
    assert service.get_item(c.item_id).windows[0].is_paused
    assert service.resolve_for_device("TV1", at(11, 10)).item_id == d.item_id

    report = service.run_sweep(at(11, 31))
    assert report.windows_resumed == 1
    assert service.resolve_for_device("TV1", at(11, 45)).item_id == c.item_id


def test_window_stays_paused_while_newer_item_covers_it(service, make_item, at):
    """C 10:00-12:00, then D 10:30-10:45, then E 11:00-11:30."""
    c = service.create_item(make_item("C", windows=[(at(10), at(12))]))
    service.create_item(make_item("D", windows=[(at(10, 30), at(10, 45))]))
    e = service.create_item(make_item("E", windows=[(at(11), at(11, 30))]))

    report = service.run_sweep(at(10, 46))
    assert report.windows_resumed == 0
    assert service.resolve_for_device("TV1", at(11, 10)).item_id == e.item_id

    report = service.run_sweep(at(11, 31))
    assert report.windows_resumed == 1
    assert service.resolve_for_device("TV1", at(11, 45)).item_id == c.item_id


def test_successive_overriders_release_in_turn(service, make_item, at):
    c = service.create_item(make_item("C", windows=[(at(10), at(12))]))
    d = service.create_item(make_item("D", windows=[(at(10, 30), at(11, 30))]))
    e = service.create_item(make_item("E", windows=[(at(11), at(11, 45))]))

    # D's window was paused by E and expires without ever resuming
    report = service.run_sweep(at(11, 31))
    assert report.windows_expired == 1
    assert report.windows_resumed == 0
    assert service.get_item(d.item_id).active is False
    assert service.resolve_for_device("TV1", at(11, 40)).item_id == e.item_id

    report = service.run_sweep(at(11, 46))
    assert report.windows_expired == 1
    assert report.windows_resumed == 1
    assert service.resolve_for_device("TV1", at(11, 50)).item_id == c.item_id
    assert service.run_sweep(at(11, 46)).changed is False


def test_expired_paused_window_restores_its_suppressions_on_time(service, make_item, at):
    a = service.create_item(make_item("A"))
    service.create_item(make_item("First", windows=[(at(10), at(11))]))
    service.create_item(make_item("Second", windows=[(at(10, 30), at(12))]))

    # First ended at 11:00 while still paused; A comes back even though Second runs on
    report = service.run_sweep(at(11, 5))
    assert report.windows_expired == 1
    assert report.items_restored == 1
    assert service.get_item(a.item_id).active is True

    report = service.run_sweep(at(12, 1))
    assert report.windows_expired == 1
    assert report.windows_resumed == 0
    assert service.resolve_for_device("TV1", at(12, 1)).item_id == a.item_id


def test_missing_suppressed_item_is_counted(service, make_item, at, db_handler, caplog):
    a = service.create_item(make_item("A"))
    b = service.create_item(make_item("B", windows=[(at(10), at(11))]))
    # Remove A behind the service's back
    db_handler.delete_content_item(a.item_id)

    with caplog.at_level("WARNING"):
        report = service.run_sweep(at(11, 30))

    assert report.missing_item_ids == [a.item_id]
    assert report.windows_expired == 1
    assert service.get_item(b.item_id).windows[0].active is False
    assert "no longer exists" in caplog.text


def test_malformed_suppressed_ids_are_dropped(service, make_item, at, db_handler, caplog):
    a = service.create_item(make_item("A"))
    b = service.create_item(make_item("B", windows=[(at(10), at(11))]))
    conn = db_handler.get_db()
    conn.execute(
        "UPDATE ContentWindows SET suppressed_item_ids = ? WHERE item_id = ?",
        (json.dumps([a.item_id, "oops", None]), b.item_id),
    )
    conn.commit()

    with caplog.at_level("WARNING"):
        window = service.get_item(b.item_id).windows[0]
    assert window.suppressed_item_ids == {a.item_id}
    assert "malformed" in caplog.text

    report = service.run_sweep(at(11, 30))
    assert report.items_restored == 1
    assert report.missing_item_ids == []


def test_immediate_items_are_never_retired(service, make_item, at):
    item = service.create_item(make_item("Imm"))
    report = service.run_sweep(at(23))
    assert report.items_deactivated == 0
    assert service.get_item(item.item_id).active is True


def test_report_serializes(service, at):
    data = service.run_sweep(at(10)).to_dict()
    assert data["windows_expired"] == 0
    assert data["at"].startswith("2026-01-05T10:00")
