"""What a device shows at a given instant."""

from __future__ import annotations

import pytest

from signage.domain.exceptions import NotFoundError


def test_nothing_to_show(service):
    assert service.resolve_for_device("TV1") is None


def test_immediate_item_is_shown(service, make_item):
    item = service.create_item(make_item())
    assert service.resolve_for_device("TV1").item_id == item.item_id


def test_inactive_immediate_is_not_shown(service, make_item):
    service.create_item(make_item(active=False))
    assert service.resolve_for_device("TV1") is None


def test_scheduled_beats_immediate(service, make_item, at, catalog):
    scheduled = service.create_item(make_item("S", windows=[(at(10), at(11))]))
    immediate = service.create_item(make_item("I"))
    assert catalog.find_by_id(immediate.item_id).active

    assert service.resolve_for_device("TV1", at(10, 30)).item_id == scheduled.item_id
    assert service.resolve_for_device("TV1", at(9, 30)).item_id == immediate.item_id


@pytest.mark.parametrize("hour, minute", [(10, 0), (11, 0)])
def test_window_boundaries_are_not_active(service, make_item, at, hour, minute):
    service.create_item(make_item(windows=[(at(10), at(11))]))
    assert service.resolve_for_device("TV1", at(hour, minute)) is None


def test_earliest_start_wins(service, make_item, at, catalog):
    # Created inactive so neither pauses the other, then enabled directly in storage
    late = service.create_item(make_item("Late", windows=[(at(10, 30), at(12))], active=False))
    early = service.create_item(make_item("Early", windows=[(at(10), at(12))], active=False))
    catalog.set_active(late.item_id, True)
    catalog.set_active(early.item_id, True)

    assert service.resolve_for_device("TV1", at(11)).item_id == early.item_id


def test_equal_start_falls_back_to_lowest_id(service, make_item, at, catalog):
    first = service.create_item(make_item("First", windows=[(at(10), at(12))], active=False))
    second = service.create_item(make_item("Second", windows=[(at(10), at(11))], active=False))
    catalog.set_active(second.item_id, True)
    catalog.set_active(first.item_id, True)

    assert service.resolve_for_device("TV1", at(10, 30)).item_id == first.item_id


def test_lowest_id_among_immediates(service, make_item, catalog):
    first = service.create_item(make_item("First", active=False))
    second = service.create_item(make_item("Second", active=False))
    catalog.set_active(second.item_id, True)
    catalog.set_active(first.item_id, True)

    assert service.resolve_for_device("TV1").item_id == first.item_id


def test_classification_overrides_stale_flag(service, make_item, at):
    """A window still flagged active but already over is not shown, even before the sweep."""
    immediate = service.create_item(make_item("I", devices=("TV2",)))
    service.create_item(make_item("S", devices=("TV1",), windows=[(at(10), at(11))]))
    assert service.resolve_for_device("TV1", at(11, 30)) is None
    assert service.resolve_for_device("TV2", at(11, 30)).item_id == immediate.item_id


def test_inactive_item_window_is_ignored(service, make_item, at, catalog):
    item = service.create_item(make_item(windows=[(at(10), at(11))]))
    catalog.set_active(item.item_id, False)
    assert service.resolve_for_device("TV1", at(10, 30)) is None


def test_display_name_is_accepted(service, make_item):
    item = service.create_item(make_item(devices=("TV3",)))
    assert service.resolve_for_device("TV 3").item_id == item.item_id


def test_unknown_device(service):
    with pytest.raises(NotFoundError):
        service.resolve_for_device("Lobby")


def test_uses_clock_when_now_omitted(service, make_item, at, clock):
    item = service.create_item(make_item(windows=[(at(10), at(11))]))
    assert service.resolve_for_device("TV1") is None
    clock.set(at(10, 15))
    assert service.resolve_for_device("TV1").item_id == item.item_id
