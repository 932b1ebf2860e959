"""
Tests for event lifecycle operations on the ledger core.
"""

import pytest

from ticket_ledger.ledger import Ledger, LedgerLimits
from ticket_ledger.ledger.errors import (
    EventAlreadyCancelled,
    EventAlreadyCompleted,
    EventNotCompleted,
    EventNotFound,
    InvalidInput,
    NotOrganizer,
    NothingToWithdraw,
    TransferFailed,
)
from tests.conftest import ALICE, BOB, ORGANIZER


def test_create_event_assigns_sequential_ids(ledger: Ledger):
    first = ledger.create_event(ORGANIZER, "Opening Night", 10, 5, "QmFirst")
    second = ledger.create_event(ALICE, "Closing Night", 20, 3, "QmSecond")

    assert (first, second) == (0, 1)
    assert ledger.get_event_count() == 2


def test_create_event_initial_state(ledger: Ledger, concert: int):
    event = ledger.get_event(concert)

    assert event.organizer == ORGANIZER
    assert event.price == 50
    assert event.total_tickets == 2
    assert event.available_tickets == 2
    assert event.tickets_sold == 0
    assert event.escrowed_balance == 0
    assert event.active is True
    assert not event.cancelled
    assert not event.completed


def test_free_event_is_allowed(ledger: Ledger):
    event_id = ledger.create_event(ORGANIZER, "Meetup", 0, 10, "QmFree")
    ticket_id = ledger.buy_ticket(ALICE, event_id, 0)

    assert ledger.get_ticket(ticket_id).owner == ALICE
    assert ledger.get_event(event_id).escrowed_balance == 0


@pytest.mark.parametrize(
    "name, price, total, cid",
    [
        ("", 10, 5, "QmCid"),
        ("   ", 10, 5, "QmCid"),
        ("x" * 201, 10, 5, "QmCid"),
        ("Show", 10, 0, "QmCid"),
        ("Show", 10, 1_000_001, "QmCid"),
        ("Show", -1, 5, "QmCid"),
        ("Show", 10, 5, ""),
        ("Show", 10, 5, "Q" * 1001),
    ],
)
def test_create_event_rejects_invalid_input(ledger: Ledger, name, price, total, cid):
    with pytest.raises(InvalidInput):
        ledger.create_event(ORGANIZER, name, price, total, cid)
    assert ledger.get_event_count() == 0


def test_create_event_respects_configured_limits():
    ledger = Ledger(limits=LedgerLimits(max_tickets_per_event=10, max_event_name_length=5))

    with pytest.raises(InvalidInput):
        ledger.create_event(ORGANIZER, "Show", 1, 11, "QmCid")
    with pytest.raises(InvalidInput):
        ledger.create_event(ORGANIZER, "Concert", 1, 5, "QmCid")
    assert ledger.create_event(ORGANIZER, "Show", 1, 10, "QmCid") == 0


def test_get_unknown_event(ledger: Ledger):
    with pytest.raises(EventNotFound):
        ledger.get_event(42)


def test_get_event_returns_a_copy(ledger: Ledger, concert: int):
    snapshot = ledger.get_event(concert)
    snapshot.available_tickets = 0

    assert ledger.get_event(concert).available_tickets == 2


def test_cancel_event_only_by_organizer(ledger: Ledger, concert: int):
    with pytest.raises(NotOrganizer):
        ledger.cancel_event(ALICE, concert)
    assert not ledger.get_event(concert).cancelled


def test_cancel_event_twice(ledger: Ledger, concert: int):
    ledger.cancel_event(ORGANIZER, concert)

    with pytest.raises(EventAlreadyCancelled):
        ledger.cancel_event(ORGANIZER, concert)


def test_cancelled_and_completed_are_exclusive(ledger: Ledger, concert: int):
    ledger.cancel_event(ORGANIZER, concert)
    with pytest.raises(EventAlreadyCancelled):
        ledger.complete_event(ORGANIZER, concert)

    other = ledger.create_event(ORGANIZER, "Encore", 50, 2, "QmEncore")
    ledger.complete_event(ORGANIZER, other)
    with pytest.raises(EventAlreadyCompleted):
        ledger.cancel_event(ORGANIZER, other)
    with pytest.raises(EventAlreadyCompleted):
        ledger.complete_event(ORGANIZER, other)


def test_cancel_unknown_event(ledger: Ledger):
    with pytest.raises(EventNotFound):
        ledger.cancel_event(ORGANIZER, 7)


def test_withdraw_pays_escrow_exactly_once(ledger: Ledger, concert: int, transfer):
    ledger.buy_ticket(ALICE, concert, 50)
    ledger.buy_ticket(BOB, concert, 50)
    ledger.complete_event(ORGANIZER, concert)

    assert ledger.withdraw_earnings(ORGANIZER, concert) == 100
    assert transfer.total_to(ORGANIZER) == 100
    assert ledger.get_event(concert).escrowed_balance == 0

    with pytest.raises(NothingToWithdraw):
        ledger.withdraw_earnings(ORGANIZER, concert)
    assert transfer.total_to(ORGANIZER) == 100


def test_withdraw_requires_completed_event(ledger: Ledger, concert: int):
    ledger.buy_ticket(ALICE, concert, 50)

    with pytest.raises(EventNotCompleted):
        ledger.withdraw_earnings(ORGANIZER, concert)

    ledger.cancel_event(ORGANIZER, concert)
    with pytest.raises(EventNotCompleted):
        ledger.withdraw_earnings(ORGANIZER, concert)


def test_withdraw_only_by_organizer(ledger: Ledger, concert: int):
    ledger.buy_ticket(ALICE, concert, 50)
    ledger.complete_event(ORGANIZER, concert)

    with pytest.raises(NotOrganizer):
        ledger.withdraw_earnings(ALICE, concert)
    assert ledger.get_event(concert).escrowed_balance == 50


def test_withdraw_failed_transfer_keeps_escrow(ledger: Ledger, concert: int, transfer):
    ledger.buy_ticket(ALICE, concert, 50)
    ledger.complete_event(ORGANIZER, concert)
    transfer.fail = True

    with pytest.raises(TransferFailed):
        ledger.withdraw_earnings(ORGANIZER, concert)
    assert ledger.get_event(concert).escrowed_balance == 50

    transfer.fail = False
    assert ledger.withdraw_earnings(ORGANIZER, concert) == 50


def test_list_events_pages_in_id_order(ledger: Ledger):
    for i in range(5):
        ledger.create_event(ORGANIZER, f"Show {i}", i, 1, f"QmShow{i}")

    page = ledger.list_events(offset=2, limit=2)
    assert [e.id for e in page] == [2, 3]
    assert [e.id for e in ledger.list_events(offset=4, limit=10)] == [4]
    assert ledger.list_events(offset=9, limit=2) == []
