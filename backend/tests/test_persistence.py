"""
Tests for write-through persistence, hydration at startup, and recovery
when the database rejects a write.
"""

import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_ledger.ledger import LedgerLimits
from ticket_ledger.ledger.errors import SoldOut, TicketRefunded
from ticket_ledger.models import Event, LedgerEntry, Ticket
from ticket_ledger.services import ledger_repository
from ticket_ledger.services.ledger_service import LedgerService
from tests.conftest import ALICE, BOB, ORGANIZER, RecordingTransfer


async def _seed(service: LedgerService, db: AsyncSession) -> int:
    event_id = await service.execute(db, "create_event", ORGANIZER, "Persisted", 50, 2, "QmPersisted")
    first = await service.execute(db, "buy_ticket", ALICE, event_id, 50)
    await service.execute(db, "transfer_ticket", ALICE, first, BOB)
    await service.execute(db, "buy_ticket", ALICE, event_id, 50)
    return event_id


@pytest.mark.asyncio
async def test_operations_are_written_through(ledger_service: LedgerService, db_session: AsyncSession):
    event_id = await _seed(ledger_service, db_session)

    row = await db_session.get(Event, event_id)
    assert row.available_tickets == 0
    assert row.escrowed_balance == 100

    owners = (await db_session.execute(select(Ticket.owner).order_by(Ticket.id))).scalars().all()
    assert owners == [BOB, ALICE]

    entries = (await db_session.execute(select(func.count()).select_from(LedgerEntry))).scalar_one()
    assert entries == 4


@pytest.mark.asyncio
async def test_rejected_operation_writes_nothing(ledger_service: LedgerService, db_session: AsyncSession):
    event_id = await _seed(ledger_service, db_session)

    with pytest.raises(SoldOut):
        await ledger_service.execute(db_session, "buy_ticket", ORGANIZER, event_id, 50)

    entries = (await db_session.execute(select(func.count()).select_from(LedgerEntry))).scalar_one()
    assert entries == 4


@pytest.mark.asyncio
async def test_restart_hydrates_same_state(ledger_service: LedgerService, db_session: AsyncSession):
    event_id = await _seed(ledger_service, db_session)
    await ledger_service.execute(db_session, "cancel_event", ORGANIZER, event_id)
    await ledger_service.execute(db_session, "refund_ticket", BOB, 0)

    restarted = await LedgerService.start(db_session, LedgerLimits(), persistence_enabled=True)
    before, after = ledger_service.ledger, restarted.ledger

    original = before.get_event(event_id)
    restored = after.get_event(event_id)
    assert restored.escrowed_balance == original.escrowed_balance == 50
    assert restored.cancelled and not restored.completed
    assert restored.created_at == original.created_at

    assert after.get_ticket(0).is_refunded
    assert after.get_my_tickets(BOB) == [0]
    assert after.get_my_tickets(ALICE) == [1]
    assert after.next_notification_sequence() == before.next_notification_sequence()
    assert [n.kind for n in after.get_notifications()] == [n.kind for n in before.get_notifications()]


@pytest.mark.asyncio
async def test_failed_write_rolls_back_memory(
    ledger_service: LedgerService, db_session: AsyncSession, monkeypatch
):
    event_id = await ledger_service.execute(db_session, "create_event", ORGANIZER, "Flaky", 50, 2, "QmFlaky")

    async def broken_save(*args, **kwargs):
        raise SQLAlchemyError("database unavailable")

    monkeypatch.setattr(ledger_repository, "save_changes", broken_save)

    with pytest.raises(SQLAlchemyError):
        await ledger_service.execute(db_session, "buy_ticket", ALICE, event_id, 50)

    # the purchase disappears from memory as well as from disk
    assert not ledger_service.stale
    assert ledger_service.ledger.get_ticket_count() == 0
    assert ledger_service.ledger.get_event(event_id).available_tickets == 2


@pytest.mark.asyncio
async def test_failed_reload_marks_service_stale(
    ledger_service: LedgerService, db_session: AsyncSession, monkeypatch
):
    event_id = await ledger_service.execute(db_session, "create_event", ORGANIZER, "Flaky", 50, 2, "QmFlaky")
    real_load = ledger_repository.load_state

    async def broken(*args, **kwargs):
        raise SQLAlchemyError("database unavailable")

    monkeypatch.setattr(ledger_repository, "save_changes", broken)
    monkeypatch.setattr(ledger_repository, "load_state", broken)

    with pytest.raises(SQLAlchemyError):
        await ledger_service.execute(db_session, "buy_ticket", ALICE, event_id, 50)
    assert ledger_service.stale

    monkeypatch.setattr(ledger_repository, "load_state", real_load)
    assert await ledger_service.read(db_session, "get_ticket_count") == 0
    assert not ledger_service.stale


@pytest.mark.asyncio
async def test_persistence_disabled_keeps_memory_only(db_session: AsyncSession):
    service = await LedgerService.start(None, LedgerLimits(), persistence_enabled=False)
    await service.execute(db_session, "create_event", ORGANIZER, "Ephemeral", 1, 1, "QmEphemeral")

    assert service.ledger.get_event_count() == 1
    rows = (await db_session.execute(select(func.count()).select_from(Event))).scalar_one()
    assert rows == 0


async def _refundable(service: LedgerService, db: AsyncSession) -> int:
    """Cancelled event (price 50) where ALICE holds ticket 0."""
    event_id = await service.execute(db, "create_event", ORGANIZER, "Called off", 50, 2, "QmCalledOff")
    await service.execute(db, "buy_ticket", ALICE, event_id, 50)
    await service.execute(db, "cancel_event", ORGANIZER, event_id)
    return event_id


@pytest.mark.asyncio
async def test_failed_refund_write_pays_nothing(
    db_session: AsyncSession, transfer: RecordingTransfer, monkeypatch
):
    service = await LedgerService.start(db_session, LedgerLimits(), transfer=transfer)
    event_id = await _refundable(service, db_session)
    real_save = ledger_repository.save_changes

    async def broken_save(*args, **kwargs):
        raise SQLAlchemyError("database unavailable")

    monkeypatch.setattr(ledger_repository, "save_changes", broken_save)
    with pytest.raises(SQLAlchemyError):
        await service.execute(db_session, "refund_ticket", ALICE, 0)

    assert transfer.payouts == []
    assert not service.ledger.get_ticket(0).is_refunded
    assert service.ledger.get_event(event_id).escrowed_balance == 50

    monkeypatch.setattr(ledger_repository, "save_changes", real_save)
    assert await service.execute(db_session, "refund_ticket", ALICE, 0) == 50
    with pytest.raises(TicketRefunded):
        await service.execute(db_session, "refund_ticket", ALICE, 0)

    assert transfer.payouts == [(ALICE, 50)]
    assert await ledger_repository.pending_payouts(db_session) == []


@pytest.mark.asyncio
async def test_refused_payout_stays_queued(db_session: AsyncSession, transfer: RecordingTransfer):
    service = await LedgerService.start(db_session, LedgerLimits(), transfer=transfer)
    await _refundable(service, db_session)

    transfer.fail = True
    assert await service.execute(db_session, "refund_ticket", ALICE, 0) == 50
    assert service.ledger.get_ticket(0).is_refunded
    assert transfer.payouts == []

    pending = await ledger_repository.pending_payouts(db_session)
    assert [(p.recipient, p.amount, p.reason) for p in pending] == [(ALICE, 50, "refund")]

    transfer.fail = False
    assert await service.settle_pending(db_session) == 1
    assert await service.settle_pending(db_session) == 0
    assert transfer.payouts == [(ALICE, 50)]


@pytest.mark.asyncio
async def test_restart_dispatches_queued_payouts(
    ledger_service: LedgerService, db_session: AsyncSession, transfer: RecordingTransfer
):
    await _refundable(ledger_service, db_session)
    await ledger_service.execute(db_session, "refund_ticket", ALICE, 0)

    party = await ledger_service.execute(db_session, "create_event", ORGANIZER, "Party", 30, 5, "QmParty")
    await ledger_service.execute(db_session, "buy_ticket", BOB, party, 30)
    await ledger_service.execute(db_session, "complete_event", ORGANIZER, party)
    await ledger_service.execute(db_session, "withdraw_earnings", ORGANIZER, party)

    # no payment rail configured: both payouts wait in the outbox
    assert len(await ledger_repository.pending_payouts(db_session)) == 2

    await LedgerService.start(db_session, LedgerLimits(), transfer=transfer)

    assert transfer.payouts == [(ALICE, 50), (ORGANIZER, 30)]
    assert await ledger_repository.pending_payouts(db_session) == []


@pytest.mark.asyncio
async def test_read_waits_for_write_in_flight(
    ledger_service: LedgerService, db_session: AsyncSession, monkeypatch
):
    event_id = await ledger_service.execute(db_session, "create_event", ORGANIZER, "Slow", 50, 2, "QmSlow")
    entered = asyncio.Event()
    release = asyncio.Event()

    async def held_save(*args, **kwargs):
        entered.set()
        await release.wait()
        raise SQLAlchemyError("database unavailable")

    monkeypatch.setattr(ledger_repository, "save_changes", held_save)

    write = asyncio.create_task(ledger_service.execute(db_session, "buy_ticket", ALICE, event_id, 50))
    await entered.wait()
    # the purchase is applied in memory but not yet durable
    assert ledger_service.ledger.get_ticket_count() == 1

    read = asyncio.create_task(ledger_service.read(db_session, "get_ticket_count"))
    await asyncio.sleep(0)
    assert not read.done()

    release.set()
    with pytest.raises(SQLAlchemyError):
        await write
    assert await read == 0


@pytest.mark.asyncio
async def test_persistence_disabled_pays_inline(transfer: RecordingTransfer):
    service = await LedgerService.start(None, LedgerLimits(), persistence_enabled=False, transfer=transfer)
    event_id = await service.execute(None, "create_event", ORGANIZER, "Ephemeral", 50, 1, "QmEphemeral")
    await service.execute(None, "buy_ticket", ALICE, event_id, 50)
    await service.execute(None, "cancel_ticket", ALICE, 0)

    assert transfer.payouts == [(ALICE, 50)]
