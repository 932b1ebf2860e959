"""
Ledger service: the single writer in front of the ledger core.

SINGLE-WRITER GATE
==================

The `Ledger` already serializes its own methods. The service adds one
asyncio lock around "apply in memory + persist", and reads take the same
lock, so the durable tables see operations in exactly the order the ledger
committed them and no request can observe a state that is about to be
rolled back.

WRITE-THROUGH & RECOVERY
========================

After an operation commits in memory, the notifications it produced name
every record it touched. Those records are upserted together with the
notifications in one DB transaction.

If that transaction fails, the in-memory ledger is ahead of the database.
The service rolls the transaction back and reloads the ledger from the
tables, so the failed operation disappears everywhere, then re-raises. If
the reload fails too, the service is marked stale and reloads before it
serves anything else.

PAYOUTS
=======

With persistence on, the core runs without a transfer hook. Refunds and
withdrawals are queued in the `payouts` outbox inside the same transaction
and handed to the payment rail only after the commit. A write that fails
therefore never has money attached to it, and a payout the rail refuses
stays queued for `settle_pending`. Without persistence the core calls the
hook itself, before mutating, as it does standalone.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_ledger.core.config import Settings
from ticket_ledger.core.logging import get_logger
from ticket_ledger.core.metrics import (
    payouts_deferred,
    persistence_failures,
    record_ledger_size,
    record_operation,
    record_payout,
    tickets_minted,
)
from ticket_ledger.ledger import Ledger, LedgerError, LedgerLimits, Notification, NotificationKind
from ticket_ledger.services import ledger_repository
from ticket_ledger.services.ledger_repository import PendingPayout

logger = get_logger(__name__)

TransferFn = Callable[[str, int], None]

PAYOUT_REASONS = {
    NotificationKind.TICKET_CANCELLED: "cancellation",
    NotificationKind.TICKET_REFUNDED: "refund",
    NotificationKind.EARNINGS_WITHDRAWN: "withdrawal",
}

PERSISTENCE_ERRORS = (SQLAlchemyError, OSError)


def limits_from_settings(settings: Settings) -> LedgerLimits:
    return LedgerLimits(
        max_event_name_length=settings.MAX_EVENT_NAME_LENGTH,
        max_metadata_cid_length=settings.MAX_METADATA_CID_LENGTH,
        max_tickets_per_event=settings.MAX_TICKETS_PER_EVENT,
        max_tickets_per_account=settings.MAX_TICKETS_PER_ACCOUNT,
        max_identity_length=settings.MAX_IDENTITY_LENGTH,
    )


def payouts_for(notes: list[Notification]) -> list[PendingPayout]:
    """Value each committed notification owes. The caller of a payout operation is its recipient."""
    return [
        PendingPayout(
            sequence=note.sequence,
            recipient=note.actor,
            amount=note.amount,
            reason=PAYOUT_REASONS[note.kind],
        )
        for note in notes
        if note.kind in PAYOUT_REASONS and note.amount
    ]


class LedgerService:
    def __init__(
        self,
        ledger: Ledger,
        persistence_enabled: bool = True,
        transfer: Optional[TransferFn] = None,
    ):
        self.ledger = ledger
        self.persistence_enabled = persistence_enabled
        self._transfer = transfer
        self._write_lock = asyncio.Lock()
        self._stale = False

    @classmethod
    async def start(
        cls,
        db: Optional[AsyncSession],
        limits: LedgerLimits,
        persistence_enabled: bool = True,
        transfer: Optional[TransferFn] = None,
    ) -> "LedgerService":
        """
        Create the service once at startup. With persistence the ledger is
        hydrated from the database and payouts left pending by a previous
        run are dispatched.
        """
        core_transfer = None if persistence_enabled else transfer
        service = cls(Ledger(limits=limits, transfer=core_transfer), persistence_enabled, transfer)
        if persistence_enabled:
            await service.reload(db)
            await service.settle_pending(db)
        return service

    @property
    def stale(self) -> bool:
        return self._stale

    async def reload(self, db: AsyncSession) -> None:
        """Replace the in-memory ledger with the persisted state."""
        events, tickets, notifications = await ledger_repository.load_state(db)
        self.ledger = Ledger.from_records(
            events,
            tickets,
            notifications,
            limits=self.ledger.limits,
        )
        self._stale = False
        record_ledger_size(len(events), len(tickets))
        logger.info(
            "ledger_loaded",
            events=len(events),
            tickets=len(tickets),
            notifications=len(notifications),
        )

    async def _ensure_fresh(self, db: AsyncSession) -> None:
        if self._stale:
            await self.reload(db)

    async def execute(self, db: AsyncSession, operation: str, *args) -> Any:
        """Run one mutating ledger operation, persist its effects, then pay out."""
        start = time.perf_counter()

        async with self._write_lock:
            await self._ensure_fresh(db)
            method = getattr(self.ledger, operation)
            before = self.ledger.next_notification_sequence()
            try:
                result = method(*args)
            except LedgerError as exc:
                record_operation(operation, exc.code, time.perf_counter() - start)
                raise

            notes = self.ledger.get_notifications(after=before - 1)
            if self.persistence_enabled and notes:
                payouts = payouts_for(notes)
                await self._persist(db, operation, notes, payouts)
                await self._settle(db, payouts)

        record_operation(operation, "committed", time.perf_counter() - start)
        self._observe(notes)
        return result

    async def read(self, db: AsyncSession, query: str, *args) -> Any:
        """Run a read-only ledger query against committed state only."""
        async with self._write_lock:
            await self._ensure_fresh(db)
            return getattr(self.ledger, query)(*args)

    async def settle_pending(self, db: AsyncSession) -> int:
        """Dispatch every queued payout. Returns how many the rail accepted."""
        async with self._write_lock:
            return await self._settle(db, await ledger_repository.pending_payouts(db))

    async def _persist(
        self,
        db: AsyncSession,
        operation: str,
        notes: list[Notification],
        payouts: list[PendingPayout],
    ) -> None:
        event_ids = sorted({note.event_id for note in notes})
        ticket_ids = sorted({note.ticket_id for note in notes if note.ticket_id is not None})
        try:
            await ledger_repository.save_changes(
                db,
                [self.ledger.get_event(event_id) for event_id in event_ids],
                [self.ledger.get_ticket(ticket_id) for ticket_id in ticket_ids],
                notes,
                payouts,
            )
        except PERSISTENCE_ERRORS as exc:
            persistence_failures.inc()
            logger.error("ledger_persistence_failed", operation=operation, error=str(exc))
            await db.rollback()
            await self._recover(db)
            raise

    async def _recover(self, db: AsyncSession) -> None:
        try:
            await self.reload(db)
        except PERSISTENCE_ERRORS as exc:
            self._stale = True
            logger.error("ledger_reload_failed", error=str(exc))

    async def _settle(self, db: AsyncSession, payouts: list[PendingPayout]) -> int:
        """
        Hand committed payouts to the rail, claiming each row first.

        Failures here never undo the ledger operation: the refund or
        withdrawal is committed and the payout stays queued.
        """
        if self._transfer is None or not payouts:
            return 0

        settled = 0
        for payout in payouts:
            try:
                claimed = await ledger_repository.claim_payout(
                    db, payout.sequence, datetime.now(timezone.utc)
                )
            except PERSISTENCE_ERRORS as exc:
                await db.rollback()
                logger.error("payout_claim_failed", sequence=payout.sequence, error=str(exc))
                break
            if not claimed:
                continue

            try:
                self._transfer(payout.recipient, payout.amount)
            except Exception as exc:
                payouts_deferred.inc()
                logger.error(
                    "payout_deferred",
                    sequence=payout.sequence,
                    recipient=payout.recipient,
                    amount=payout.amount,
                    error=str(exc),
                )
                await self._release(db, payout)
                continue

            settled += 1
            logger.info(
                "payout_dispatched",
                sequence=payout.sequence,
                recipient=payout.recipient,
                amount=payout.amount,
                reason=payout.reason,
            )
        return settled

    async def _release(self, db: AsyncSession, payout: PendingPayout) -> None:
        try:
            await ledger_repository.release_payout(db, payout.sequence)
        except PERSISTENCE_ERRORS as exc:
            await db.rollback()
            # claimed but never sent; needs manual reconciliation
            logger.error(
                "payout_release_failed",
                sequence=payout.sequence,
                recipient=payout.recipient,
                amount=payout.amount,
                error=str(exc),
            )

    def _observe(self, notes: list[Notification]) -> None:
        for note in notes:
            if note.kind is NotificationKind.TICKET_PURCHASED:
                tickets_minted.inc()
            elif note.kind in PAYOUT_REASONS:
                record_payout(PAYOUT_REASONS[note.kind], note.amount or 0)
        record_ledger_size(self.ledger.get_event_count(), self.ledger.get_ticket_count())


def get_ledger_service(request: Request) -> LedgerService:
    """FastAPI dependency: the service created in the app lifespan."""
    return request.app.state.ledger_service
