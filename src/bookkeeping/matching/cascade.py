#!/usr/bin/env python3
"""
Cascading Match Displacement

Assigns payments to documents (invoices or salary receipts) across a whole
batch so the final assignment does not depend on the order in which
documents were discovered.

A payment walks its candidates best first and takes the first slot that is
free or held by a strictly weaker pairing (compared by MatchQuality). A
payment pushed out of a slot is queued and later walks its own candidates
over every slot, so it may in turn displace another payment. The queue is
drained FIFO; chains are bounded by a maximum depth.

All assignment state lives in an AssignmentState built from the row snapshot
at the start of each run. Nothing is kept between runs.
"""

import logging
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..core.dates import FinancialDate, days_between
from ..core.models import MatchCandidate, MatchConfidence, MatchQuality, Payment, ProcessingResult
from .quality import UNKNOWN_PROXIMITY_DAYS, is_better_match

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5

CandidateSearch = Callable[[Payment, Sequence[Any]], list[MatchCandidate]]


@dataclass
class DisplacementTask:
    """A payment that lost its slot and must be searched again."""

    payment: Payment
    row: int
    previous_match_id: str
    depth: int


class DisplacementQueue:
    """
    FIFO queue of displaced payments.

    A payment waits in the queue at most once; adding it again while it is
    still pending is refused. Once popped it may be queued again if it is
    displaced a second time.
    """

    def __init__(self):
        self._queue: deque[DisplacementTask] = deque()
        self._pending: set[str] = set()

    def add(self, task: DisplacementTask) -> bool:
        """Queue a task; returns False if this payment is already waiting."""
        payment_id = task.payment.file_id
        if payment_id in self._pending:
            return False
        self._queue.append(task)
        self._pending.add(payment_id)
        return True

    def pop(self) -> DisplacementTask | None:
        """Remove and return the oldest task, or None when empty."""
        if not self._queue:
            return None
        task = self._queue.popleft()
        self._pending.discard(task.payment.file_id)
        return task

    def is_empty(self) -> bool:
        return not self._queue

    def __len__(self) -> int:
        return len(self._queue)

    def clear(self) -> None:
        self._queue.clear()
        self._pending.clear()


@dataclass
class Assignment:
    """Current holder of a slot."""

    payment_id: str
    quality: MatchQuality


@dataclass(frozen=True)
class SlotUpdate:
    """Match annotation to write on a document row."""

    slot_id: str
    row: int
    payment_id: str
    confidence: MatchConfidence
    identifier_match: bool

    def to_values(self, mark_settled: bool) -> dict[str, Any]:
        values: dict[str, Any] = {
            "matched_payment_id": self.payment_id,
            "match_confidence": self.confidence.value,
            "has_identifier_match": self.identifier_match,
        }
        if mark_settled:
            values["settled"] = True
        return values


@dataclass(frozen=True)
class PaymentUpdate:
    """Match annotation to write on a payment row; an empty slot_id unmatches."""

    payment_id: str
    row: int
    slot_id: str
    confidence: MatchConfidence | None

    def to_values(self) -> dict[str, Any]:
        return {
            "matched_document_id": self.slot_id,
            "match_confidence": self.confidence.value if self.confidence else "",
        }


@dataclass
class AssignmentState:
    """Per-batch assignment of payments to slots."""

    slots: dict[str, Assignment] = field(default_factory=dict)
    payment_slot: dict[str, str] = field(default_factory=dict)
    slot_updates: dict[str, SlotUpdate] = field(default_factory=dict)
    payment_updates: dict[str, PaymentUpdate] = field(default_factory=dict)
    displaced_count: int = 0
    max_depth_reached: int = 0
    dropped_tasks: int = 0
    unmatched_payments: list[str] = field(default_factory=list)

    @classmethod
    def from_snapshot(cls, slots: Sequence[Any], payments: dict[str, Payment]) -> "AssignmentState":
        """
        Seed the state with the matches already stored on the slot rows.

        The stored quality is rebuilt from the stored confidence, the stored
        identifier flag and the gap between the incumbent payment's date and
        the slot's date.
        """
        state = cls()
        for slot in slots:
            if not slot.matched_payment_id:
                continue
            incumbent = payments.get(slot.matched_payment_id)
            state.slots[slot.file_id] = Assignment(
                payment_id=slot.matched_payment_id,
                quality=MatchQuality(
                    confidence=slot.match_confidence or MatchConfidence.LOW,
                    identifier_match=slot.has_identifier_match,
                    date_proximity_days=_proximity(slot.document_date, incumbent.date if incumbent else None),
                ),
            )
            state.payment_slot[slot.matched_payment_id] = slot.file_id
        return state


def _proximity(slot_date: FinancialDate | None, payment_date: FinancialDate | None) -> int:
    if slot_date is None or payment_date is None:
        return UNKNOWN_PROXIMITY_DAYS
    return days_between(slot_date, payment_date)


@dataclass
class CascadeResult:
    """Outcome of one displacement run."""

    slot_updates: list[SlotUpdate]
    payment_updates: list[PaymentUpdate]
    displaced_count: int = 0
    max_depth_reached: int = 0
    dropped_tasks: int = 0
    unmatched_payments: list[str] = field(default_factory=list)

    @property
    def matches_found(self) -> int:
        return len(self.slot_updates)


class DisplacementController:
    """
    Runs the main matching pass and the displacement cascade for one batch.

    Args:
        search: Candidate search, e.g. InvoiceMatcher.find_invoices_for_payment
        slot_sheet: Row store sheet holding the slots
        payment_sheet: Row store sheet holding the payments
        mark_settled: Also mark matched slots as settled (invoices)
        max_depth: Longest displacement chain followed
    """

    def __init__(
        self,
        search: CandidateSearch,
        slot_sheet: str,
        payment_sheet: str,
        mark_settled: bool = False,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.search = search
        self.slot_sheet = slot_sheet
        self.payment_sheet = payment_sheet
        self.mark_settled = mark_settled
        self.max_depth = max_depth

    def run(self, slots: Sequence[Any], payments: Sequence[Payment]) -> CascadeResult:
        """
        Assign unmatched payments to slots, displacing weaker incumbents.

        A payment takes part only if its best candidate is HIGH confidence or
        the sole candidate. It then walks its candidates best first until it
        wins a slot. Displaced payments walk their candidates again without
        that restriction.

        Args:
            slots: Invoices or receipts, including already matched ones
            payments: All payments, including already matched ones

        Returns:
            CascadeResult with the row updates to apply
        """
        payments_by_id = {payment.file_id: payment for payment in payments}
        state = AssignmentState.from_snapshot(slots, payments_by_id)
        queue = DisplacementQueue()

        unmatched = [payment for payment in payments if not payment.matched_document_id]
        logger.info(f"Starting cascading match over {len(unmatched)} unmatched payments and {len(slots)} documents")

        for payment in unmatched:
            candidates = self.search(payment, slots)
            if not candidates:
                continue

            best = candidates[0]
            if best.confidence is not MatchConfidence.HIGH and len(candidates) > 1:
                logger.debug(
                    "Payment %s: best candidate %s is %s among %d, leaving for review",
                    payment.file_id,
                    best.target_id,
                    best.confidence.value,
                    len(candidates),
                )
                continue

            if not self._place(state, queue, payment, candidates, depth=0, payments_by_id=payments_by_id):
                logger.debug("Payment %s does not beat the holder of any candidate", payment.file_id)

        self._drain(state, queue, slots, payments_by_id)

        logger.info(
            f"Cascade complete: {len(state.slot_updates)} matches, {state.displaced_count} displaced, "
            f"max depth {state.max_depth_reached}, {len(state.unmatched_payments)} left unmatched"
        )

        return CascadeResult(
            slot_updates=list(state.slot_updates.values()),
            payment_updates=list(state.payment_updates.values()),
            displaced_count=state.displaced_count,
            max_depth_reached=state.max_depth_reached,
            dropped_tasks=state.dropped_tasks,
            unmatched_payments=list(state.unmatched_payments),
        )

    def _place(
        self,
        state: AssignmentState,
        queue: DisplacementQueue,
        payment: Payment,
        candidates: list[MatchCandidate],
        depth: int,
        payments_by_id: dict[str, Payment],
    ) -> bool:
        """Claim the first candidate the payment can win; False if it wins none."""
        for candidate in candidates:
            if self._claim(state, queue, payment, candidate, depth, payments_by_id):
                return True
        return False

    def _claim(
        self,
        state: AssignmentState,
        queue: DisplacementQueue,
        payment: Payment,
        candidate: MatchCandidate,
        depth: int,
        payments_by_id: dict[str, Payment],
    ) -> bool:
        """Give the candidate's slot to the payment if it is free or held by a weaker pairing."""
        slot_id = candidate.target_id
        incumbent = state.slots.get(slot_id)

        if incumbent is not None and incumbent.payment_id != payment.file_id:
            if not is_better_match(candidate.quality, incumbent.quality):
                logger.debug(
                    "Payment %s does not beat incumbent %s on %s",
                    payment.file_id,
                    incumbent.payment_id,
                    slot_id,
                )
                return False

            logger.debug(
                "Match displaced on %s: %s -> %s (%s -> %s)",
                slot_id,
                incumbent.payment_id,
                payment.file_id,
                incumbent.quality.confidence.value,
                candidate.confidence.value,
            )
            state.displaced_count += 1
            state.payment_slot.pop(incumbent.payment_id, None)
            displaced = payments_by_id.get(incumbent.payment_id)
            if displaced is not None:
                self._requeue(state, queue, displaced, slot_id, depth + 1)

        state.slots[slot_id] = Assignment(payment_id=payment.file_id, quality=candidate.quality)
        state.payment_slot[payment.file_id] = slot_id
        state.slot_updates[slot_id] = SlotUpdate(
            slot_id=slot_id,
            row=candidate.target_row,
            payment_id=payment.file_id,
            confidence=candidate.confidence,
            identifier_match=candidate.identifier_match,
        )
        state.payment_updates[payment.file_id] = PaymentUpdate(
            payment_id=payment.file_id,
            row=payment.row,
            slot_id=slot_id,
            confidence=candidate.confidence,
        )
        if payment.file_id in state.unmatched_payments:
            state.unmatched_payments.remove(payment.file_id)
        return True

    def _requeue(
        self,
        state: AssignmentState,
        queue: DisplacementQueue,
        payment: Payment,
        previous_slot_id: str,
        depth: int,
    ) -> None:
        if depth > self.max_depth:
            logger.warning(
                f"Max cascade depth {self.max_depth} reached, payment {payment.file_id} left unmatched"
            )
            state.dropped_tasks += 1
            self._leave_unmatched(state, payment)
            return

        task = DisplacementTask(payment=payment, row=payment.row, previous_match_id=previous_slot_id, depth=depth)
        if not queue.add(task):
            logger.debug("Payment %s is already waiting for a new match", payment.file_id)

    def _drain(
        self,
        state: AssignmentState,
        queue: DisplacementQueue,
        slots: Sequence[Any],
        payments_by_id: dict[str, Payment],
    ) -> None:
        while not queue.is_empty():
            task = queue.pop()
            if task is None:
                break

            state.max_depth_reached = max(state.max_depth_reached, task.depth)
            candidates = self.search(task.payment, slots)

            if self._place(state, queue, task.payment, candidates, task.depth, payments_by_id):
                logger.debug(
                    "Displaced payment %s re-matched to %s",
                    task.payment.file_id,
                    state.payment_slot[task.payment.file_id],
                )
                continue

            logger.debug("Displaced payment %s has no remaining matches", task.payment.file_id)
            self._leave_unmatched(state, task.payment)

    @staticmethod
    def _leave_unmatched(state: AssignmentState, payment: Payment) -> None:
        state.payment_updates[payment.file_id] = PaymentUpdate(
            payment_id=payment.file_id,
            row=payment.row,
            slot_id="",
            confidence=None,
        )
        if payment.file_id not in state.unmatched_payments:
            state.unmatched_payments.append(payment.file_id)

    def apply_updates(self, store: Any, result: CascadeResult) -> ProcessingResult:
        """
        Push a run's row updates to the row store.

        Each slot row is written before the payment that claimed it, and the
        payment write is skipped when its slot write fails, so a payment is
        never annotated with a slot that does not point back at it. Other
        failed writes are logged and counted; the remaining writes still run.
        """
        outcome = ProcessingResult()
        pending = {update.payment_id: update for update in result.payment_updates}

        for update in result.slot_updates:
            write = store.update_row(self.slot_sheet, update.row, update.to_values(self.mark_settled))
            outcome.record(write.ok, write.error)
            payment_update = pending.pop(update.payment_id, None)
            if not write.ok:
                logger.warning(f"Failed to write match on {self.slot_sheet} row {update.row}: {write.error}")
                if payment_update is not None:
                    error = (
                        f"Skipped {self.payment_sheet} row {payment_update.row}: "
                        f"{self.slot_sheet} row {update.row} was not written"
                    )
                    logger.warning(error)
                    outcome.record(False, error)
                continue
            if payment_update is not None:
                self._write_payment(store, payment_update, outcome)

        for payment_update in pending.values():
            self._write_payment(store, payment_update, outcome)

        logger.info(f"Applied {outcome.successful}/{outcome.total_processed} match updates")
        return outcome

    def _write_payment(self, store: Any, update: PaymentUpdate, outcome: ProcessingResult) -> None:
        write = store.update_row(self.payment_sheet, update.row, update.to_values())
        outcome.record(write.ok, write.error)
        if not write.ok:
            logger.warning(f"Failed to write match on {self.payment_sheet} row {update.row}: {write.error}")
