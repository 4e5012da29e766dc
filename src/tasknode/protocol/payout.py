"""
tasknode/protocol/payout.py

Per-round payout state machine.

    IDLE -> LEADER_SELECTED -> LIST_SUBMITTED -> PAYOUT_SCHEDULED -> PAYOUT_TRIGGERED

Every node selects the round's leader; only the leader submits the
distribution list and schedules the payout. The payout fires once the
submission and audit windows have passed:

    delay_ms = (audit_window + submission_window) * average_slot_time_ms

If either timing lookup fails the round stops at LIST_SUBMITTED rather
than schedule against unknown timing. No retries are scheduled here.

Usage:
    coordinator = PayoutCoordinator(selector, namespace, namespace, namespace)

    async with trio.open_nursery() as nursery:
        coordinator.start(nursery)
        await coordinator.select_and_generate_distribution_list(round_)
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

import trio

from ..metrics import ProtocolMetrics
from ..namespace.base import IdentityProvider, LedgerClient, StateProvider
from .node_selection import NodeSelector

logger = logging.getLogger("tasknode.protocol.payout")

# submit_distribution_list(round) -> None
DistributionSubmitter = Callable[[int], Awaitable[None]]

# Rounds whose PayoutStatus is kept for get_status()
STATUS_HISTORY_SIZE = 64


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class PayoutPhase(Enum):
    """Where a round's payout stands on this node."""
    IDLE = "idle"
    LEADER_SELECTED = "leader_selected"
    LIST_SUBMITTED = "list_submitted"
    PAYOUT_SCHEDULED = "payout_scheduled"
    PAYOUT_TRIGGERED = "payout_triggered"
    FAILED = "failed"


@dataclass
class PayoutStatus:
    """Status of one round's payout on this node."""
    round: int
    phase: PayoutPhase = PayoutPhase.IDLE
    leader: Optional[str] = None
    is_leader: bool = False
    delay_ms: Optional[int] = None
    error_message: Optional[str] = None
    timestamp: int = 0

    def to_dict(self) -> dict:
        return {
            'round': self.round,
            'phase': self.phase.value,
            'leader': self.leader,
            'is_leader': self.is_leader,
            'delay_ms': self.delay_ms,
            'error_message': self.error_message,
            'timestamp': self.timestamp,
        }


# ============================================================================
# PAYOUT COORDINATOR
# ============================================================================

class PayoutCoordinator:
    """
    Drives leader selection, list submission and the delayed payout.

    The payout timer runs in the nursery given to start(); the caller is
    never blocked waiting for it.
    """

    def __init__(
        self,
        selector: NodeSelector,
        state: StateProvider,
        ledger: LedgerClient,
        identity: IdentityProvider,
        submit_distribution_list: Optional[DistributionSubmitter] = None,
        metrics: Optional[ProtocolMetrics] = None,
        history_size: int = STATUS_HISTORY_SIZE,
    ):
        """
        Initialize PayoutCoordinator.

        Args:
            selector: NodeSelector for the round's leader
            state: Source of round timing and average slot time
            ledger: Payout trigger target
            identity: Local submitter identity, compared with the leader
            submit_distribution_list: Called by the leader to submit its
                list (default: ledger.distribution_list_submission_on_chain)
            metrics: Optional metrics sink
            history_size: Most recent rounds kept for get_status
        """
        self.selector = selector
        self.state = state
        self.ledger = ledger
        self.identity = identity
        self.submit_distribution_list = (
            submit_distribution_list or ledger.distribution_list_submission_on_chain
        )
        self.metrics = metrics
        self.history_size = history_size

        self._nursery: Optional[trio.Nursery] = None
        self._rounds: Dict[int, PayoutStatus] = {}

        self._on_payout_triggered: Optional[Callable[[PayoutStatus], None]] = None
        self._on_payout_failed: Optional[Callable[[PayoutStatus], None]] = None

    def start(self, nursery: trio.Nursery) -> None:
        """Attach the nursery payout timers run in."""
        self._nursery = nursery

    async def run_forever(self) -> None:
        """Own a nursery for payout timers until cancelled."""
        async with trio.open_nursery() as nursery:
            self.start(nursery)
            try:
                await trio.sleep_forever()
            finally:
                self._nursery = None

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def select_and_generate_distribution_list(
        self,
        round_: int,
        previous_failed: bool = False,
    ) -> PayoutStatus:
        """
        Run the round's state machine as far as this node can take it.

        Args:
            round_: Round to pay out
            previous_failed: The previous distribution attempt failed

        Returns:
            PayoutStatus for the round
        """
        status = PayoutStatus(round=round_, timestamp=int(time.time()))
        self._track(status)

        leader = await self.selector.select(round_, previous_failed)
        if leader is None:
            status.error_message = "No submissions found"
            logger.info(f"No distribution leader for round {round_}")
            return status

        status.leader = leader
        self._transition(status, PayoutPhase.LEADER_SELECTED)

        local = await self.identity.get_local_submitter_identity()
        if local != leader:
            logger.info(f"Node {leader} submits the round {round_} distribution list, not us")
            return status

        status.is_leader = True
        try:
            await self.submit_distribution_list(round_)
        except Exception as e:
            self._fail(status, f"Distribution list submission failed: {e}")
            return status
        self._transition(status, PayoutPhase.LIST_SUBMITTED)

        await self._schedule_payout(status)
        return status

    async def payout_trigger(self, round_: int) -> None:
        """Trigger the round's payout now."""
        status = self._rounds.get(round_)
        if status is None:
            status = self._track(PayoutStatus(round=round_))
        try:
            await self.ledger.payout_trigger(round_)
        except Exception as e:
            self._fail(status, f"Payout trigger failed: {e}")
            return

        self._transition(status, PayoutPhase.PAYOUT_TRIGGERED)
        if self._on_payout_triggered:
            self._on_payout_triggered(status)

    def get_status(self, round_: int) -> Optional[PayoutStatus]:
        return self._rounds.get(round_)

    # ========================================================================
    # INTERNAL METHODS
    # ========================================================================

    def _track(self, status: PayoutStatus) -> PayoutStatus:
        self._rounds[status.round] = status
        while len(self._rounds) > self.history_size:
            del self._rounds[min(self._rounds)]
        return status

    async def _schedule_payout(self, status: PayoutStatus) -> None:
        timing = await self.state.get_round_timing()
        slot_time_ms = await self.state.get_average_slot_time_ms()
        if timing is None or slot_time_ms is None:
            status.error_message = "Round timing unavailable, payout not scheduled"
            logger.warning(f"Round {status.round}: {status.error_message}")
            return

        if self._nursery is None:
            status.error_message = "No nursery to run the payout timer"
            logger.error(f"Round {status.round}: {status.error_message}")
            return

        status.delay_ms = timing.total_slots * slot_time_ms
        self._nursery.start_soon(self._payout_after, status.round, status.delay_ms / 1000)
        self._transition(status, PayoutPhase.PAYOUT_SCHEDULED)
        logger.info(f"Payout for round {status.round} scheduled in {status.delay_ms} ms")

    async def _payout_after(self, round_: int, delay_seconds: float) -> None:
        await trio.sleep(delay_seconds)
        await self.payout_trigger(round_)

    def _transition(self, status: PayoutStatus, phase: PayoutPhase) -> None:
        logger.debug(f"Round {status.round}: {status.phase.value} -> {phase.value}")
        status.phase = phase
        status.timestamp = int(time.time())
        if self.metrics:
            self.metrics.inc("tasknode_payouts_total", phase=phase.value)

    def _fail(self, status: PayoutStatus, message: str) -> None:
        logger.error(f"Round {status.round}: {message}")
        status.error_message = message
        self._transition(status, PayoutPhase.FAILED)
        if self._on_payout_failed:
            self._on_payout_failed(status)

    # ========================================================================
    # CALLBACKS
    # ========================================================================

    def set_on_payout_triggered(self, callback: Callable[[PayoutStatus], None]) -> None:
        """Set callback for when a payout is triggered."""
        self._on_payout_triggered = callback

    def set_on_payout_failed(self, callback: Callable[[PayoutStatus], None]) -> None:
        """Set callback for when list submission or the payout trigger fails."""
        self._on_payout_failed = callback
