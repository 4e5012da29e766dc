"""
tasknode/namespace/memory.py

In-memory namespace for standalone runs and tests.

All state lives in a TaskFixture handed in at construction, so every test
builds its own world and nothing is shared between runs.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..config import STANDALONE_SLOT
from ..state import (
    AuditTriggerState,
    AuditTriggersPerRound,
    AuditVote,
    RoundTiming,
    Submission,
    TaskDistributionInfo,
    TaskSubmissionState,
)
from .base import IdentityProvider, LedgerClient, StateProvider

logger = logging.getLogger("tasknode.namespace.memory")


@dataclass
class TaskFixture:
    """Complete standalone task world."""
    local_identity: str = ""
    submissions: TaskSubmissionState = field(default_factory=TaskSubmissionState)
    distributions: TaskDistributionInfo = field(default_factory=TaskDistributionInfo)
    timing: Optional[RoundTiming] = None
    average_slot_time_ms: Optional[int] = None
    slot: int = STANDALONE_SLOT
    distribution_lists: Dict[int, Dict[str, Any]] = field(default_factory=dict)

    def add_submission(self, round_: int, node: str, value: str, slot: Optional[int] = None) -> None:
        self.submissions.submissions.setdefault(round_, {})[node] = Submission(
            value=value, slot=self.slot if slot is None else slot, round=round_,
        )

    def add_distribution_submission(self, round_: int, node: str, value: str) -> None:
        self.distributions.distribution_submissions.setdefault(round_, {})[node] = Submission(
            value=value, slot=self.slot, round=round_,
        )


class InMemoryNamespace(StateProvider, LedgerClient, IdentityProvider):
    """StateProvider, LedgerClient and IdentityProvider over a TaskFixture."""

    def __init__(self, fixture: TaskFixture):
        self.fixture = fixture
        # (operation, *args) for every write, in call order
        self.writes: List[Tuple[Any, ...]] = []

    # ========================================================================
    # STATE
    # ========================================================================

    async def get_submission_state(self, round_: int) -> Optional[TaskSubmissionState]:
        return self.fixture.submissions

    async def get_distribution_info(self, round_: int) -> Optional[TaskDistributionInfo]:
        return self.fixture.distributions

    async def get_round_timing(self) -> Optional[RoundTiming]:
        return self.fixture.timing

    async def get_average_slot_time_ms(self) -> Optional[int]:
        return self.fixture.average_slot_time_ms

    async def get_slot(self) -> int:
        return self.fixture.slot

    # ========================================================================
    # LEDGER
    # ========================================================================

    async def cast_audit_vote(
        self, candidate: str, is_valid: bool, voter: str, round_: int
    ) -> None:
        self.writes.append(("audit", candidate, is_valid, voter, round_))
        self._record_vote(self.fixture.submissions.audit_triggers, candidate, is_valid, voter, round_)

    async def cast_distribution_audit_vote(
        self, candidate: str, is_valid: bool, voter: str, round_: int
    ) -> None:
        self.writes.append(("distribution_audit", candidate, is_valid, voter, round_))
        self._record_vote(
            self.fixture.distributions.distribution_audit_triggers, candidate, is_valid, voter, round_
        )

    async def payout_trigger(self, round_: int) -> None:
        self.writes.append(("payout", round_))
        logger.info(f"Payout triggered for round {round_}")

    async def check_submission_and_update_round(self, value: str, round_: int) -> None:
        self.writes.append(("submit", value, round_))
        self.fixture.add_submission(round_, self.fixture.local_identity, value, slot=STANDALONE_SLOT)

    async def upload_distribution_list(
        self, distribution_list: Dict[str, Any], round_: int
    ) -> bool:
        self.writes.append(("upload_distribution", round_))
        self.fixture.distribution_lists[round_] = dict(distribution_list)
        return True

    async def distribution_list_submission_on_chain(self, round_: int) -> None:
        self.writes.append(("distribution_submit", round_))
        self.fixture.add_distribution_submission(round_, self.fixture.local_identity, str(round_))

    def _record_vote(
        self,
        triggers: AuditTriggersPerRound,
        candidate: str,
        is_valid: bool,
        voter: str,
        round_: int,
    ) -> None:
        slot = self.fixture.slot
        by_node = triggers.setdefault(round_, {})
        trigger = by_node.get(candidate)
        if trigger is None:
            trigger = AuditTriggerState(triggered_by=voter, slot=slot)
            by_node[candidate] = trigger
        trigger.append(AuditVote(is_valid=is_valid, voter=voter, slot=slot))

    # ========================================================================
    # IDENTITY
    # ========================================================================

    async def get_local_submitter_identity(self) -> Optional[str]:
        return self.fixture.local_identity or None
