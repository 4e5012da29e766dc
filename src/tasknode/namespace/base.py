"""
tasknode/namespace/base.py

Capability interfaces onto the host task node.

Protocol code is written once against these; NamespaceClient talks to the
host process over RPC and InMemoryNamespace backs standalone runs and
tests.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..state import (
    RoundTiming,
    Submission,
    TaskDistributionInfo,
    TaskSubmissionState,
)


class StateProvider(ABC):
    """Read-only view of round-scoped task state."""

    @abstractmethod
    async def get_submission_state(self, round_: int) -> Optional[TaskSubmissionState]:
        """Task submissions and audit triggers, or None if unavailable."""
        pass

    async def get_submissions(self, round_: int) -> Optional[Dict[str, Submission]]:
        """Submissions for one round, or None if there are none."""
        state = await self.get_submission_state(round_)
        if state is None:
            return None
        return state.for_round(round_)

    @abstractmethod
    async def get_distribution_info(self, round_: int) -> Optional[TaskDistributionInfo]:
        """Distribution submissions, their audits and payout records."""
        pass

    @abstractmethod
    async def get_round_timing(self) -> Optional[RoundTiming]:
        """Audit and submission window lengths in slots."""
        pass

    @abstractmethod
    async def get_average_slot_time_ms(self) -> Optional[int]:
        """Network average slot duration in milliseconds."""
        pass

    @abstractmethod
    async def get_slot(self) -> int:
        """Current slot."""
        pass


class LedgerClient(ABC):
    """Writes made on behalf of the local node."""

    @abstractmethod
    async def cast_audit_vote(
        self, candidate: str, is_valid: bool, voter: str, round_: int
    ) -> None:
        pass

    @abstractmethod
    async def cast_distribution_audit_vote(
        self, candidate: str, is_valid: bool, voter: str, round_: int
    ) -> None:
        pass

    @abstractmethod
    async def payout_trigger(self, round_: int) -> None:
        pass

    @abstractmethod
    async def check_submission_and_update_round(self, value: str, round_: int) -> None:
        """Submit the local node's task value for a round."""
        pass

    @abstractmethod
    async def upload_distribution_list(
        self, distribution_list: Dict[str, Any], round_: int
    ) -> bool:
        pass

    @abstractmethod
    async def distribution_list_submission_on_chain(self, round_: int) -> None:
        pass


class IdentityProvider(ABC):
    """Identity of the local submitter."""

    @abstractmethod
    async def get_local_submitter_identity(self) -> Optional[str]:
        pass
