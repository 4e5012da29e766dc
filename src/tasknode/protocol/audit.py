"""
tasknode/protocol/audit.py

Shared audit pass over one round's submissions.

Both task submissions and distribution lists are audited the same way:
pick candidates, skip our own entry when the host administers us,
evaluate each candidate in order, and record the vote under the
open-trigger rule:

- a negative vote is always written (it opens an audit if none exists)
- a positive vote is only written if an audit is already open on that
  candidate for that round

so an undisputed round costs no writes, while a single dissenting voter
makes every later evaluator record its position.
"""

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..config import RANDOM_SAMPLE_SIZE, RunMode
from ..metrics import ProtocolMetrics
from ..namespace.base import IdentityProvider, LedgerClient, StateProvider
from ..state import AuditTriggerState, Submission

logger = logging.getLogger("tasknode.protocol.audit")

# validate(value, round, node_identity) -> is the value valid?
Validator = Callable[[Any, int, str], Awaitable[bool]]

# evaluate(round, candidate, submission, validate) -> (is_valid, reason)
Evaluator = Callable[[int, str, Submission, Validator], Awaitable[Tuple[bool, str]]]


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class SamplingMode(Enum):
    """Which candidates an audit pass evaluates."""
    EXHAUSTIVE = "exhaustive"   # every submission
    RANDOM = "random"           # up to RANDOM_SAMPLE_SIZE distinct submissions


class AuditStatus(Enum):
    """How an audit pass ended."""
    COMPLETED = "completed"
    NO_SUBMISSIONS = "no_submissions"
    NO_IDENTITY = "no_identity"


@dataclass
class VoteOutcome:
    """What happened to one candidate during a pass."""
    candidate: str
    is_valid: Optional[bool]    # None if never evaluated
    recorded: bool              # a vote was written
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            'candidate': self.candidate,
            'is_valid': self.is_valid,
            'recorded': self.recorded,
            'reason': self.reason,
        }


@dataclass
class AuditReport:
    """Result of one audit pass over a round."""
    round: int
    kind: str
    status: AuditStatus
    outcomes: List[VoteOutcome] = field(default_factory=list)

    @property
    def votes_cast(self) -> int:
        return sum(1 for o in self.outcomes if o.recorded)

    @property
    def skipped(self) -> List[VoteOutcome]:
        return [o for o in self.outcomes if o.is_valid is None and not o.recorded]

    def outcome_for(self, candidate: str) -> Optional[VoteOutcome]:
        for outcome in self.outcomes:
            if outcome.candidate == candidate:
                return outcome
        return None

    def to_dict(self) -> dict:
        return {
            'round': self.round,
            'kind': self.kind,
            'status': self.status.value,
            'votes_cast': self.votes_cast,
            'outcomes': [o.to_dict() for o in self.outcomes],
        }


def select_candidates(
    size: int,
    sampling: SamplingMode,
    sample_size: int = RANDOM_SAMPLE_SIZE,
) -> List[int]:
    """Indices to evaluate. Random samples are distinct and not reproducible."""
    if sampling is SamplingMode.EXHAUSTIVE:
        return list(range(size))
    return random.sample(range(size), min(sample_size, size))


# ============================================================================
# AUDITOR BASE
# ============================================================================

class RoundAuditor(ABC):
    """
    Audit pass skeleton; subclasses pick the submission set, the vote
    call and how a single candidate is evaluated.
    """

    kind = "round"

    def __init__(
        self,
        state: StateProvider,
        ledger: LedgerClient,
        identity: IdentityProvider,
        mode: RunMode = RunMode.ADMINISTERED,
        metrics: Optional[ProtocolMetrics] = None,
    ):
        """
        Initialize the auditor.

        Args:
            state: Source of round submissions and audit triggers
            ledger: Where votes are written
            identity: Local submitter identity (the voter)
            mode: ADMINISTERED skips our own submission, STANDALONE does not
            metrics: Optional metrics sink
        """
        self.state = state
        self.ledger = ledger
        self.identity = identity
        self.mode = mode
        self.metrics = metrics

    # ========================================================================
    # SUBCLASS HOOKS
    # ========================================================================

    @abstractmethod
    async def _load_round(
        self, round_: int
    ) -> Optional[Tuple[Dict[str, Submission], Dict[str, AuditTriggerState]]]:
        """Submissions and open audits for the round, or None if no submissions."""
        pass

    @abstractmethod
    async def _cast_vote(self, candidate: str, is_valid: bool, voter: str, round_: int) -> None:
        pass

    async def _evaluate(
        self,
        round_: int,
        candidate: str,
        submission: Submission,
        validate: Validator,
    ) -> Tuple[bool, str]:
        """Return (is_valid, reason). Exceptions mean the candidate is skipped."""
        is_valid = await validate(submission.value, round_, candidate)
        return bool(is_valid), "validated" if is_valid else "rejected"

    # ========================================================================
    # AUDIT PASS
    # ========================================================================

    async def _audit(
        self,
        round_: int,
        validate: Validator,
        sampling: SamplingMode,
        evaluate: Optional[Evaluator] = None,
    ) -> AuditReport:
        evaluate = evaluate or self._evaluate
        loaded = await self._load_round(round_)
        if not loaded:
            logger.info(f"No {self.kind} submissions found for round {round_}")
            self._count_round(AuditStatus.NO_SUBMISSIONS)
            return AuditReport(round=round_, kind=self.kind, status=AuditStatus.NO_SUBMISSIONS)

        submissions, triggers = loaded

        voter = await self.identity.get_local_submitter_identity()
        if not voter:
            logger.error(f"No submitter identity, cannot vote on {self.kind} round {round_}")
            self._count_round(AuditStatus.NO_IDENTITY)
            return AuditReport(round=round_, kind=self.kind, status=AuditStatus.NO_IDENTITY)

        report = AuditReport(round=round_, kind=self.kind, status=AuditStatus.COMPLETED)
        keys = list(submissions.keys())

        for index in select_candidates(len(keys), sampling):
            candidate = keys[index]
            outcome = await self._audit_candidate(
                round_, candidate, submissions[candidate], triggers, voter, validate, evaluate
            )
            report.outcomes.append(outcome)

        logger.info(
            f"Audited {len(report.outcomes)} {self.kind} submission(s) for round {round_}, "
            f"{report.votes_cast} vote(s) cast"
        )
        self._count_round(AuditStatus.COMPLETED)
        return report

    async def _audit_candidate(
        self,
        round_: int,
        candidate: str,
        submission: Submission,
        triggers: Dict[str, AuditTriggerState],
        voter: str,
        validate: Validator,
        evaluate: Evaluator,
    ) -> VoteOutcome:
        if self.mode is RunMode.ADMINISTERED and candidate == voter:
            logger.debug(f"Skipping own {self.kind} submission in round {round_}")
            self._count_skip("self")
            return VoteOutcome(candidate=candidate, is_valid=None, recorded=False, reason="self")

        try:
            is_valid, reason = await evaluate(round_, candidate, submission, validate)
        except Exception as e:
            logger.warning(f"Failed to evaluate {self.kind} submission from {candidate}: {e}")
            self._count_skip("error")
            return VoteOutcome(candidate=candidate, is_valid=None, recorded=False, reason=f"error: {e}")

        if is_valid and candidate not in triggers:
            # nothing disputed, nothing to record
            return VoteOutcome(candidate=candidate, is_valid=True, recorded=False, reason=reason)

        try:
            await self._cast_vote(candidate, is_valid, voter, round_)
        except Exception as e:
            logger.error(f"Failed to cast {self.kind} vote on {candidate}: {e}")
            self._count_skip("vote_failed")
            return VoteOutcome(candidate=candidate, is_valid=is_valid, recorded=False, reason=f"vote failed: {e}")

        logger.info(
            f"Voted {'valid' if is_valid else 'invalid'} on {self.kind} submission "
            f"from {candidate} in round {round_} ({reason})"
        )
        if self.metrics:
            self.metrics.inc("tasknode_votes_cast_total", kind=self.kind, valid=str(is_valid).lower())
        return VoteOutcome(candidate=candidate, is_valid=is_valid, recorded=True, reason=reason)

    def _count_round(self, status: AuditStatus) -> None:
        if self.metrics:
            self.metrics.inc("tasknode_rounds_audited_total", kind=self.kind, status=status.value)

    def _count_skip(self, reason: str) -> None:
        if self.metrics:
            self.metrics.inc("tasknode_candidates_skipped_total", kind=self.kind, reason=reason)
