"""
tasknode/state.py

Round-scoped task state as read from the ledger.

The host process reports task state as JSON with snake_case fields and
string round keys. This module turns that into typed, round-keyed
structures and back. Nothing here is authoritative: every read from a
StateProvider is a fresh snapshot.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger("tasknode.state")


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class AuditRecord(Enum):
    """Outcome of a round's distribution payout. Never reverts."""
    UNINITIALIZED = "Uninitialized"
    PAYOUT_SUCCESSFUL = "PayoutSuccessful"
    PAYOUT_FAILED = "PayoutFailed"

    @classmethod
    def from_value(cls, value: Any) -> "AuditRecord":
        for record in cls:
            if record.value == value or record.name == value:
                return record
        logger.debug(f"Unknown audit record {value!r}, treating as uninitialized")
        return cls.UNINITIALIZED


@dataclass
class Submission:
    """A node's reported value for a round (possibly a content id)."""
    value: str
    slot: int
    round: Optional[int] = None

    def to_dict(self) -> dict:
        data = {
            'submission_value': self.value,
            'slot': self.slot,
        }
        if self.round is not None:
            data['round'] = self.round
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Submission":
        round_ = data.get('round')
        return cls(
            value=data.get('submission_value', ""),
            slot=int(data.get('slot', 0)),
            round=int(round_) if round_ is not None else None,
        )


@dataclass
class AuditVote:
    """A single validity vote on a candidate."""
    is_valid: bool
    voter: str
    slot: int

    def to_dict(self) -> dict:
        return {
            'is_valid': self.is_valid,
            'voter': self.voter,
            'slot': self.slot,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuditVote":
        return cls(
            is_valid=bool(data['is_valid']),
            voter=str(data['voter']),
            slot=int(data.get('slot', 0)),
        )


@dataclass
class AuditTriggerState:
    """Audit opened on a candidate; created on first vote, then appended to."""
    triggered_by: str
    slot: int
    votes: List[AuditVote] = field(default_factory=list)

    def append(self, vote: AuditVote) -> None:
        self.votes.append(vote)

    def to_dict(self) -> dict:
        return {
            'trigger_by': self.triggered_by,
            'slot': self.slot,
            'votes': [v.to_dict() for v in self.votes],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuditTriggerState":
        return cls(
            triggered_by=str(data.get('trigger_by', data.get('triggered_by', ""))),
            slot=int(data.get('slot', 0)),
            votes=_parse_votes(data.get('votes')),
        )


# round -> node identity -> value
SubmissionsPerRound = Dict[int, Dict[str, Submission]]
AuditTriggersPerRound = Dict[int, Dict[str, AuditTriggerState]]


@dataclass
class TaskSubmissionState:
    """Task submissions and the audits opened against them."""
    submissions: SubmissionsPerRound = field(default_factory=dict)
    audit_triggers: AuditTriggersPerRound = field(default_factory=dict)

    def for_round(self, round_: int) -> Optional[Dict[str, Submission]]:
        return self.submissions.get(round_)

    def trigger_for(self, round_: int, candidate: str) -> Optional[AuditTriggerState]:
        return self.audit_triggers.get(round_, {}).get(candidate)


@dataclass
class TaskDistributionInfo:
    """Distribution-list submissions, their audits and payout outcomes."""
    distribution_submissions: SubmissionsPerRound = field(default_factory=dict)
    distribution_audit_triggers: AuditTriggersPerRound = field(default_factory=dict)
    audit_record: Dict[int, AuditRecord] = field(default_factory=dict)

    def for_round(self, round_: int) -> Optional[Dict[str, Submission]]:
        return self.distribution_submissions.get(round_)

    def trigger_for(self, round_: int, candidate: str) -> Optional[AuditTriggerState]:
        return self.distribution_audit_triggers.get(round_, {}).get(candidate)

    def record_for(self, round_: int) -> AuditRecord:
        return self.audit_record.get(round_, AuditRecord.UNINITIALIZED)


@dataclass
class RoundTiming:
    """Round window lengths, in slots."""
    audit_window: int
    submission_window: int

    @property
    def total_slots(self) -> int:
        return self.audit_window + self.submission_window


@dataclass
class SelectedNode:
    """Transient NodeSelector result."""
    score: int
    node_identity: str


# ============================================================================
# PARSING
# ============================================================================

EntryParser = Callable[[dict], Any]


def _parse_entries(by_node: Any, parse: EntryParser, what: str, round_: int) -> dict:
    """Parse {pubkey: entry}, skipping entries the host reported malformed."""
    if not isinstance(by_node, dict):
        logger.warning(f"Skipping round {round_} {what}s: expected an object, got {by_node!r}")
        return {}
    result = {}
    for node, entry in by_node.items():
        try:
            result[node] = parse(entry)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed round {round_} {what} from {node}: {e!r}")
    return result


def _parse_votes(raw: Any) -> List[AuditVote]:
    votes = []
    for vote in raw or []:
        try:
            votes.append(AuditVote.from_dict(vote))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed audit vote {vote!r}: {e!r}")
    return votes


def parse_submissions(raw: Optional[dict]) -> SubmissionsPerRound:
    """Parse {round: {pubkey: submission}} with string round keys."""
    result: SubmissionsPerRound = {}
    for round_key, by_node in (raw or {}).items():
        try:
            round_ = int(round_key)
        except (TypeError, ValueError):
            logger.warning(f"Skipping submissions under non-numeric round {round_key!r}")
            continue
        result[round_] = _parse_entries(by_node, Submission.from_dict, "submission", round_)
    return result


def parse_audit_triggers(raw: Optional[dict]) -> AuditTriggersPerRound:
    """Parse {round: {pubkey: trigger}} with string round keys."""
    result: AuditTriggersPerRound = {}
    for round_key, by_node in (raw or {}).items():
        try:
            round_ = int(round_key)
        except (TypeError, ValueError):
            logger.warning(f"Skipping audit triggers under non-numeric round {round_key!r}")
            continue
        result[round_] = _parse_entries(by_node, AuditTriggerState.from_dict, "audit trigger", round_)
    return result


def parse_submission_state(task_state: dict) -> TaskSubmissionState:
    return TaskSubmissionState(
        submissions=parse_submissions(task_state.get('submissions')),
        audit_triggers=parse_audit_triggers(task_state.get('submissions_audit_trigger')),
    )


def parse_distribution_info(task_state: dict) -> TaskDistributionInfo:
    records: Dict[int, AuditRecord] = {}
    for round_key, value in (task_state.get('distributions_audit_record') or {}).items():
        try:
            records[int(round_key)] = AuditRecord.from_value(value)
        except (TypeError, ValueError):
            logger.warning(f"Skipping audit record under non-numeric round {round_key!r}")
    return TaskDistributionInfo(
        distribution_submissions=parse_submissions(task_state.get('distribution_rewards_submission')),
        distribution_audit_triggers=parse_audit_triggers(task_state.get('distributions_audit_trigger')),
        audit_record=records,
    )


def parse_round_timing(task_state: dict) -> Optional[RoundTiming]:
    try:
        return RoundTiming(
            audit_window=int(task_state['audit_window']),
            submission_window=int(task_state['submission_window']),
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Task state has no usable round timing: {e}")
        return None


# ============================================================================
# HASHING
# ============================================================================

def canonical_json(data: Any) -> str:
    """Compact JSON, the form signers hash."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_submissions(submissions: Dict[str, Submission]) -> str:
    """SHA-256 over a {node: submission} map, in the map's order."""
    return sha256_hex(canonical_json({k: s.to_dict() for k, s in submissions.items()}))
