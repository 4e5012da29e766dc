"""
tasknode/protocol/

Audit, leader selection and payout protocol for task rounds.
"""

from ..state import (
    AuditRecord,
    Submission,
    AuditVote,
    AuditTriggerState,
    TaskSubmissionState,
    TaskDistributionInfo,
    RoundTiming,
    SelectedNode,
)
from .content import ContentFetcher, ContentNotFoundError
from .audit import SamplingMode, AuditStatus, AuditReport, VoteOutcome
from .submission_audit import SubmissionAuditor, MalformedProofError
from .distribution_audit import DistributionAuditor
from .node_selection import NodeSelector, score_candidates, pick_leader
from .payout import PayoutCoordinator, PayoutPhase, PayoutStatus

__all__ = [
    # State
    "AuditRecord",
    "Submission",
    "AuditVote",
    "AuditTriggerState",
    "TaskSubmissionState",
    "TaskDistributionInfo",
    "RoundTiming",
    "SelectedNode",
    # Content
    "ContentFetcher",
    "ContentNotFoundError",
    # Audits
    "SamplingMode",
    "AuditStatus",
    "AuditReport",
    "VoteOutcome",
    "SubmissionAuditor",
    "MalformedProofError",
    "DistributionAuditor",
    # Leader selection & payout
    "NodeSelector",
    "score_candidates",
    "pick_leader",
    "PayoutCoordinator",
    "PayoutPhase",
    "PayoutStatus",
]
