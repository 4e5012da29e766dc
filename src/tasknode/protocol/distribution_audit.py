"""
tasknode/protocol/distribution_audit.py

Audit of distribution lists submitted for a round. Values go straight to
the caller's validator; voting follows the same open-trigger rule as task
submissions.
"""

import logging
from typing import Dict, Optional, Tuple

from .audit import AuditReport, RoundAuditor, SamplingMode, Validator
from ..state import AuditTriggerState, Submission

logger = logging.getLogger("tasknode.protocol.distribution_audit")


class DistributionAuditor(RoundAuditor):
    """Validates and votes on a round's distribution-list submissions."""

    kind = "distribution"

    async def audit_round(
        self,
        round_: int,
        validate: Validator,
        sampling: SamplingMode = SamplingMode.EXHAUSTIVE,
    ) -> AuditReport:
        """
        Validate a round's distribution lists and vote on them.

        Returns:
            AuditReport; status NO_SUBMISSIONS if no list was submitted
        """
        return await self._audit(round_, validate, sampling)

    validate_and_vote_on_distribution_list = audit_round

    async def _load_round(
        self, round_: int
    ) -> Optional[Tuple[Dict[str, Submission], Dict[str, AuditTriggerState]]]:
        info = await self.state.get_distribution_info(round_)
        if info is None:
            return None
        submissions = info.for_round(round_)
        if not submissions:
            return None
        triggers = info.distribution_audit_triggers.get(round_, {})
        logger.debug(
            f"Round {round_}: {len(submissions)} distribution list(s), {len(triggers)} open audit(s)"
        )
        return submissions, triggers

    async def _cast_vote(self, candidate: str, is_valid: bool, voter: str, round_: int) -> None:
        await self.ledger.cast_distribution_audit_vote(candidate, is_valid, voter, round_)
