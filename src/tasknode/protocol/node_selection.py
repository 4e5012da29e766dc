"""
tasknode/protocol/node_selection.py

Deterministic choice of the node that produces a round's distribution list.

Every node runs the same computation over the same ledger snapshot and
arrives at the same leader without exchanging messages:

1. Candidates are the nodes that submitted in this round and the two
   before it. If that intersection is empty, everyone who submitted in
   this round is a candidate.
2. If this round's payout already failed, nodes that submitted a
   distribution list for it are dropped.
3. The reference hash is SHA-256 over the candidates' submissions
   (sorted by node identity, compact JSON). Each candidate's own hash is
   taken over just its entry, and its score is the absolute difference of
   the two hashes' character-code sums.
4. The highest score wins, ties going to the first candidate in sorted
   order. On a retry after a failed round the second-highest distinct
   score wins instead, so the previous leader is passed over; with a
   single distinct score the highest is used.

This is leader election by content entanglement: unpredictable before
submissions close, verifiable after, and not cryptographically secure.
"""

import logging
from typing import Dict, List, Optional, Set

from ..metrics import ProtocolMetrics
from ..namespace.base import StateProvider
from ..state import AuditRecord, SelectedNode, Submission, hash_submissions

logger = logging.getLogger("tasknode.protocol.node_selection")

# Rounds before the current one a candidate must also have submitted in
HISTORY_DEPTH = 2


def ascii_sum(text: str) -> int:
    return sum(ord(c) for c in text)


def score_candidates(candidates: Dict[str, Submission]) -> List[SelectedNode]:
    """Score every candidate against the set's reference hash, in sorted order."""
    ordered = {key: candidates[key] for key in sorted(candidates)}
    reference = ascii_sum(hash_submissions(ordered))
    return [
        SelectedNode(
            score=abs(reference - ascii_sum(hash_submissions({key: submission}))),
            node_identity=key,
        )
        for key, submission in ordered.items()
    ]


def pick_leader(scored: List[SelectedNode], previous_failed: bool = False) -> Optional[SelectedNode]:
    """Highest score, or second-highest distinct score after a failed round."""
    if not scored:
        return None

    highest = scored[0]
    for node in scored[1:]:
        if node.score > highest.score:
            highest = node

    if not previous_failed:
        return highest

    distinct = sorted({node.score for node in scored}, reverse=True)
    if len(distinct) < 2:
        logger.debug("Only one distinct score, falling back to highest")
        return highest

    for node in scored:
        if node.score == distinct[1]:
            return node
    return highest


class NodeSelector:
    """
    Selects the round's distribution leader from ledger state.

    Usage:
        selector = NodeSelector(namespace)
        leader = await selector.select(round_, previous_failed=False)
    """

    def __init__(self, state: StateProvider, metrics: Optional[ProtocolMetrics] = None):
        self.state = state
        self.metrics = metrics

    async def candidates(self, round_: int) -> Optional[Dict[str, Submission]]:
        """Eligible candidates and their current-round submissions, or None."""
        state = await self.state.get_submission_state(round_)
        if state is None:
            logger.info(f"No submission state for round {round_}")
            return None

        current = state.for_round(round_)
        if not current:
            logger.info(f"No submissions found for round {round_}")
            return None

        eligible: Set[str] = set(current)
        for previous in range(round_ - HISTORY_DEPTH, round_):
            history = state.for_round(previous) if previous >= 0 else None
            eligible &= set(history or {})
        if not eligible:
            logger.debug(f"No node submitted in rounds {round_ - HISTORY_DEPTH}..{round_}, using round {round_}")
            eligible = set(current)

        info = await self.state.get_distribution_info(round_)
        if info is not None and info.record_for(round_) is AuditRecord.PAYOUT_FAILED:
            failed = set(info.for_round(round_) or {})
            if failed & eligible:
                logger.info(f"Excluding {len(failed & eligible)} node(s) whose round {round_} distribution failed")
            eligible -= failed

        if not eligible:
            logger.info(f"No eligible distribution candidates for round {round_}")
            return None

        return {key: current[key] for key in eligible}

    async def score(self, round_: int) -> List[SelectedNode]:
        candidates = await self.candidates(round_)
        if not candidates:
            return []
        return score_candidates(candidates)

    async def select(self, round_: int, previous_failed: bool = False) -> Optional[str]:
        """
        Leader identity for the round.

        Args:
            round_: Round whose submissions drive the selection
            previous_failed: The last distribution attempt failed; pass over
                the most likely previous leader

        Returns:
            Node identity, or None if there were no candidates
        """
        leader = pick_leader(await self.score(round_), previous_failed)
        if leader is None:
            return None

        logger.info(
            f"Selected {leader.node_identity} (score {leader.score}) "
            f"to submit the round {round_} distribution list"
        )
        if self.metrics:
            self.metrics.inc("tasknode_nodes_selected_total")
        return leader.node_identity

    node_selection_distribution_list = select
