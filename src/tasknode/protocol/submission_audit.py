"""
tasknode/protocol/submission_audit.py

Audit of task submissions for a round.

With content verification on, a submission value is a content id. The
bundle it points at holds a JSON proof:

    {"data": <raw submission>, "signature": <signed payload>}

where the signed payload is the submitter's signature over the SHA-256 hex
of the compact JSON encoding of ``data``. A proof that fails signature
verification or whose hash does not match is voted invalid without
running the caller's validator; a good proof has ``data`` validated.
"""

import json
import logging
from typing import Any, Dict, Optional, Tuple

from ..config import SUBMISSION_FILE_NAME, RunMode
from ..metrics import ProtocolMetrics
from ..namespace.base import IdentityProvider, LedgerClient, StateProvider
from ..signing import InvalidSignatureError, SignatureVerifier
from .audit import AuditReport, RoundAuditor, SamplingMode, Validator
from .content import ContentFetcher
from ..state import AuditTriggerState, Submission, canonical_json, sha256_hex

logger = logging.getLogger("tasknode.protocol.submission_audit")


class MalformedProofError(Exception):
    """Fetched proof is not the expected JSON object."""
    pass


def normalize_hash(value: str) -> str:
    """Signed hashes may arrive JSON-quoted or upper-cased."""
    return value.replace('"', "").strip().lower()


def parse_proof(body: str) -> Tuple[Any, str]:
    """Split a proof document into (data, signed payload)."""
    try:
        proof = json.loads(body)
    except ValueError as e:
        raise MalformedProofError(f"Proof is not JSON: {e}") from e
    if not isinstance(proof, dict) or 'data' not in proof or not proof.get('signature'):
        raise MalformedProofError("Proof needs 'data' and 'signature'")
    return proof['data'], str(proof['signature'])


class SubmissionAuditor(RoundAuditor):
    """Samples or enumerates a round's task submissions and votes on them."""

    kind = "submission"

    def __init__(
        self,
        state: StateProvider,
        ledger: LedgerClient,
        identity: IdentityProvider,
        fetcher: Optional[ContentFetcher] = None,
        verifier: Optional[SignatureVerifier] = None,
        mode: RunMode = RunMode.ADMINISTERED,
        metrics: Optional[ProtocolMetrics] = None,
        proof_file_name: str = SUBMISSION_FILE_NAME,
    ):
        super().__init__(state, ledger, identity, mode=mode, metrics=metrics)
        self.fetcher = fetcher
        self.verifier = verifier
        self.proof_file_name = proof_file_name

    async def audit_round(
        self,
        round_: int,
        validate: Validator,
        sampling: SamplingMode = SamplingMode.EXHAUSTIVE,
        verify_content: bool = False,
    ) -> AuditReport:
        """
        Validate a round's submissions and vote on them.

        Args:
            round_: Round to audit
            validate: async predicate validate(value, round, node_identity)
            sampling: EXHAUSTIVE or RANDOM (at most 5 distinct candidates)
            verify_content: Treat values as content ids and check the
                signed proof before validating

        Returns:
            AuditReport; status NO_SUBMISSIONS if the round has none
        """
        if verify_content and (self.fetcher is None or self.verifier is None):
            raise ValueError("Content verification needs a fetcher and a verifier")

        evaluate = self._evaluate_proof if verify_content else None
        return await self._audit(round_, validate, sampling, evaluate=evaluate)

    # alias matching the host-facing operation name
    validate_and_vote_on_nodes = audit_round

    async def _load_round(
        self, round_: int
    ) -> Optional[Tuple[Dict[str, Submission], Dict[str, AuditTriggerState]]]:
        state = await self.state.get_submission_state(round_)
        if state is None:
            return None
        submissions = state.for_round(round_)
        if not submissions:
            return None
        return submissions, state.audit_triggers.get(round_, {})

    async def _cast_vote(self, candidate: str, is_valid: bool, voter: str, round_: int) -> None:
        await self.ledger.cast_audit_vote(candidate, is_valid, voter, round_)

    async def _evaluate_proof(
        self,
        round_: int,
        candidate: str,
        submission: Submission,
        validate: Validator,
    ) -> Tuple[bool, str]:
        body = await self.fetcher.fetch(submission.value, self.proof_file_name)
        data, signed_payload = parse_proof(body)

        try:
            signed_hash = self.verifier.verify(signed_payload, candidate)
        except InvalidSignatureError as e:
            logger.warning(f"Invalid proof signature from {candidate}: {e}")
            return False, "invalid_signature"

        if normalize_hash(signed_hash) != normalize_hash(sha256_hex(canonical_json(data))):
            logger.warning(f"Proof hash mismatch for {candidate} in round {round_}")
            return False, "content_mismatch"

        is_valid = await validate(data, round_, candidate)
        return bool(is_valid), "validated" if is_valid else "rejected"
