"""
tasknode - Round audit and payout coordination for task-validation nodes

Worker nodes submit values for numbered rounds. Other nodes audit those
submissions, elect one verified submitter to produce the round's
distribution list, audit that list, and trigger the payout once the
round's windows have closed.

Usage:
    import trio
    from tasknode import (
        TaskConfig, NamespaceClient, SubmissionAuditor, NodeSelector,
        PayoutCoordinator,
    )

    config = TaskConfig.from_argv(sys.argv)
    namespace = NamespaceClient(config)

    auditor = SubmissionAuditor(namespace, namespace, namespace, mode=config.mode)
    report = await auditor.audit_round(round_, validate)

    selector = NodeSelector(namespace)
    coordinator = PayoutCoordinator(selector, namespace, namespace, namespace)

    async with trio.open_nursery() as nursery:
        coordinator.start(nursery)
        await coordinator.select_and_generate_distribution_list(round_)
"""

from .config import TaskConfig, RunMode, GATEWAY_URL_TEMPLATES
from .metrics import ProtocolMetrics
from .signing import SignatureVerifier, Ed25519Verifier, InvalidSignatureError
from .namespace import (
    StateProvider,
    LedgerClient,
    IdentityProvider,
    NamespaceClient,
    NamespaceError,
    InMemoryNamespace,
    TaskFixture,
)
from .protocol import (
    AuditRecord,
    Submission,
    AuditVote,
    AuditTriggerState,
    ContentFetcher,
    ContentNotFoundError,
    SamplingMode,
    AuditStatus,
    AuditReport,
    SubmissionAuditor,
    DistributionAuditor,
    NodeSelector,
    PayoutCoordinator,
    PayoutPhase,
    PayoutStatus,
)

__version__ = "1.0.0"
__all__ = [
    # Config
    "TaskConfig",
    "RunMode",
    "GATEWAY_URL_TEMPLATES",
    "ProtocolMetrics",
    # Signing
    "SignatureVerifier",
    "Ed25519Verifier",
    "InvalidSignatureError",
    # Namespace
    "StateProvider",
    "LedgerClient",
    "IdentityProvider",
    "NamespaceClient",
    "NamespaceError",
    "InMemoryNamespace",
    "TaskFixture",
    # Protocol
    "AuditRecord",
    "Submission",
    "AuditVote",
    "AuditTriggerState",
    "ContentFetcher",
    "ContentNotFoundError",
    "SamplingMode",
    "AuditStatus",
    "AuditReport",
    "SubmissionAuditor",
    "DistributionAuditor",
    "NodeSelector",
    "PayoutCoordinator",
    "PayoutPhase",
    "PayoutStatus",
]
