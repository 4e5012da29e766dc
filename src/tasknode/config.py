"""
tasknode/config.py

Configuration constants and data classes for tasknode.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional, Sequence
import logging
import os

logger = logging.getLogger("tasknode.config")


# Content gateways, tried in order. Templates take {cid} and {file_name}.
GATEWAY_URL_TEMPLATES: List[str] = [
    "https://{cid}.ipfs.w3s.link/{file_name}",
    "https://ipfs-gateway.koii.live/ipfs/{cid}/{file_name}",
    "https://{cid}.ipfs.dweb.link/{file_name}",
    "https://gateway.ipfs.io/ipfs/{cid}/{file_name}",
    "https://ipfs.eu.koii.network/ipfs/{cid}/{file_name}",
]

# Per-gateway request timeout (seconds)
DEFAULT_FETCH_TIMEOUT = 60.0

# Upper bound on candidates checked by a random audit sample
RANDOM_SAMPLE_SIZE = 5

# File holding a submission's signed proof inside its content bundle
SUBMISSION_FILE_NAME = "submission.json"

# Slot reported by a standalone node (no chain to ask)
STANDALONE_SLOT = 100

# Host process defaults
DEFAULT_EXPRESS_PORT = 3000
DEFAULT_K2_NODE_URL = "https://testnet.koii.network"
DEFAULT_TASK_NAME = "Local"
NAMESPACE_PATH = "namespace-wrapper"

# Host RPC timeout (seconds)
NAMESPACE_TIMEOUT = 30.0


class RunMode(Enum):
    """
    How the node is being run.

    ADMINISTERED: launched by the host task-node process, which owns the
                  ledger connection and answers namespace RPCs
    STANDALONE: single-node testing without a host process
    """
    ADMINISTERED = auto()
    STANDALONE = auto()

    def __str__(self) -> str:
        return self.name.lower()


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value else default
    except ValueError:
        logger.warning(f"Ignoring non-integer config value: {value!r}")
        return default


def _parse_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value else default
    except ValueError:
        logger.warning(f"Ignoring non-numeric config value: {value!r}")
        return default


@dataclass
class TaskConfig:
    """Runtime configuration for a task node."""
    task_name: str = DEFAULT_TASK_NAME
    task_id: Optional[str] = None
    express_port: int = DEFAULT_EXPRESS_PORT
    main_account_pubkey: str = ""
    secret_key: str = ""
    k2_node_url: str = DEFAULT_K2_NODE_URL
    service_url: str = ""
    stake: float = 0.0
    task_node_port: int = 0
    gateways: List[str] = field(default_factory=lambda: list(GATEWAY_URL_TEMPLATES))
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT

    @property
    def mode(self) -> RunMode:
        """A known task id means the host process administers this node."""
        return RunMode.ADMINISTERED if self.task_id else RunMode.STANDALONE

    @property
    def namespace_url(self) -> str:
        """Endpoint of the host process's namespace RPC."""
        return f"http://localhost:{self.task_node_port}/{NAMESPACE_PATH}"

    @classmethod
    def from_argv(cls, argv: Sequence[str]) -> "TaskConfig":
        """
        Build config from the positional arguments the host process passes.

        Layout: [1] script, [2] task name, [3] task id, [4] express port,
        [6] main account pubkey, [7] secret key, [8] K2 node URL,
        [9] service URL, [10] stake, [11] task node port.
        """
        def arg(index: int) -> Optional[str]:
            return argv[index] if len(argv) > index and argv[index] else None

        return cls(
            task_name=arg(2) or DEFAULT_TASK_NAME,
            task_id=arg(3),
            express_port=_parse_int(arg(4), DEFAULT_EXPRESS_PORT),
            main_account_pubkey=arg(6) or "",
            secret_key=arg(7) or "",
            k2_node_url=arg(8) or DEFAULT_K2_NODE_URL,
            service_url=arg(9) or "",
            stake=_parse_float(arg(10), 0.0),
            task_node_port=_parse_int(arg(11), 0),
        )

    @classmethod
    def from_env(cls) -> "TaskConfig":
        """Build config from TASKNODE_* environment variables."""
        env = os.environ
        gateways = env.get("TASKNODE_GATEWAYS")
        return cls(
            task_name=env.get("TASKNODE_TASK_NAME") or DEFAULT_TASK_NAME,
            task_id=env.get("TASKNODE_TASK_ID") or None,
            express_port=_parse_int(env.get("TASKNODE_EXPRESS_PORT"), DEFAULT_EXPRESS_PORT),
            main_account_pubkey=env.get("TASKNODE_MAIN_ACCOUNT_PUBKEY", ""),
            secret_key=env.get("TASKNODE_SECRET_KEY", ""),
            k2_node_url=env.get("TASKNODE_K2_NODE_URL") or DEFAULT_K2_NODE_URL,
            service_url=env.get("TASKNODE_SERVICE_URL", ""),
            stake=_parse_float(env.get("TASKNODE_STAKE"), 0.0),
            task_node_port=_parse_int(env.get("TASKNODE_TASK_NODE_PORT"), 0),
            gateways=(
                [g.strip() for g in gateways.split(",") if g.strip()]
                if gateways else list(GATEWAY_URL_TEMPLATES)
            ),
            fetch_timeout=_parse_float(env.get("TASKNODE_FETCH_TIMEOUT"), DEFAULT_FETCH_TIMEOUT),
        )
