"""
tasknode/namespace/client.py

RPC client for the host task-node process.

Every call is a JSON POST to the host's namespace endpoint:

    {"args": [method, *args], "taskId": <task id>, "secret": <secret key>}

and a 200 reply carries the result in its ``response`` field.

Usage:
    config = TaskConfig.from_argv(sys.argv)
    async with NamespaceClient(config) as namespace:
        state = await namespace.get_submission_state(round_)
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import NAMESPACE_TIMEOUT, TaskConfig
from ..state import (
    RoundTiming,
    TaskDistributionInfo,
    TaskSubmissionState,
    canonical_json,
    parse_distribution_info,
    parse_round_timing,
    parse_submission_state,
)
from .base import IdentityProvider, LedgerClient, StateProvider

logger = logging.getLogger("tasknode.namespace.client")


class NamespaceError(Exception):
    """Host process rejected or failed a namespace call."""
    pass


class NamespaceClient(StateProvider, LedgerClient, IdentityProvider):
    """StateProvider, LedgerClient and IdentityProvider backed by host RPC."""

    def __init__(
        self,
        config: TaskConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = NAMESPACE_TIMEOUT,
    ):
        """
        Initialize NamespaceClient.

        Args:
            config: Task configuration (task id, secret, host port)
            http_client: Optional pre-built client (tests inject a mock transport)
            timeout: Per-call timeout in seconds
        """
        self.config = config
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "NamespaceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def call(self, method: str, *args: Any) -> Any:
        """
        Invoke a namespace method on the host.

        Raises:
            NamespaceError: On transport failure, non-200 status or an
                error reply
        """
        body = {
            'args': [method, *args],
            'taskId': self.config.task_id,
            'secret': self.config.secret_key,
        }
        try:
            response = await self._http.post(self.config.namespace_url, json=body)
        except httpx.HTTPError as e:
            raise NamespaceError(f"{method}: {e}") from e

        if response.status_code != 200:
            raise NamespaceError(f"{method}: host returned {response.status_code}: {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            raise NamespaceError(f"{method}: unreadable reply") from e

        result = data.get('response') if isinstance(data, dict) else None
        if isinstance(result, dict) and 'error' in result:
            raise NamespaceError(f"{method}: {result['error']}")
        return result

    async def _get_task_state(self, **options: bool) -> Optional[dict]:
        try:
            state = await self.call('getTaskState', options)
        except NamespaceError as e:
            logger.error(f"Failed to get task state: {e}")
            return None
        if not isinstance(state, dict):
            # numeric replies are host error codes
            logger.warning(f"Error in getting task state: {state!r}")
            return None
        return state

    # ========================================================================
    # STATE
    # ========================================================================

    async def get_submission_state(self, round_: int) -> Optional[TaskSubmissionState]:
        state = await self._get_task_state(is_submission_required=True)
        if state is None:
            return None
        try:
            return parse_submission_state(state)
        except (AttributeError, TypeError, ValueError) as e:
            logger.error(f"Unreadable submission state: {e!r}")
            return None

    async def get_distribution_info(self, round_: int) -> Optional[TaskDistributionInfo]:
        state = await self._get_task_state(is_distribution_required=True)
        if state is None:
            return None
        try:
            return parse_distribution_info(state)
        except (AttributeError, TypeError, ValueError) as e:
            logger.error(f"Unreadable distribution info: {e!r}")
            return None

    async def get_round_timing(self) -> Optional[RoundTiming]:
        state = await self._get_task_state()
        if state is None:
            return None
        return parse_round_timing(state)

    async def get_average_slot_time_ms(self) -> Optional[int]:
        try:
            value = await self.call('getAverageSlotTime')
        except NamespaceError as e:
            logger.error(f"Failed to get average slot time: {e}")
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(f"Unusable average slot time: {value!r}")
            return None

    async def get_slot(self) -> int:
        try:
            value = await self.call('getCurrentSlot')
        except NamespaceError as e:
            logger.error(f"Failed to get slot: {e}")
            return 0
        if not isinstance(value, int):
            logger.error(f"Error getting slot: {value!r}")
            return 0
        return value

    # ========================================================================
    # LEDGER
    # ========================================================================

    async def cast_audit_vote(
        self, candidate: str, is_valid: bool, voter: str, round_: int
    ) -> None:
        await self.call('auditSubmission', candidate, is_valid, voter, str(round_))

    async def cast_distribution_audit_vote(
        self, candidate: str, is_valid: bool, voter: str, round_: int
    ) -> None:
        await self.call('distributionListAuditSubmission', candidate, is_valid, voter, str(round_))

    async def payout_trigger(self, round_: int) -> None:
        await self.call('payoutTrigger', str(round_))

    async def check_submission_and_update_round(self, value: str, round_: int) -> None:
        await self.call('checkSubmissionAndUpdateRound', value, str(round_))

    async def upload_distribution_list(
        self, distribution_list: Dict[str, Any], round_: int
    ) -> bool:
        result = await self.call(
            'uploadDistributionList', canonical_json(distribution_list), str(round_)
        )
        return bool(result)

    async def distribution_list_submission_on_chain(self, round_: int) -> None:
        await self.call('distributionListSubmissionOnChain', str(round_))

    # ========================================================================
    # IDENTITY
    # ========================================================================

    async def get_local_submitter_identity(self) -> Optional[str]:
        try:
            account = await self.call('getSubmitterAccount')
        except NamespaceError as e:
            logger.error(f"Failed to get submitter account: {e}")
            return None
        if isinstance(account, dict):
            account = account.get('publicKey')
        return str(account) if account else None
