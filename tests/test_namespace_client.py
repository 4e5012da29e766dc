"""
Tests for tasknode/namespace/client.py

Tests the host RPC wire format and reply handling. The host is played by
httpx.MockTransport.
"""

import json
from typing import Any, Dict, List

import httpx
import pytest

from tasknode.config import TaskConfig
from tasknode.namespace.client import NamespaceClient, NamespaceError
from tasknode.protocol.audit import AuditStatus
from tasknode.protocol.node_selection import NodeSelector
from tasknode.protocol.submission_audit import SubmissionAuditor
from tasknode.state import AuditRecord, RoundTiming


# ============================================================================
# TEST DATA
# ============================================================================

CONFIG = TaskConfig(task_id="task-123", secret_key="s3cret", task_node_port=8080)

TASK_STATE = {
    'submissions': {'5': {'A': {'submission_value': 'cid', 'slot': 10}}},
    'submissions_audit_trigger': {},
    'distribution_rewards_submission': {'5': {'A': {'submission_value': 'list', 'slot': 11}}},
    'distributions_audit_trigger': {},
    'distributions_audit_record': {'5': 'PayoutFailed'},
    'audit_window': 4,
    'submission_window': 6,
}


class FakeHost:
    """Records namespace calls and answers from a method table."""

    def __init__(self, replies: Dict[str, Any], status: int = 200):
        self.replies = replies
        self.status = status
        self.calls: List[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.calls.append({'url': str(request.url), **body})
        method = body['args'][0]
        return httpx.Response(self.status, json={'response': self.replies.get(method)})

    def client(self) -> NamespaceClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return NamespaceClient(CONFIG, http_client=http)


# ============================================================================
# WIRE FORMAT TESTS
# ============================================================================

class TestWireFormat:
    """Tests for NamespaceClient.call."""

    @pytest.mark.trio
    async def test_request_body(self):
        host = FakeHost({'auditSubmission': None})

        await host.client().cast_audit_vote("cand", False, "voter", 5)

        call = host.calls[0]
        assert call['url'] == "http://localhost:8080/namespace-wrapper"
        assert call['args'] == ['auditSubmission', 'cand', False, 'voter', '5']
        assert call['taskId'] == "task-123"
        assert call['secret'] == "s3cret"

    @pytest.mark.trio
    async def test_returns_response_field(self):
        host = FakeHost({'getCurrentSlot': 4242})
        assert await host.client().call('getCurrentSlot') == 4242

    @pytest.mark.trio
    async def test_non_200_raises(self):
        host = FakeHost({}, status=500)
        with pytest.raises(NamespaceError):
            await host.client().call('payoutTrigger', '5')

    @pytest.mark.trio
    async def test_error_reply_raises(self):
        host = FakeHost({'payoutTrigger': {'error': 'not allowed'}})
        with pytest.raises(NamespaceError, match="not allowed"):
            await host.client().payout_trigger(5)

    @pytest.mark.trio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        with pytest.raises(NamespaceError):
            await NamespaceClient(CONFIG, http_client=http).call('getCurrentSlot')

    @pytest.mark.trio
    async def test_upload_distribution_list_is_json(self):
        host = FakeHost({'uploadDistributionList': True})

        ok = await host.client().upload_distribution_list({'A': 10, 'B': 5}, 7)

        assert ok is True
        assert host.calls[0]['args'] == ['uploadDistributionList', '{"A":10,"B":5}', '7']


# ============================================================================
# STATE READ TESTS
# ============================================================================

class TestStateReads:

    @pytest.mark.trio
    async def test_submission_state(self):
        host = FakeHost({'getTaskState': TASK_STATE})

        state = await host.client().get_submission_state(5)

        assert state.for_round(5)['A'].value == 'cid'
        assert host.calls[0]['args'] == ['getTaskState', {'is_submission_required': True}]

    @pytest.mark.trio
    async def test_distribution_info(self):
        host = FakeHost({'getTaskState': TASK_STATE})

        info = await host.client().get_distribution_info(5)

        assert info.record_for(5) is AuditRecord.PAYOUT_FAILED
        assert host.calls[0]['args'] == ['getTaskState', {'is_distribution_required': True}]

    @pytest.mark.trio
    async def test_submissions_helper(self):
        host = FakeHost({'getTaskState': TASK_STATE})
        assert set(await host.client().get_submissions(5)) == {'A'}

    @pytest.mark.trio
    async def test_round_timing(self):
        host = FakeHost({'getTaskState': TASK_STATE})
        assert await host.client().get_round_timing() == RoundTiming(4, 6)

    @pytest.mark.trio
    async def test_numeric_task_state_is_none(self):
        """Test a numeric error code reply reads as unavailable."""
        host = FakeHost({'getTaskState': 404})
        client = host.client()

        assert await client.get_submission_state(5) is None
        assert await client.get_round_timing() is None

    @pytest.mark.trio
    async def test_failed_task_state_is_none(self):
        host = FakeHost({}, status=503)
        assert await host.client().get_distribution_info(5) is None

    @pytest.mark.trio
    async def test_average_slot_time(self):
        host = FakeHost({'getAverageSlotTime': 408})
        assert await host.client().get_average_slot_time_ms() == 408

    @pytest.mark.trio
    async def test_average_slot_time_unusable(self):
        host = FakeHost({'getAverageSlotTime': None})
        assert await host.client().get_average_slot_time_ms() is None

    @pytest.mark.trio
    async def test_slot_non_int_is_zero(self):
        host = FakeHost({'getCurrentSlot': "oops"})
        assert await host.client().get_slot() == 0

    @pytest.mark.trio
    async def test_slot_error_is_zero(self):
        host = FakeHost({'getCurrentSlot': {'error': 'unavailable'}})
        assert await host.client().get_slot() == 0

    @pytest.mark.trio
    async def test_unreadable_task_state_is_none(self):
        host = FakeHost({'getTaskState': {'submissions': ['A'], 'distribution_rewards_submission': 7}})
        client = host.client()

        assert await client.get_submission_state(5) is None
        assert await client.get_distribution_info(5) is None


# ============================================================================
# MALFORMED STATE TESTS
# ============================================================================

class TestMalformedEntries:
    """A bad entry from the host only costs that entry."""

    STATE = {
        'submissions': {
            '5': {
                'A': {'submission_value': 'a', 'slot': None},
                'B': {'submission_value': 'b', 'slot': 10},
            },
        },
        'submissions_audit_trigger': {
            '5': {'Z': {'trigger_by': 'Q', 'slot': 1, 'votes': [{'voter': 'Q', 'slot': 1}]}},
        },
        'audit_window': 4,
        'submission_window': 6,
    }

    def host(self) -> FakeHost:
        return FakeHost({
            'getTaskState': self.STATE,
            'getSubmitterAccount': 'V',
            'auditSubmission': None,
        })

    @pytest.mark.trio
    async def test_audit_round(self):
        host = self.host()

        async def validate(value, round_, node):
            return False

        client = host.client()
        report = await SubmissionAuditor(client, client, client).audit_round(5, validate)

        assert report.status is AuditStatus.COMPLETED
        assert [o.candidate for o in report.outcomes] == ['B']
        assert host.calls[-1]['args'] == ['auditSubmission', 'B', False, 'V', '5']

    @pytest.mark.trio
    async def test_select(self):
        client = self.host().client()
        assert await NodeSelector(client).select(5, previous_failed=True) == 'B'


# ============================================================================
# IDENTITY TESTS
# ============================================================================

class TestIdentity:

    @pytest.mark.trio
    async def test_string_account(self):
        host = FakeHost({'getSubmitterAccount': "PubKey1"})
        assert await host.client().get_local_submitter_identity() == "PubKey1"

    @pytest.mark.trio
    async def test_dict_account(self):
        host = FakeHost({'getSubmitterAccount': {'publicKey': "PubKey2"}})
        assert await host.client().get_local_submitter_identity() == "PubKey2"

    @pytest.mark.trio
    async def test_missing_account(self):
        host = FakeHost({'getSubmitterAccount': None})
        assert await host.client().get_local_submitter_identity() is None


class TestLifecycle:

    @pytest.mark.trio
    async def test_injected_client_left_open(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        async with NamespaceClient(CONFIG, http_client=http):
            pass
        assert not http.is_closed
        await http.aclose()

    @pytest.mark.trio
    async def test_owned_client_closed(self):
        client = NamespaceClient(CONFIG)
        async with client:
            pass
        assert client._http.is_closed
