"""
Tests for tasknode/metrics.py
"""

import pytest

from tasknode.metrics import ProtocolMetrics


class TestProtocolMetrics:
    """Tests for ProtocolMetrics counters and Prometheus output."""

    def test_inc_and_get(self):
        metrics = ProtocolMetrics()
        metrics.inc("tasknode_votes_cast_total", kind="submission", valid="false")
        metrics.inc("tasknode_votes_cast_total", valid="false", kind="submission")

        assert metrics.get("tasknode_votes_cast_total", kind="submission", valid="false") == 2
        assert metrics.get("tasknode_votes_cast_total", kind="distribution", valid="false") == 0

    def test_unknown_metric_ignored(self):
        metrics = ProtocolMetrics()
        metrics.inc("not_a_metric")
        assert metrics.get("not_a_metric") == 0

    def test_collect_format(self):
        metrics = ProtocolMetrics()
        metrics.inc("tasknode_payouts_total", phase="payout_triggered")

        output = metrics.collect()

        assert "# HELP tasknode_payouts_total" in output
        assert "# TYPE tasknode_payouts_total counter" in output
        assert 'tasknode_payouts_total{phase="payout_triggered"} 1.0' in output
        assert "tasknode_uptime_seconds" in output
        assert output.endswith("\n")

    def test_label_escaping(self):
        metrics = ProtocolMetrics()
        metrics.inc("tasknode_candidates_skipped_total", reason='say "hi"')

        assert 'reason="say \\"hi\\""' in metrics.collect()
