"""
tasknode/metrics.py

Prometheus metrics for the audit and payout protocol.

Components increment counters on a shared ProtocolMetrics instance;
collect() renders them in Prometheus text exposition format.

Usage:
    metrics = ProtocolMetrics()
    auditor = SubmissionAuditor(..., metrics=metrics)

    prometheus_output = metrics.collect()
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

logger = logging.getLogger("tasknode.metrics")

LabelSet = Tuple[Tuple[str, str], ...]


@dataclass
class MetricValue:
    """Single metric value with labels."""
    name: str
    value: float
    labels: Dict[str, str] = field(default_factory=dict)
    metric_type: str = "counter"
    help_text: str = ""


class ProtocolMetrics:
    """Counters for rounds audited, votes, selections and payouts."""

    METRICS = {
        "tasknode_rounds_audited_total": {
            "type": "counter",
            "help": "Audit passes run, by kind and outcome",
        },
        "tasknode_votes_cast_total": {
            "type": "counter",
            "help": "Audit votes written, by kind and validity",
        },
        "tasknode_candidates_skipped_total": {
            "type": "counter",
            "help": "Candidates skipped without a vote, by kind and reason",
        },
        "tasknode_nodes_selected_total": {
            "type": "counter",
            "help": "Distribution leaders selected",
        },
        "tasknode_payouts_total": {
            "type": "counter",
            "help": "Payout state machine transitions, by phase",
        },
        "tasknode_gateway_failures_total": {
            "type": "counter",
            "help": "Content gateway attempts that failed",
        },
        "tasknode_uptime_seconds": {
            "type": "counter",
            "help": "Seconds since metrics were created",
        },
    }

    def __init__(self):
        self._start_time = time.time()
        self._counters: Dict[str, Dict[LabelSet, float]] = {}

    def inc(self, name: str, amount: float = 1.0, **labels: str) -> None:
        if name not in self.METRICS:
            logger.debug(f"Ignoring unknown metric {name}")
            return
        key = tuple(sorted(labels.items()))
        series = self._counters.setdefault(name, {})
        series[key] = series.get(key, 0.0) + amount

    def get(self, name: str, **labels: str) -> float:
        key = tuple(sorted(labels.items()))
        return self._counters.get(name, {}).get(key, 0.0)

    def values(self) -> List[MetricValue]:
        result = []
        for name, series in self._counters.items():
            for key, value in series.items():
                result.append(MetricValue(
                    name=name,
                    value=value,
                    labels=dict(key),
                    metric_type=self.METRICS[name]["type"],
                    help_text=self.METRICS[name]["help"],
                ))
        result.append(MetricValue(
            name="tasknode_uptime_seconds",
            value=time.time() - self._start_time,
            help_text=self.METRICS["tasknode_uptime_seconds"]["help"],
        ))
        return result

    def collect(self) -> str:
        """Render all metrics in Prometheus format."""
        by_name: Dict[str, List[MetricValue]] = {}
        for metric in self.values():
            by_name.setdefault(metric.name, []).append(metric)

        lines = []
        for name, metrics in by_name.items():
            lines.append(f"# HELP {name} {self.METRICS[name]['help']}")
            lines.append(f"# TYPE {name} {self.METRICS[name]['type']}")
            for metric in metrics:
                lines.append(f"{name}{self._format_labels(metric.labels)} {metric.value}")
        return "\n".join(lines) + "\n"

    @staticmethod
    def _format_labels(labels: Dict[str, str]) -> str:
        if not labels:
            return ""
        parts = []
        for key, value in sorted(labels.items()):
            escaped = str(value).replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
            parts.append(f'{key}="{escaped}"')
        return "{" + ",".join(parts) + "}"
