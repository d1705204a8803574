"""Quality Gate - Status derivation and threshold breach summary."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

STATUS_PASSED = 'Passed'
STATUS_FAILED = 'Failed'
STATUS_NA = 'N/A'


def derive_status(value: float, threshold: Optional[float]) -> str:
    """
    Status of a metric value against its threshold.

    N/A without a threshold, Passed when value >= threshold, Failed otherwise.
    Never stored: always evaluated from the current value and threshold.
    """
    if threshold is None:
        return STATUS_NA
    if value >= threshold:
        return STATUS_PASSED
    return STATUS_FAILED


@dataclass
class GateResult:
    """Quality gate result."""
    status: str  # 'success', 'warning'
    evaluated: int
    breaches: List[str] = field(default_factory=list)
    message: str = ''


class QualityGate:
    """Summarises threshold breaches. A breach never aborts the owning job."""

    def evaluate(self, metrics: list) -> GateResult:
        breaches = []
        for metric in metrics:
            if metric.status == STATUS_FAILED:
                breaches.append(metric.name)
                logger.warning(
                    f"Threshold breach: [{metric.category}] {metric.name} "
                    f"value={metric.value:.2f} threshold={metric.threshold:.2f}"
                )

        if breaches:
            return GateResult(
                status='warning',
                evaluated=len(metrics),
                breaches=breaches,
                message=f"{len(breaches)}/{len(metrics)} metrics below threshold"
            )
        return GateResult(status='success', evaluated=len(metrics), message='All metrics passed')
