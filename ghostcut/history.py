"""
Bounded in-memory audit history for side-by-side comparison
"""

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .models import AuditResult, ClaimStatus, RiskLevel

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 10


@dataclass
class AuditSnapshot:
    """A saved audit result"""
    id: str
    label: str
    timestamp: float
    result: AuditResult
    duration_ms: int

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'label': self.label,
            'timestamp': self.timestamp,
            'duration_ms': self.duration_ms,
            'trust_score': self.result.trust_score,
            'risk_level': RiskLevel(self.result.risk_level).value,
        }


@dataclass
class AuditComparison:
    """
    Differences between two audits (current minus previous)

    Attributes:
        previous_id: Snapshot compared against
        current_id: Snapshot being compared
        trust_score_delta: Change in trust score
        status_deltas: Change in claim count per status
        previous_risk: Risk tier of the previous audit
        current_risk: Risk tier of the current audit
    """
    previous_id: str
    current_id: str
    trust_score_delta: int
    status_deltas: Dict[ClaimStatus, int]
    previous_risk: RiskLevel
    current_risk: RiskLevel

    @property
    def risk_changed(self) -> bool:
        return self.previous_risk != self.current_risk

    @property
    def improved(self) -> bool:
        return self.trust_score_delta > 0

    def to_dict(self) -> Dict:
        return {
            'previous_id': self.previous_id,
            'current_id': self.current_id,
            'trust_score_delta': self.trust_score_delta,
            'status_deltas': {ClaimStatus(k).value: v for k, v in self.status_deltas.items()},
            'previous_risk': RiskLevel(self.previous_risk).value,
            'current_risk': RiskLevel(self.current_risk).value,
            'risk_changed': self.risk_changed,
        }


class AuditHistory:
    """
    Keeps the most recent audit snapshots, oldest first

    Saving beyond max_size evicts the oldest snapshot.
    """

    def __init__(self, max_size: int = DEFAULT_HISTORY_SIZE, clock: Callable[[], float] = time.time):
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self.max_size = max_size
        self._clock = clock
        self._snapshots = deque(maxlen=max_size)

    def save(self, result: AuditResult, duration_ms: Optional[int] = None, label: Optional[str] = None) -> str:
        """
        Save an audit result

        Args:
            result: Audit result
            duration_ms: Audit duration; defaults to result.duration_ms
            label: Display label; defaults to "Audit HH:MM:SS"

        Returns:
            Snapshot id ("audit-<epoch ms>")
        """
        now = self._clock()
        snapshot_id = f"audit-{int(now * 1000)}"
        taken = {s.id for s in self._snapshots}
        suffix = 1
        while snapshot_id in taken:
            suffix += 1
            snapshot_id = f"audit-{int(now * 1000)}-{suffix}"

        self._snapshots.append(AuditSnapshot(
            id=snapshot_id,
            label=label or f"Audit {time.strftime('%H:%M:%S', time.localtime(now))}",
            timestamp=now,
            result=result,
            duration_ms=result.duration_ms if duration_ms is None else duration_ms
        ))
        logger.debug("history.saved id=%s size=%d", snapshot_id, len(self._snapshots))
        return snapshot_id

    def remove(self, snapshot_id: str) -> bool:
        """Remove a snapshot; returns False when it does not exist"""
        for snapshot in self._snapshots:
            if snapshot.id == snapshot_id:
                self._snapshots.remove(snapshot)
                return True
        return False

    def clear(self) -> None:
        self._snapshots.clear()

    def get(self, snapshot_id: str) -> Optional[AuditSnapshot]:
        for snapshot in self._snapshots:
            if snapshot.id == snapshot_id:
                return snapshot
        return None

    @property
    def snapshots(self) -> List[AuditSnapshot]:
        return list(self._snapshots)

    @property
    def latest(self) -> Optional[AuditSnapshot]:
        return self._snapshots[-1] if self._snapshots else None

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self):
        return iter(list(self._snapshots))

    def compare(self, previous_id: str, current_id: str) -> AuditComparison:
        """
        Compare two saved audits

        Raises:
            KeyError: either snapshot id is unknown
        """
        previous = self.get(previous_id)
        current = self.get(current_id)
        if previous is None or current is None:
            missing = previous_id if previous is None else current_id
            raise KeyError(f"Unknown audit snapshot: {missing}")
        return compare_results(previous.result, current.result, previous_id, current_id)


def compare_results(
    previous: AuditResult,
    current: AuditResult,
    previous_id: str = "previous",
    current_id: str = "current"
) -> AuditComparison:
    """Deltas between two audit results"""
    before = previous.stats
    after = current.stats
    return AuditComparison(
        previous_id=previous_id,
        current_id=current_id,
        trust_score_delta=after.trust_score - before.trust_score,
        status_deltas={
            ClaimStatus.SUPPORTED: after.supported - before.supported,
            ClaimStatus.CONTRADICTED: after.contradicted - before.contradicted,
            ClaimStatus.UNVERIFIABLE: after.unverifiable - before.unverifiable,
            ClaimStatus.SOURCE_CONFLICT: after.source_conflict - before.source_conflict,
        },
        previous_risk=RiskLevel(before.risk_level),
        current_risk=RiskLevel(after.risk_level)
    )
