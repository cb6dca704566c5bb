"""
Trust scoring: severity-weighted penalties, verdict percentages and risk tiers
"""

import math
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from .models import (
    AuditSentence,
    AuditStats,
    ClaimStatus,
    RiskLevel,
    Severity,
    VerdictPercentages,
    status_counts,
)
from .utils import clamp


SEVERITY_WEIGHTS = {
    Severity.CRITICAL: 3.0,
    Severity.MODERATE: 1.5,
    Severity.MINOR: 0.5,
}
UNVERIFIABLE_PENALTY = 0.3
SOURCE_CONFLICT_PENALTY = 0.8

# Contradicted share (percent) at which the risk tier escalates
HIGH_RISK_CONTRADICTED_PCT = 30.0
MEDIUM_RISK_CONTRADICTED_PCT = 10.0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 always upward"""
    return int(math.floor(value + 0.5))


class TrustScorer:
    """
    Converts claim verdicts into a 0-100 trust score

    Every claim contributes a penalty; the score is the share of the worst
    case (every claim a critical contradiction) that was avoided.
    """

    def __init__(
        self,
        severity_weights: Optional[Dict[Severity, float]] = None,
        unverifiable_penalty: float = UNVERIFIABLE_PENALTY,
        source_conflict_penalty: float = SOURCE_CONFLICT_PENALTY
    ):
        """
        Initialize the scorer

        Args:
            severity_weights: Penalty per contradiction severity
            unverifiable_penalty: Penalty for a claim the sources do not address
            source_conflict_penalty: Penalty for a claim whose sources disagree
        """
        self.severity_weights = dict(SEVERITY_WEIGHTS)
        if severity_weights:
            self.severity_weights.update({Severity(k): float(v) for k, v in severity_weights.items()})
        self.unverifiable_penalty = unverifiable_penalty
        self.source_conflict_penalty = source_conflict_penalty

    @property
    def max_weight(self) -> float:
        return max(self.severity_weights.values())

    def penalty(self, sentence: AuditSentence) -> float:
        """Penalty contributed by one claim"""
        status = ClaimStatus(sentence.status)
        if status == ClaimStatus.CONTRADICTED:
            return self.severity_weights[Severity(sentence.severity.level)]
        if status == ClaimStatus.UNVERIFIABLE:
            return self.unverifiable_penalty
        if status == ClaimStatus.SOURCE_CONFLICT:
            return self.source_conflict_penalty
        return 0.0

    def trust_score(self, sentences: Sequence[AuditSentence]) -> int:
        """
        Severity-weighted trust score

        Args:
            sentences: Verified claims

        Returns:
            Integer in [0, 100]; 100 for an empty claim set
        """
        if not sentences:
            return 100
        total_penalty = sum(self.penalty(s) for s in sentences)
        max_penalty = len(sentences) * self.max_weight
        return round_half_up(clamp(100.0 * (1.0 - total_penalty / max_penalty), 0.0, 100.0))

    def stats(self, sentences: Sequence[AuditSentence]) -> AuditStats:
        """Verdict distribution, trust score and risk tier of a claim set"""
        supported, contradicted, unverifiable, source_conflict = status_counts(list(sentences))
        risk_level, risk_reason = assess_risk(sentences)
        return AuditStats(
            total=len(sentences),
            supported=supported,
            contradicted=contradicted,
            unverifiable=unverifiable,
            source_conflict=source_conflict,
            percentages=compute_percentages((supported, contradicted, unverifiable, source_conflict)),
            trust_score=self.trust_score(sentences),
            risk_level=risk_level,
            risk_reason=risk_reason,
            insufficient_data=not sentences
        )


_DEFAULT_SCORER = TrustScorer()


def penalty(sentence: AuditSentence) -> float:
    return _DEFAULT_SCORER.penalty(sentence)


def compute_trust_score(sentences: Sequence[AuditSentence]) -> int:
    """Trust score with the default penalty weights"""
    return _DEFAULT_SCORER.trust_score(sentences)


def compute_percentages(counts: Tuple[int, int, int, int]) -> VerdictPercentages:
    """
    Integer percentages that sum to exactly 100

    Largest-remainder rounding: every share is floored, then the missing
    points go to the largest remainders. Ties are broken in the order
    supported, contradicted, unverifiable, source_conflict.

    Args:
        counts: (supported, contradicted, unverifiable, source_conflict)

    Returns:
        VerdictPercentages; all zero for an empty claim set
    """
    values = np.asarray(counts, dtype=np.int64)
    if values.shape != (4,) or np.any(values < 0):
        raise ValueError(f"Expected four non-negative counts, got {counts}")
    total = int(values.sum())
    if total == 0:
        return VerdictPercentages()

    scaled = values * 100
    floors = scaled // total
    remainders = scaled % total
    missing = 100 - int(floors.sum())
    order = np.argsort(-remainders, kind='stable')[:missing]
    floors[order] += 1
    return VerdictPercentages(*(int(v) for v in floors))


def assess_risk(sentences: Sequence[AuditSentence]) -> Tuple[RiskLevel, str]:
    """
    Risk tier of a claim set with a human-readable reason

    HIGH for any critical contradiction or a contradicted share of 30% or
    more; MEDIUM from 10%; LOW otherwise.
    """
    total = len(sentences)
    if total == 0:
        return RiskLevel.LOW, "No claims were audited; insufficient data."

    contradicted = [s for s in sentences if s.status == ClaimStatus.CONTRADICTED]
    critical = [s for s in contradicted if Severity(s.severity.level) == Severity.CRITICAL]
    share = 100.0 * len(contradicted) / total

    if critical:
        noun = "contradiction" if len(critical) == 1 else "contradictions"
        return RiskLevel.HIGH, f"{len(critical)} critical {noun} in a high-risk domain."
    if share >= HIGH_RISK_CONTRADICTED_PCT:
        return RiskLevel.HIGH, f"{share:.0f}% of claims are contradicted by the sources."
    if share >= MEDIUM_RISK_CONTRADICTED_PCT:
        return RiskLevel.MEDIUM, f"{share:.0f}% of claims are contradicted by the sources."
    if contradicted:
        return RiskLevel.LOW, f"Only minor contradictions ({share:.0f}% of claims)."
    return RiskLevel.LOW, "No contradictions found."


def compute_audit_stats(sentences: Sequence[AuditSentence]) -> AuditStats:
    return _DEFAULT_SCORER.stats(sentences)
