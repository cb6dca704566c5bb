"""
Verification signals for claim auditing
Each signal provides a different perspective on whether a claim is backed by the sources
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .config import NUMERIC_TOLERANCE, SUPPORTED_THRESHOLD, UNVERIFIABLE_THRESHOLD
from .errors import MalformedVerdictError, VerifierError
from .models import (
    ConfidenceRange,
    RetrievedEvidence,
    VerifierKind,
    VerifierResult,
    VerifierVerdict,
)
from .numeric import ExtractedNumber, NumericConflict, extract_numbers, find_numeric_conflict
from .utils import clamp_confidence

logger = logging.getLogger(__name__)

SEMANTIC_VERDICTS = {
    VerifierVerdict.SUPPORTED.value,
    VerifierVerdict.CONTRADICTED.value,
    VerifierVerdict.UNVERIFIABLE.value,
}


class BaseSignal(ABC):
    """Base class for rule-based verification signals"""

    def __init__(self, name: str, kind: VerifierKind):
        self.name = name
        self.kind = kind

    @abstractmethod
    def compute(self, claim: str, **kwargs) -> VerifierResult:
        """
        Compute the signal verdict for a claim

        Args:
            claim: Claim text
            **kwargs: Signal-specific inputs

        Returns:
            VerifierResult for this signal
        """
        pass


class RetrievalSignal(BaseSignal):
    """
    Retrieval-similarity verdict

    Retrieval measures topical coverage only: a strong match says the sources
    address the claim, a weak one says they are silent. In between it is
    inconclusive and reported as not applicable.
    """

    def __init__(
        self,
        unverifiable_threshold: float = UNVERIFIABLE_THRESHOLD,
        supported_threshold: float = SUPPORTED_THRESHOLD
    ):
        super().__init__("TF-IDF Retrieval", VerifierKind.RETRIEVAL)
        self.unverifiable_threshold = unverifiable_threshold
        self.supported_threshold = supported_threshold

    def compute(self, claim: str, top_score: float = 0.0, **kwargs) -> VerifierResult:
        if top_score >= self.supported_threshold:
            return VerifierResult(
                verifier=self.kind,
                verdict=VerifierVerdict.SUPPORTED,
                confidence=retrieval_confidence(top_score, self.supported_threshold),
                reasoning=f"Best source chunk matches the claim with similarity {top_score:.2f}.",
                model_name=self.name
            )
        if top_score < self.unverifiable_threshold:
            return VerifierResult(
                verifier=self.kind,
                verdict=VerifierVerdict.UNVERIFIABLE,
                confidence=silence_confidence(top_score, self.unverifiable_threshold),
                reasoning=(
                    f"No source chunk reaches similarity {self.unverifiable_threshold:.2f} "
                    f"(best {top_score:.2f}); the uploaded documents do not address this claim."
                ),
                model_name=self.name
            )
        return VerifierResult(
            verifier=self.kind,
            verdict=VerifierVerdict.NOT_APPLICABLE,
            confidence=ConfidenceRange.unavailable("Retrieval similarity is inconclusive."),
            reasoning=f"Partial lexical match (similarity {top_score:.2f}); retrieval alone is inconclusive.",
            model_name=self.name
        )


@dataclass
class NumericCheck:
    """Outcome of comparing the numbers of a claim with those of a source chunk"""
    result: VerifierResult
    claim_numbers: List[ExtractedNumber] = field(default_factory=list)
    source_numbers: List[ExtractedNumber] = field(default_factory=list)
    conflict: Optional[NumericConflict] = None

    @property
    def consistent(self) -> bool:
        return bool(self.claim_numbers and self.source_numbers) and self.conflict is None


class NumericSignal(BaseSignal):
    """
    Rule-based numeric consistency between a claim and its best source chunk

    Not applicable when the claim carries no numbers.
    """

    def __init__(self, tolerance: float = NUMERIC_TOLERANCE):
        super().__init__("NumericChecker v2", VerifierKind.RULE_BASED)
        self.tolerance = tolerance

    def compute(
        self,
        claim: str,
        source_text: str = "",
        enabled: bool = True,
        **kwargs
    ) -> NumericCheck:
        """
        Compare claim numbers with source numbers

        Args:
            claim: Claim text
            source_text: Text of the best retrieved chunk
            enabled: False when retrieval is too weak to compare anything

        Returns:
            NumericCheck holding the verdict and the first conflict, if any
        """
        claim_numbers = extract_numbers(claim)
        source_numbers = extract_numbers(source_text) if source_text and enabled else []
        conflict = find_numeric_conflict(claim_numbers, source_numbers, self.tolerance)

        if not claim_numbers:
            verdict = VerifierVerdict.NOT_APPLICABLE
            confidence = ConfidenceRange.unavailable("No numeric claims to verify.")
            reasoning = "No numeric claims to verify."
        elif conflict is not None:
            verdict = VerifierVerdict.CONTRADICTED
            confidence = ConfidenceRange(0.90, 0.98, f"Numeric mismatch detected: {conflict.detail}")
            reasoning = f"Numeric mismatch: {conflict.detail}"
        elif source_numbers:
            verdict = VerifierVerdict.SUPPORTED
            confidence = ConfidenceRange(0.85, 0.95, "Numeric values are consistent between claim and source.")
            reasoning = "Numeric values are consistent between claim and source."
        else:
            verdict = VerifierVerdict.UNVERIFIABLE
            confidence = ConfidenceRange.unavailable("No numeric data found in source documents to compare against.")
            reasoning = (
                "Claim contains numbers but the uploaded source documents do not contain any "
                "matching numeric context. No evidence was fabricated."
            )

        result = VerifierResult(
            verifier=self.kind,
            verdict=verdict,
            confidence=confidence,
            reasoning=reasoning,
            model_name=self.name
        )
        return NumericCheck(
            result=result,
            claim_numbers=claim_numbers,
            source_numbers=source_numbers,
            conflict=conflict
        )


def retrieval_confidence(top_score: float, supported_threshold: float) -> ConfidenceRange:
    """Confidence that the sources cover a claim, growing with similarity"""
    span = max(1e-9, 1.0 - supported_threshold)
    strength = min(1.0, max(0.0, (top_score - supported_threshold) / span))
    low = clamp_confidence(0.55 + 0.35 * strength)
    high = clamp_confidence(low + 0.08)
    return ConfidenceRange(low, high, f"Best retrieval similarity {top_score:.2f}.")


def silence_confidence(top_score: float, unverifiable_threshold: float) -> ConfidenceRange:
    """
    Confidence that the sources are silent on a claim

    This is certainty about the sources, not a judgment that the claim is false.
    """
    gap = 1.0 - min(1.0, max(0.0, top_score / max(1e-9, unverifiable_threshold)))
    low = clamp_confidence(0.60 + 0.30 * gap)
    high = clamp_confidence(low + 0.08)
    return ConfidenceRange(
        low, high,
        "Confidence that the source documents do not address this claim, "
        "not that the claim is false."
    )


# ── Semantic verifier (external collaborator) ────────────────────────────────

@dataclass
class SemanticVerdict:
    """
    Structured answer of the external semantic verifier

    Attributes:
        verdict: Synthesized verdict (supported, contradicted or unverifiable)
        confidence: Synthesized confidence range
        reasoning: Synthesized reasoning
        nli: Verdict under the NLI framing
        judge: Verdict under the judge framing
    """
    verdict: VerifierVerdict
    confidence: ConfidenceRange
    reasoning: str
    nli: VerifierResult
    judge: VerifierResult


class SemanticVerifier(ABC):
    """
    Pluggable semantic verifier

    Implementations wrap an NLI model or an LLM judge. verify() either
    returns a SemanticVerdict or raises VerifierError; it never guesses.
    """

    name = "semantic"

    @abstractmethod
    def verify(self, claim: str, evidence: Sequence[RetrievedEvidence]) -> SemanticVerdict:
        """
        Judge a claim against its retrieved evidence

        Args:
            claim: Claim text
            evidence: Retrieved chunks, best first (may be empty)

        Returns:
            SemanticVerdict

        Raises:
            VerifierError: the verdict is unavailable or malformed
        """
        pass


class FunctionVerifier(SemanticVerifier):
    """
    Semantic verifier backed by a plain callable

    The callable receives (claim, evidence) and returns the verifier payload,
    either as a JSON string or a dict (see parse_semantic_verdict).
    """

    def __init__(
        self,
        fn: Callable[[str, Sequence[RetrievedEvidence]], Union[str, Mapping[str, Any]]],
        nli_name: str = "NLI Classifier",
        judge_name: str = "LLM Judge"
    ):
        self.fn = fn
        self.nli_name = nli_name
        self.judge_name = judge_name

    def verify(self, claim: str, evidence: Sequence[RetrievedEvidence]) -> SemanticVerdict:
        try:
            payload = self.fn(claim, evidence)
        except VerifierError:
            raise
        except Exception as e:
            raise VerifierError(f"{e.__class__.__name__}: {e}") from e
        return parse_semantic_verdict(payload, nli_name=self.nli_name, judge_name=self.judge_name)


def _require(data: Mapping[str, Any], key: str) -> Any:
    if key not in data or data[key] is None:
        raise MalformedVerdictError(f"Verification model returned invalid response: missing '{key}'")
    return data[key]


def _parse_verdict(value: Any, key: str) -> VerifierVerdict:
    if not isinstance(value, str) or value.strip().lower() not in SEMANTIC_VERDICTS:
        raise MalformedVerdictError(
            f"Verification model returned invalid response: '{key}' must be one of "
            f"{sorted(SEMANTIC_VERDICTS)}, got {value!r}"
        )
    return VerifierVerdict(value.strip().lower())


def _parse_number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedVerdictError(
            f"Verification model returned invalid response: '{key}' must be a number, got {value!r}"
        )
    return float(value)


def build_confidence(low: float, high: float, explanation: Optional[str] = None) -> ConfidenceRange:
    """Clamp model bounds into [0.05, 0.98] and swap them if inverted"""
    lo = clamp_confidence(low)
    hi = clamp_confidence(high)
    return ConfidenceRange(min(lo, hi), max(lo, hi), explanation or None)


def _flat_part(data: Mapping[str, Any], prefix: str) -> Dict[str, Any]:
    """Read one framing from the flat tool-call form ("nli_verdict", ...)"""
    return {
        'verdict': _require(data, f'{prefix}_verdict'),
        'confidence': {
            'low': _require(data, f'{prefix}_confidence_low'),
            'high': _require(data, f'{prefix}_confidence_high'),
            'explanation': data.get(f'{prefix}_confidence_explanation'),
        },
        'reasoning': _require(data, f'{prefix}_reasoning'),
    }


def _part_confidence(part: Mapping[str, Any], where: str) -> ConfidenceRange:
    conf = _require(part, 'confidence')
    if not isinstance(conf, Mapping):
        raise MalformedVerdictError(f"Verification model returned invalid response: '{where}.confidence' must be an object")
    explanation = conf.get('explanation')
    return build_confidence(
        _parse_number(_require(conf, 'low'), f'{where}.confidence.low'),
        _parse_number(_require(conf, 'high'), f'{where}.confidence.high'),
        explanation if isinstance(explanation, str) else None
    )


def _part_reasoning(part: Mapping[str, Any], where: str) -> str:
    reasoning = _require(part, 'reasoning')
    if not isinstance(reasoning, str):
        raise MalformedVerdictError(f"Verification model returned invalid response: '{where}.reasoning' must be text")
    return reasoning


def parse_semantic_verdict(
    payload: Union[str, bytes, Mapping[str, Any]],
    nli_name: str = "NLI Classifier",
    judge_name: str = "LLM Judge"
) -> SemanticVerdict:
    """
    Validate a raw semantic-verifier payload

    Accepts either the flat tool-call form (nli_verdict, nli_confidence_low,
    ..., final_reasoning) or the nested form ({"verdict", "confidence": {"low",
    "high"}, "reasoning", "nli": {...}, "judge": {...}}). Confidences are
    clamped into [0.05, 0.98] and swapped when inverted.

    Raises:
        MalformedVerdictError: invalid JSON, missing fields or unknown verdicts
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise MalformedVerdictError(f"Verification model returned invalid JSON: {e}") from e
    if not isinstance(payload, Mapping):
        raise MalformedVerdictError("Verification model returned invalid response format.")
    if payload.get('error'):
        raise VerifierError(str(payload['error']))

    if 'final_verdict' in payload:
        parts = {
            'final': _flat_part(payload, 'final'),
            'nli': _flat_part(payload, 'nli'),
            'judge': _flat_part(payload, 'judge'),
        }
    else:
        parts = {
            'final': payload,
            'nli': _require(payload, 'nli'),
            'judge': _require(payload, 'judge'),
        }

    parsed = {}
    for where, part in parts.items():
        if not isinstance(part, Mapping):
            raise MalformedVerdictError(f"Verification model returned invalid response: '{where}' must be an object")
        parsed[where] = (
            _parse_verdict(_require(part, 'verdict'), f'{where}.verdict'),
            _part_confidence(part, where),
            _part_reasoning(part, where),
        )

    def _result(kind: VerifierKind, where: str, model_name: str) -> VerifierResult:
        verdict, confidence, reasoning = parsed[where]
        return VerifierResult(
            verifier=kind,
            verdict=verdict,
            confidence=confidence,
            reasoning=reasoning,
            model_name=model_name
        )

    verdict, confidence, reasoning = parsed['final']
    return SemanticVerdict(
        verdict=verdict,
        confidence=confidence,
        reasoning=reasoning,
        nli=_result(VerifierKind.NLI, 'nli', nli_name),
        judge=_result(VerifierKind.LLM_JUDGE, 'judge', judge_name)
    )


class PromptTemplates:
    """Templates for semantic verifier implementations that call an LLM"""

    SYSTEM_PROMPT = """You are a forensic fact-checking system performing Natural Language Inference (NLI) and judicial analysis.

You will receive a CLAIM and EVIDENCE from uploaded documents. Decide whether the evidence SUPPORTS, CONTRADICTS, or is insufficient to verify (UNVERIFIABLE) the claim.

Rules:
- Use ONLY the provided evidence. Do not use external knowledge.
- If no evidence is provided or it is irrelevant, the verdict MUST be "unverifiable".
- If the evidence matches but key facts (numbers, dates, names) differ, the verdict MUST be "contradicted".
- For UNVERIFIABLE claims, confidence is certainty that the source is silent, not that the claim is false.
- Return confidence as a range: 0.05 <= low < high <= 0.98. Never return 1.0.
- Explain what drives each confidence level."""

    USER_TEMPLATE = """CLAIM: "{claim}"

EVIDENCE:
{evidence}

Analyze this claim against the evidence using both NLI classification and judicial reasoning. Provide confidence as ranges with explanations."""

    NO_EVIDENCE = "NO EVIDENCE AVAILABLE - no document chunk matched this claim above the similarity threshold."

    @classmethod
    def render_evidence(cls, evidence: Sequence[RetrievedEvidence]) -> str:
        if not evidence:
            return cls.NO_EVIDENCE
        return "\n\n".join(
            f'[Evidence {i} from "{e.document_name}"]\n{e.chunk_text}'
            for i, e in enumerate(evidence, 1)
        )

    @classmethod
    def user_prompt(cls, claim: str, evidence: Sequence[RetrievedEvidence]) -> str:
        return cls.USER_TEMPLATE.format(claim=claim, evidence=cls.render_evidence(evidence))
