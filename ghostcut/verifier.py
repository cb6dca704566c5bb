"""
Per-claim verification: retrieval, numeric consistency, source conflicts and
fusion of all signal verdicts into a final claim status
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from .config import AuditConfig
from .errors import EmptyIndexError
from .index import VectorIndex
from .models import (
    AuditSentence,
    ClaimStatus,
    ConfidenceRange,
    ConflictEvidence,
    CorrectionCitation,
    CorrectionSegment,
    LockedCorrection,
    MultiModelVerification,
    RetrievedEvidence,
    SearchResult,
    Severity,
    SeverityInfo,
    SourceConflictInfo,
    VerifierKind,
    VerifierResult,
    VerifierVerdict,
)
from .numeric import (
    ExtractedNumber,
    NumericConflict,
    detect_severity,
    extract_numbers,
    find_numeric_conflict,
    keyword_overlap,
)
from .signals import NumericCheck, NumericSignal, RetrievalSignal, SemanticVerdict, silence_confidence
from .utils import clip_text

logger = logging.getLogger(__name__)

# Characters of source context kept on each side of a cited number
EXCERPT_CONTEXT_CHARS = 80

SEVERITY_REASONS = {
    Severity.CRITICAL: "High-risk domain (medical/financial/regulatory)",
    Severity.MODERATE: "Regulatory/legal context",
    Severity.MINOR: "General factual claim",
}

SILENCE_NOTE = (
    "Confidence reflects certainty that the uploaded sources do not address "
    "this claim, not that the claim is false."
)

SemanticOutcome = Union[SemanticVerdict, BaseException, None]


@dataclass
class Retrieval:
    """
    Evidence retrieved for one claim

    Attributes:
        claim: Claim text
        results: Top-k search results, best first
        top_score: Best similarity (0 when nothing was retrieved)
        evidence_ids: Chunk ids linked as evidence (score above the silence threshold)
        retrieved_evidence: Evidence handed to the semantic verifier
        source_conflict: Set when the two best chunks disagree numerically
    """
    claim: str
    results: List[SearchResult] = field(default_factory=list)
    top_score: float = 0.0
    evidence_ids: List[str] = field(default_factory=list)
    retrieved_evidence: List[RetrievedEvidence] = field(default_factory=list)
    source_conflict: Optional[SourceConflictInfo] = None

    @property
    def top(self) -> Optional[SearchResult]:
        return self.results[0] if self.results else None


def excerpt_around(text: str, start: int, end: int, context: int = EXCERPT_CONTEXT_CHARS) -> str:
    """Verbatim slice of text around [start, end), widened by context characters"""
    lo = max(0, start - context)
    hi = min(len(text), end + context)
    return text[lo:hi]


class ClaimVerifier:
    """
    Verifies claims against an indexed corpus

    retrieve() is local and fast; verify() fuses the retrieval signal, the
    rule-based numeric check and an optional semantic verdict obtained
    elsewhere (see BatchScheduler), so the semantic calls can be batched.
    """

    def __init__(self, index: VectorIndex, config: Optional[AuditConfig] = None):
        self.index = index
        self.config = config or AuditConfig()
        self.retrieval_signal = RetrievalSignal(
            self.config.unverifiable_threshold,
            self.config.supported_threshold
        )
        self.numeric_signal = NumericSignal(self.config.numeric_tolerance)

    def retrieve(self, claim: str) -> Retrieval:
        """
        Retrieve evidence for a claim and check the best sources for conflicts

        Raises:
            EmptyIndexError: the index holds no chunks
        """
        if self.index.size == 0:
            raise EmptyIndexError()

        cfg = self.config
        results = self.index.search(claim, cfg.top_k)
        relevant = [r for r in results if r.score > cfg.unverifiable_threshold]

        retrieval = Retrieval(
            claim=claim,
            results=results,
            top_score=results[0].score if results else 0.0,
            evidence_ids=[r.chunk.id for r in relevant[:cfg.max_evidence_ids]],
            retrieved_evidence=[RetrievedEvidence.from_search_result(r) for r in relevant[:cfg.top_k]],
        )
        retrieval.source_conflict = self._detect_source_conflict(results)
        return retrieval

    def _detect_source_conflict(self, results: Sequence[SearchResult]) -> Optional[SourceConflictInfo]:
        """Two strong matches from different documents whose numbers disagree"""
        if len(results) < 2:
            return None
        first, second = results[0], results[1]
        threshold = self.config.supported_threshold
        if first.score <= threshold or second.score <= threshold:
            return None
        if first.chunk.document_id == second.chunk.document_id:
            return None

        conflict = find_numeric_conflict(
            extract_numbers(first.chunk.text),
            extract_numbers(second.chunk.text),
            self.config.numeric_tolerance
        )
        if conflict is None:
            return None

        name_a, name_b = first.chunk.document_name, second.chunk.document_name
        logger.debug("verifier.source_conflict a=%s b=%s %s", name_a, name_b, conflict.detail)
        return SourceConflictInfo(
            explanation=(
                f'Sources "{name_a}" and "{name_b}" disagree: {conflict.detail}. '
                "This contradiction originates from the source documents, not the audited text. "
                "Human review is required to determine which source is authoritative."
            ),
            evidence_a=ConflictEvidence(
                paragraph_id=first.chunk.id,
                document_name=name_a,
                excerpt=excerpt_around(first.chunk.text, conflict.claimed.start, conflict.claimed.end)
            ),
            evidence_b=ConflictEvidence(
                paragraph_id=second.chunk.id,
                document_name=name_b,
                excerpt=excerpt_around(second.chunk.text, conflict.source.start, conflict.source.end)
            )
        )

    def verify(
        self,
        claim_id: str,
        claim: str,
        retrieval: Optional[Retrieval] = None,
        semantic: SemanticOutcome = None
    ) -> AuditSentence:
        """
        Classify one claim

        Args:
            claim_id: Claim identifier
            claim: Claim text
            retrieval: Result of retrieve(); computed when omitted
            semantic: SemanticVerdict, the exception raised by the semantic
                verifier, or None when no semantic verifier is used

        Returns:
            AuditSentence with status, confidence, reasoning and signal verdicts
        """
        if retrieval is None:
            retrieval = self.retrieve(claim)

        cfg = self.config
        top = retrieval.top
        top_score = retrieval.top_score

        retrieval_result = self.retrieval_signal.compute(claim, top_score=top_score)
        numeric = self.numeric_signal.compute(
            claim,
            source_text=top.chunk.text if top else "",
            enabled=top_score > cfg.unverifiable_threshold
        )

        failure = semantic if isinstance(semantic, BaseException) else None
        verdict = semantic if isinstance(semantic, SemanticVerdict) else None

        common = dict(
            id=claim_id,
            text=claim,
            evidence_ids=list(retrieval.evidence_ids),
            retrieved_evidence=list(retrieval.retrieved_evidence),
        )

        if retrieval.source_conflict is not None:
            sentence = self._source_conflict_sentence(retrieval, retrieval_result, numeric, verdict, common)
        elif failure is not None:
            sentence = self._failed_sentence(failure, retrieval_result, numeric, common)
        else:
            sentence = self._classified_sentence(claim, retrieval, retrieval_result, numeric, verdict, common)

        logger.debug(
            "verifier.claim id=%s status=%s top=%.3f consensus=%s",
            claim_id, sentence.status.value, top_score, sentence.verification.consensus
        )
        return sentence

    # ── Status branches ──────────────────────────────────────────────────────

    def _source_conflict_sentence(self, retrieval, retrieval_result, numeric, verdict, common) -> AuditSentence:
        info = retrieval.source_conflict
        detector = VerifierResult(
            verifier=VerifierKind.RULE_BASED,
            verdict=VerifierVerdict.UNVERIFIABLE,
            confidence=ConfidenceRange(
                0.40, 0.65,
                "Source documents contain conflicting information; entailment cannot resolve "
                "inter-document disagreement."
            ),
            reasoning="Source documents contain conflicting information; cannot determine entailment.",
            model_name="Source Conflict Detector"
        )
        results = self._signal_results(retrieval_result, numeric, verdict) + [detector]
        name_a = info.evidence_a.document_name
        name_b = info.evidence_b.document_name
        return AuditSentence(
            status=ClaimStatus.SOURCE_CONFLICT,
            confidence=ConfidenceRange(
                0.35, 0.65,
                "Sources disagree; confidence reflects inherent ambiguity between conflicting documents."
            ),
            reasoning=(
                f'Two source documents provide conflicting information: "{name_a}" and "{name_b}". '
                "Human review required."
            ),
            verification=MultiModelVerification(
                results=results,
                consensus=False,
                final_verdict=ClaimStatus.SOURCE_CONFLICT,
                disagreement_note=f'Sources "{name_a}" and "{name_b}" provide contradictory data. Human review required.'
            ),
            source_conflict=info,
            **common
        )

    def _failed_sentence(self, failure, retrieval_result, numeric, common) -> AuditSentence:
        error = str(failure) or failure.__class__.__name__
        logger.warning("verifier.semantic_failed id=%s error=%s", common['id'], clip_text(error))
        return AuditSentence(
            status=ClaimStatus.UNVERIFIABLE,
            confidence=ConfidenceRange.unavailable(
                "Verification model was unavailable; no confidence could be computed. "
                "This is not a judgment on the claim itself."
            ),
            reasoning=(
                f"Verification model unavailable: {error}. "
                "This claim has NOT been verified; no result was fabricated."
            ),
            verification=MultiModelVerification(
                results=[retrieval_result, numeric.result],
                consensus=False,
                final_verdict=ClaimStatus.UNVERIFIABLE,
                disagreement_note=f"Model error: {error}. No verdict was fabricated."
            ),
            **common
        )

    def _classified_sentence(self, claim, retrieval, retrieval_result, numeric, verdict, common) -> AuditSentence:
        cfg = self.config
        top_score = retrieval.top_score
        semantic_verdict = verdict.verdict if verdict else None
        relevant = top_score > cfg.unverifiable_threshold
        overlap = keyword_overlap(claim, retrieval.top.chunk.text) if retrieval.top is not None else 0.0
        lexical = overlap >= cfg.keyword_overlap_threshold

        if relevant and (numeric.conflict is not None or semantic_verdict == VerifierVerdict.CONTRADICTED):
            status = ClaimStatus.CONTRADICTED
        elif top_score >= cfg.supported_threshold:
            status = ClaimStatus.SUPPORTED
        elif relevant and (semantic_verdict == VerifierVerdict.SUPPORTED or numeric.consistent or lexical):
            status = ClaimStatus.SUPPORTED
        else:
            status = ClaimStatus.UNVERIFIABLE

        confidence, reasoning = self._explain(status, retrieval, retrieval_result, numeric, verdict, overlap)

        severity = None
        correction = None
        if status == ClaimStatus.CONTRADICTED:
            level = detect_severity(claim)
            severity = SeverityInfo(level=level, reasoning=f"{SEVERITY_REASONS[level]}. {reasoning}")
            if numeric.conflict is not None and retrieval.top is not None:
                correction = build_correction(claim, numeric.conflict, retrieval.top)

        return AuditSentence(
            status=status,
            confidence=confidence,
            reasoning=reasoning,
            verification=build_verification(self._signal_results(retrieval_result, numeric, verdict), status),
            severity=severity,
            correction=correction,
            **common
        )

    def _explain(self, status, retrieval, retrieval_result, numeric, verdict, overlap=0.0):
        """Confidence range and reasoning for a classified claim"""
        agrees = verdict is not None and verdict.verdict.value == status.value

        if status == ClaimStatus.CONTRADICTED:
            if numeric.conflict is not None:
                reasoning = f"Numeric mismatch: {numeric.conflict.detail}."
                if agrees:
                    reasoning += f" {verdict.reasoning}"
                return numeric.result.confidence, reasoning
            return verdict.confidence, verdict.reasoning

        if status == ClaimStatus.SUPPORTED:
            if agrees:
                return verdict.confidence, verdict.reasoning
            if retrieval_result.verdict == VerifierVerdict.SUPPORTED:
                return retrieval_result.confidence, (
                    f"{retrieval_result.reasoning} No signal contradicts the claim."
                )
            if numeric.consistent:
                return numeric.result.confidence, (
                    f"Partial match (similarity {retrieval.top_score:.2f}) corroborated by numeric check: "
                    f"{numeric.result.reasoning}"
                )
            return ConfidenceRange(
                0.55, 0.75,
                "Lexical corroboration only; no model or numeric check confirmed the claim."
            ), (
                f"Partial match (similarity {retrieval.top_score:.2f}) corroborated by keyword overlap: "
                f"{overlap:.0%} of the claim's content words appear in the best source chunk."
            )

        if retrieval.top_score < self.config.unverifiable_threshold:
            confidence = silence_confidence(retrieval.top_score, self.config.unverifiable_threshold)
            lead = "The uploaded documents do not address this claim."
        elif agrees:
            confidence = ConfidenceRange(verdict.confidence.low, verdict.confidence.high, SILENCE_NOTE)
            lead = verdict.reasoning
        else:
            confidence = ConfidenceRange(
                0.40, 0.60,
                "Sources only partially match the claim; they neither confirm nor contradict it."
            )
            lead = (
                f"Sources only partially match this claim (similarity {retrieval.top_score:.2f}, "
                f"keyword overlap {overlap:.0%}) "
                "and no signal corroborates it."
            )
        return confidence, f"{lead} {SILENCE_NOTE}"

    @staticmethod
    def _signal_results(
        retrieval_result: VerifierResult,
        numeric: NumericCheck,
        verdict: Optional[SemanticVerdict]
    ) -> List[VerifierResult]:
        results = [retrieval_result]
        if verdict is not None:
            results.extend([verdict.nli, verdict.judge])
        results.append(numeric.result)
        return results


def build_verification(results: List[VerifierResult], final: ClaimStatus) -> MultiModelVerification:
    """
    Consensus over all applicable signal verdicts

    Disagreement is reported with every verdict listed; it is never settled
    by majority vote.
    """
    applicable = [r for r in results if r.applicable]
    consensus = len({VerifierVerdict(r.verdict) for r in applicable}) <= 1
    note = None
    if not consensus:
        verdicts = ", ".join(f"{r.model_name} -> {VerifierVerdict(r.verdict).value}" for r in applicable)
        note = f"Models disagree. Verdicts: {verdicts}. Human review recommended."
    return MultiModelVerification(
        results=results,
        consensus=consensus,
        final_verdict=final,
        disagreement_note=note
    )


def build_correction(claim: str, conflict: NumericConflict, top: SearchResult) -> Optional[LockedCorrection]:
    """
    Source-locked correction replacing the conflicting number

    The claimed literal must occur exactly once in the claim; otherwise the
    substitution is ambiguous and no correction is offered.

    Returns:
        LockedCorrection whose cited segment quotes the top chunk verbatim
    """
    claimed: ExtractedNumber = conflict.claimed
    source: ExtractedNumber = conflict.source
    if claim.count(claimed.raw) != 1:
        logger.debug("verifier.correction.ambiguous literal=%r", claimed.raw)
        return None

    chunk = top.chunk
    position = claim.index(claimed.raw)
    prefix = claim[:position]
    suffix = claim[position + len(claimed.raw):]

    citation = CorrectionCitation(
        document_name=chunk.document_name,
        paragraph_id=chunk.id,
        excerpt=excerpt_around(chunk.text, source.start, source.end)
    )
    segments = [
        CorrectionSegment(text=prefix),
        CorrectionSegment(text=source.raw, citation=citation),
        CorrectionSegment(text=suffix),
    ]
    return LockedCorrection(
        segments=[s for s in segments if s.text],
        source_locked_note=(
            f'Correction uses only data from "{chunk.document_name}". The claimed value '
            f'"{claimed.raw}" was replaced with the verified value "{source.raw}" found in the source.'
        ),
        removed_content=f'Original value "{claimed.raw}" removed; not supported by source documents.'
    )
