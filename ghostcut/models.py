"""
Data model shared by every stage of a GHOSTCUT audit
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .utils import MAX_MODEL_CONFIDENCE


class ClaimStatus(str, Enum):
    """Final classification of an audited claim"""
    SUPPORTED = 'supported'
    CONTRADICTED = 'contradicted'
    UNVERIFIABLE = 'unverifiable'
    SOURCE_CONFLICT = 'source_conflict'


class VerifierVerdict(str, Enum):
    """Verdict reported by a single verification signal"""
    SUPPORTED = 'supported'
    CONTRADICTED = 'contradicted'
    UNVERIFIABLE = 'unverifiable'
    NOT_APPLICABLE = 'not_applicable'


class VerifierKind(str, Enum):
    RETRIEVAL = 'retrieval'
    NLI = 'nli'
    LLM_JUDGE = 'llm_judge'
    RULE_BASED = 'rule_based'


class Severity(str, Enum):
    CRITICAL = 'critical'
    MODERATE = 'moderate'
    MINOR = 'minor'


class RiskLevel(str, Enum):
    LOW = 'LOW'
    MEDIUM = 'MEDIUM'
    HIGH = 'HIGH'


class NodeStatus(str, Enum):
    """Status of a node in the claim dependency graph"""
    SUPPORTED = 'supported'
    CONTRADICTED = 'contradicted'
    UNVERIFIABLE = 'unverifiable'
    SOURCE_CONFLICT = 'source_conflict'
    CASCADE = 'cascade'

    @classmethod
    def from_claim_status(cls, status: ClaimStatus) -> 'NodeStatus':
        return cls(ClaimStatus(status).value)


# ── Source side ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TextChunk:
    """
    A contiguous, token-bounded slice of a source document

    Attributes:
        id: Stable identifier, "{document_id}-c{chunk_index}"
        text: Chunk text
        document_id: Owning document
        document_name: File name of the owning document
        chunk_index: Zero-based position within the document
        token_estimate: Approximate token count (characters / 4)
    """
    id: str
    text: str
    document_id: str
    document_name: str
    chunk_index: int
    token_estimate: int


@dataclass
class SearchResult:
    """A chunk returned by the vector index with its cosine similarity"""
    chunk: TextChunk
    score: float


@dataclass
class SourceParagraph:
    id: str
    text: str
    linked_sentence_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'text': self.text,
            'linked_sentence_ids': list(self.linked_sentence_ids)
        }


@dataclass
class SourceDocument:
    """An ingested document as an ordered sequence of paragraphs (its chunks)"""
    id: str
    name: str
    type: str
    paragraphs: List[SourceParagraph] = field(default_factory=list)

    @property
    def referenced_paragraphs(self) -> int:
        """Number of paragraphs cited by at least one claim"""
        return sum(1 for p in self.paragraphs if p.linked_sentence_ids)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'paragraphs': [p.to_dict() for p in self.paragraphs]
        }


# ── Claim side ───────────────────────────────────────────────────────────────

@dataclass
class ConfidenceRange:
    """
    Confidence expressed as a [low, high] range

    Automated verifiers never report certainty: both bounds stay within
    [0, 0.98]. A (0, 0) range marks a claim the model could not assess.
    """
    low: float
    high: float
    explanation: Optional[str] = None

    def __post_init__(self):
        if not 0.0 <= self.low <= self.high <= MAX_MODEL_CONFIDENCE:
            raise ValueError(
                f"Confidence must satisfy 0 <= low <= high <= {MAX_MODEL_CONFIDENCE}, "
                f"got [{self.low}, {self.high}]"
            )

    @classmethod
    def unavailable(cls, explanation: str) -> 'ConfidenceRange':
        return cls(0.0, 0.0, explanation)

    @property
    def is_unavailable(self) -> bool:
        return self.low == 0.0 and self.high == 0.0

    @property
    def midpoint(self) -> float:
        return (self.low + self.high) / 2

    def to_dict(self) -> Dict:
        return {'low': self.low, 'high': self.high, 'explanation': self.explanation}


@dataclass
class RetrievedEvidence:
    chunk_id: str
    document_name: str
    chunk_text: str
    similarity_score: float
    chunk_index: int

    @classmethod
    def from_search_result(cls, result: SearchResult) -> 'RetrievedEvidence':
        return cls(
            chunk_id=result.chunk.id,
            document_name=result.chunk.document_name,
            chunk_text=result.chunk.text,
            similarity_score=result.score,
            chunk_index=result.chunk.chunk_index
        )

    def to_dict(self) -> Dict:
        return {
            'chunk_id': self.chunk_id,
            'document_name': self.document_name,
            'chunk_text': self.chunk_text,
            'similarity_score': float(self.similarity_score),
            'chunk_index': self.chunk_index
        }


@dataclass
class SeverityInfo:
    level: Severity
    reasoning: str

    def to_dict(self) -> Dict:
        return {'level': Severity(self.level).value, 'reasoning': self.reasoning}


@dataclass
class CorrectionCitation:
    document_name: str
    paragraph_id: str
    excerpt: str


@dataclass
class CorrectionSegment:
    """A piece of corrected text; segments with a citation are source-backed"""
    text: str
    citation: Optional[CorrectionCitation] = None

    def to_dict(self) -> Dict:
        out = {'text': self.text}
        if self.citation is not None:
            out['citation'] = {
                'document_name': self.citation.document_name,
                'paragraph_id': self.citation.paragraph_id,
                'excerpt': self.citation.excerpt
            }
        return out


@dataclass
class LockedCorrection:
    """
    Source-locked rewrite of a contradicted claim

    Every citation excerpt is a verbatim slice of an ingested chunk.
    """
    segments: List[CorrectionSegment]
    source_locked_note: str
    removed_content: Optional[str] = None

    @property
    def text(self) -> str:
        """The corrected claim as plain text"""
        return ''.join(s.text for s in self.segments)

    @property
    def citations(self) -> List[CorrectionCitation]:
        return [s.citation for s in self.segments if s.citation is not None]

    def to_dict(self) -> Dict:
        return {
            'segments': [s.to_dict() for s in self.segments],
            'source_locked_note': self.source_locked_note,
            'removed_content': self.removed_content
        }


@dataclass
class ConflictEvidence:
    paragraph_id: str
    document_name: str
    excerpt: str


@dataclass
class SourceConflictInfo:
    """Two source documents disagree; the audited text is not at fault"""
    explanation: str
    evidence_a: ConflictEvidence
    evidence_b: ConflictEvidence

    def to_dict(self) -> Dict:
        return {
            'explanation': self.explanation,
            'evidence_a': vars(self.evidence_a).copy(),
            'evidence_b': vars(self.evidence_b).copy()
        }


@dataclass
class VerifierResult:
    """Verdict of one verification signal"""
    verifier: VerifierKind
    verdict: VerifierVerdict
    confidence: ConfidenceRange
    reasoning: str
    model_name: str

    @property
    def applicable(self) -> bool:
        return self.verdict != VerifierVerdict.NOT_APPLICABLE

    def to_dict(self) -> Dict:
        return {
            'verifier': VerifierKind(self.verifier).value,
            'verdict': VerifierVerdict(self.verdict).value,
            'confidence': self.confidence.to_dict(),
            'reasoning': self.reasoning,
            'model_name': self.model_name
        }


@dataclass
class MultiModelVerification:
    """
    All signal verdicts for a claim

    consensus is True iff every applicable verdict agrees. Disagreement is
    surfaced for human review, never settled by majority vote.
    """
    results: List[VerifierResult]
    consensus: bool
    final_verdict: ClaimStatus
    disagreement_note: Optional[str] = None

    @property
    def needs_review(self) -> bool:
        return not self.consensus

    def to_dict(self) -> Dict:
        return {
            'results': [r.to_dict() for r in self.results],
            'consensus': self.consensus,
            'final_verdict': ClaimStatus(self.final_verdict).value,
            'disagreement_note': self.disagreement_note
        }


@dataclass
class AuditSentence:
    """
    One decomposed claim of the audited text and its verification outcome

    Attributes:
        id: Claim identifier ("s1", "s2", ...)
        text: Claim text
        status: Final classification
        confidence: Confidence range for the status
        reasoning: Human-readable justification
        evidence_ids: Chunk ids cited as evidence
        retrieved_evidence: Chunks retrieved above the silence threshold
        verification: Per-signal verdicts and consensus
        severity: Only for contradicted claims
        correction: Only for contradicted claims with a clean numeric fix
        source_conflict: Only for source_conflict claims
    """
    id: str
    text: str
    status: ClaimStatus
    confidence: ConfidenceRange
    reasoning: str
    evidence_ids: List[str]
    retrieved_evidence: List[RetrievedEvidence]
    verification: MultiModelVerification
    severity: Optional[SeverityInfo] = None
    correction: Optional[LockedCorrection] = None
    source_conflict: Optional[SourceConflictInfo] = None

    def __post_init__(self):
        """Validate status-dependent fields"""
        self.status = ClaimStatus(self.status)
        contradicted = self.status == ClaimStatus.CONTRADICTED
        if contradicted and self.severity is None:
            raise ValueError(f"Contradicted claim {self.id} requires severity")
        if not contradicted and (self.severity is not None or self.correction is not None):
            raise ValueError(f"Severity and correction are only allowed on contradicted claims ({self.id})")
        if self.source_conflict is not None and self.status != ClaimStatus.SOURCE_CONFLICT:
            raise ValueError(f"Source-conflict details require status source_conflict ({self.id})")

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            'id': self.id,
            'text': self.text,
            'status': self.status.value,
            'confidence': self.confidence.to_dict(),
            'reasoning': self.reasoning,
            'evidence_ids': list(self.evidence_ids),
            'retrieved_evidence': [e.to_dict() for e in self.retrieved_evidence],
            'verification': self.verification.to_dict(),
            'severity': self.severity.to_dict() if self.severity else None,
            'correction': self.correction.to_dict() if self.correction else None,
            'source_conflict': self.source_conflict.to_dict() if self.source_conflict else None
        }


# ── Scoring ──────────────────────────────────────────────────────────────────

@dataclass
class VerdictPercentages:
    supported: int = 0
    contradicted: int = 0
    unverifiable: int = 0
    source_conflict: int = 0

    @property
    def total(self) -> int:
        return self.supported + self.contradicted + self.unverifiable + self.source_conflict

    def to_dict(self) -> Dict:
        return {
            'supported': self.supported,
            'contradicted': self.contradicted,
            'unverifiable': self.unverifiable,
            'source_conflict': self.source_conflict
        }


@dataclass
class AuditStats:
    """Aggregate verdict distribution, trust score and risk tier"""
    total: int
    supported: int
    contradicted: int
    unverifiable: int
    source_conflict: int
    percentages: VerdictPercentages
    trust_score: int
    risk_level: RiskLevel
    risk_reason: str
    insufficient_data: bool = False

    def to_dict(self) -> Dict:
        return {
            'total': self.total,
            'supported': self.supported,
            'contradicted': self.contradicted,
            'unverifiable': self.unverifiable,
            'source_conflict': self.source_conflict,
            'percentages': self.percentages.to_dict(),
            'trust_score': self.trust_score,
            'risk_level': RiskLevel(self.risk_level).value,
            'risk_reason': self.risk_reason,
            'insufficient_data': self.insufficient_data
        }


# ── Dependency graph ─────────────────────────────────────────────────────────

@dataclass
class ClaimNode:
    id: str
    label: str
    text: str
    original_status: ClaimStatus
    effective_status: NodeStatus
    confidence: ConfidenceRange
    depends_on: List[str] = field(default_factory=list)
    cascade_source: Optional[str] = None
    is_root_cause: bool = False
    depth: int = 0
    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'label': self.label,
            'text': self.text,
            'original_status': ClaimStatus(self.original_status).value,
            'effective_status': NodeStatus(self.effective_status).value,
            'confidence': self.confidence.to_dict(),
            'depends_on': list(self.depends_on),
            'cascade_source': self.cascade_source,
            'is_root_cause': self.is_root_cause,
            'depth': self.depth,
            'x': self.x,
            'y': self.y
        }


@dataclass
class ClaimEdge:
    """Dependency edge from an upstream claim (source) to its dependent (target)"""
    source: str
    target: str
    is_cascade: bool = False

    def to_dict(self) -> Dict:
        return {'source': self.source, 'target': self.target, 'is_cascade': self.is_cascade}


@dataclass
class ClaimGraph:
    nodes: List[ClaimNode]
    edges: List[ClaimEdge]
    cycles: List[List[str]] = field(default_factory=list)

    @property
    def has_cycle(self) -> bool:
        return bool(self.cycles)

    def node(self, node_id: str) -> Optional[ClaimNode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def edge(self, source: str, target: str) -> Optional[ClaimEdge]:
        for e in self.edges:
            if e.source == source and e.target == target:
                return e
        return None

    @property
    def root_causes(self) -> List[str]:
        """Contradicted nodes that propagated a cascade to at least one dependent"""
        return [n.id for n in self.nodes if n.is_root_cause]

    def to_dict(self) -> Dict:
        return {
            'nodes': [n.to_dict() for n in self.nodes],
            'edges': [e.to_dict() for e in self.edges],
            'cycles': [list(c) for c in self.cycles],
            'root_causes': self.root_causes
        }


# ── Audit result ─────────────────────────────────────────────────────────────

@dataclass
class AuditResult:
    """
    Result of a forensic audit

    Attributes:
        sentences: Verified claims, in text order
        documents: Source documents with claim back-references
        stats: Verdict distribution, trust score and risk tier
        graph: Claim dependency graph (edges only where dependencies were supplied)
        verification_scope: Verification only ever consults uploaded documents
        duration_ms: Wall-clock duration of the audit
    """
    sentences: List[AuditSentence]
    documents: List[SourceDocument]
    stats: AuditStats
    graph: Optional[ClaimGraph] = None
    verification_scope: str = 'uploaded_documents_only'
    duration_ms: int = 0

    @property
    def trust_score(self) -> int:
        return self.stats.trust_score

    @property
    def risk_level(self) -> RiskLevel:
        return self.stats.risk_level

    def sentence(self, sentence_id: str) -> Optional[AuditSentence]:
        for s in self.sentences:
            if s.id == sentence_id:
                return s
        return None

    def by_status(self, status: ClaimStatus) -> List[AuditSentence]:
        return [s for s in self.sentences if s.status == status]

    def review_queue(self) -> List[AuditSentence]:
        """Claims whose signals disagree and need a human decision"""
        return [s for s in self.sentences if s.verification.needs_review]

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            'trust_score': self.stats.trust_score,
            'stats': self.stats.to_dict(),
            'sentences': [s.to_dict() for s in self.sentences],
            'documents': [d.to_dict() for d in self.documents],
            'graph': self.graph.to_dict() if self.graph else None,
            'verification_scope': self.verification_scope,
            'duration_ms': self.duration_ms
        }

    def __str__(self) -> str:
        """Human-readable string representation"""
        stats = self.stats
        pct = stats.percentages
        lines = [
            f"Trust Score: {stats.trust_score}" + (" (insufficient data)" if stats.insufficient_data else ""),
            f"Risk: {RiskLevel(stats.risk_level).value} - {stats.risk_reason}",
            f"Claims: {stats.total}",
            "\nVerdict Distribution:",
            f"  supported:       {stats.supported:3d} ({pct.supported}%)",
            f"  contradicted:    {stats.contradicted:3d} ({pct.contradicted}%)",
            f"  unverifiable:    {stats.unverifiable:3d} ({pct.unverifiable}%)",
            f"  source_conflict: {stats.source_conflict:3d} ({pct.source_conflict}%)",
        ]

        flagged = [s for s in self.sentences if s.status != ClaimStatus.SUPPORTED]
        if flagged:
            lines.append("\nFlagged Claims:")
            for s in flagged:
                label = s.status.value
                if s.severity is not None:
                    label += f"/{Severity(s.severity.level).value}"
                lines.append(f"  [{s.id}] {label}: {s.text}")

        return "\n".join(lines)


def status_counts(sentences: List[AuditSentence]) -> Tuple[int, int, int, int]:
    """Counts of (supported, contradicted, unverifiable, source_conflict)"""
    counts = {status: 0 for status in ClaimStatus}
    for s in sentences:
        counts[ClaimStatus(s.status)] += 1
    return (
        counts[ClaimStatus.SUPPORTED],
        counts[ClaimStatus.CONTRADICTED],
        counts[ClaimStatus.UNVERIFIABLE],
        counts[ClaimStatus.SOURCE_CONFLICT],
    )
