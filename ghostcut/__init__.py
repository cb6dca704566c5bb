"""
GHOSTCUT: Forensic verification of AI-generated text against source documents

Claims are retrieved against an in-memory TF-IDF index of the uploaded
documents, checked for numeric and source conflicts, fused with an external
semantic verdict and scored into a severity-weighted trust score.
"""

from .auditor import ForensicAuditor
from .chunker import chunk_text, estimate_tokens, split_into_sentences
from .config import AuditConfig
from .errors import (
    AuditPreconditionError,
    DocumentReadError,
    EmptyIndexError,
    GhostcutError,
    MalformedVerdictError,
    NoClaimsError,
    VerifierError,
    VerifierOutageError
)
from .graph import build_claim_graph, trace_root_cause
from .history import AuditComparison, AuditHistory, AuditSnapshot
from .index import VectorIndex
from .models import AuditResult, AuditSentence, ClaimGraph, ClaimStatus, RiskLevel, Severity
from .scoring import TrustScorer, compute_audit_stats, compute_percentages, compute_trust_score
from .signals import FunctionVerifier, PromptTemplates, SemanticVerdict, SemanticVerifier, parse_semantic_verdict
from .verifier import ClaimVerifier

__version__ = "0.1.0"
__all__ = [
    "ForensicAuditor",
    "ClaimVerifier",
    "VectorIndex",
    "SemanticVerifier",
    "SemanticVerdict",
    "FunctionVerifier",
    "parse_semantic_verdict",
    "PromptTemplates",
    "TrustScorer",
    "compute_trust_score",
    "compute_percentages",
    "compute_audit_stats",
    "build_claim_graph",
    "trace_root_cause",
    "chunk_text",
    "estimate_tokens",
    "split_into_sentences",
    "AuditConfig",
    "AuditHistory",
    "AuditSnapshot",
    "AuditComparison",
    "AuditResult",
    "AuditSentence",
    "ClaimGraph",
    "ClaimStatus",
    "RiskLevel",
    "Severity",
    "GhostcutError",
    "AuditPreconditionError",
    "EmptyIndexError",
    "NoClaimsError",
    "VerifierError",
    "MalformedVerdictError",
    "VerifierOutageError",
    "DocumentReadError"
]
