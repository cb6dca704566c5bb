"""
Audit configuration
"""

from dataclasses import dataclass, asdict
from typing import Dict


# Retrieval similarity below which the sources are considered silent
UNVERIFIABLE_THRESHOLD = 0.12
# Retrieval similarity from which a claim counts as covered by the sources
SUPPORTED_THRESHOLD = 0.35
# Relative deviation separating consistent from conflicting numbers
NUMERIC_TOLERANCE = 0.05
# Share of claim content words found in the best chunk that corroborates a partial match
KEYWORD_OVERLAP_THRESHOLD = 0.75


@dataclass
class AuditConfig:
    """
    Tunable knobs for one audit run

    Attributes:
        target_tokens: Chunk size the chunker aims for
        max_tokens: Hard ceiling for a chunk (estimated tokens)
        min_tokens: Floor a chunk must reach before it may be flushed
        overlap_sentences: Sentences carried over between consecutive chunks
        top_k: Number of chunks retrieved per claim
        max_evidence_ids: Evidence links kept per claim
        unverifiable_threshold: Similarity below which sources are silent
        supported_threshold: Similarity from which retrieval is adequate
        numeric_tolerance: Relative deviation tolerated between numbers
        keyword_overlap_threshold: Keyword overlap that corroborates a partial match
        batch_size: Semantic verifier calls issued per batch
        batch_delay: Pause in seconds between verifier batches
        history_size: Audit snapshots kept for comparison
    """
    target_tokens: int = 400
    max_tokens: int = 500
    min_tokens: int = 200
    overlap_sentences: int = 2
    top_k: int = 5
    max_evidence_ids: int = 3
    unverifiable_threshold: float = UNVERIFIABLE_THRESHOLD
    supported_threshold: float = SUPPORTED_THRESHOLD
    numeric_tolerance: float = NUMERIC_TOLERANCE
    keyword_overlap_threshold: float = KEYWORD_OVERLAP_THRESHOLD
    batch_size: int = 5
    batch_delay: float = 0.5
    history_size: int = 10

    def __post_init__(self):
        """Validate the configuration"""
        if not 0 < self.min_tokens <= self.max_tokens:
            raise ValueError(
                f"Need 0 < min_tokens <= max_tokens, got {self.min_tokens} / {self.max_tokens}"
            )
        if self.target_tokens <= 0:
            raise ValueError(f"target_tokens must be positive, got {self.target_tokens}")
        if self.overlap_sentences < 0:
            raise ValueError(f"overlap_sentences must be >= 0, got {self.overlap_sentences}")
        if self.top_k < 2:
            # source-conflict detection compares the two best chunks
            raise ValueError(f"top_k must be at least 2, got {self.top_k}")
        if self.max_evidence_ids < 1:
            raise ValueError(f"max_evidence_ids must be >= 1, got {self.max_evidence_ids}")
        if not 0.0 <= self.unverifiable_threshold < self.supported_threshold <= 1.0:
            raise ValueError(
                "Need 0 <= unverifiable_threshold < supported_threshold <= 1, got "
                f"{self.unverifiable_threshold} / {self.supported_threshold}"
            )
        if self.numeric_tolerance < 0:
            raise ValueError(f"numeric_tolerance must be >= 0, got {self.numeric_tolerance}")
        if not 0.0 < self.keyword_overlap_threshold <= 1.0:
            raise ValueError(
                f"keyword_overlap_threshold must be in (0, 1], got {self.keyword_overlap_threshold}"
            )
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.batch_delay < 0:
            raise ValueError(f"batch_delay must be >= 0, got {self.batch_delay}")
        if self.history_size < 1:
            raise ValueError(f"history_size must be >= 1, got {self.history_size}")

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return asdict(self)
