"""
Sentence-aware chunking of source documents and claim decomposition
"""

import math
import re
from typing import List

from .models import TextChunk


# Token counts are estimated, not tokenized: 1 token ~ 4 characters
# (GPT-style heuristic). Every token figure in this package uses it.
CHARS_PER_TOKEN = 4

DEFAULT_TARGET_TOKENS = 400
DEFAULT_MAX_TOKENS = 500
DEFAULT_MIN_TOKENS = 200
DEFAULT_OVERLAP_SENTENCES = 2

# Sentence-like units: break after terminal punctuation or on blank lines
_UNIT_SPLIT = re.compile(r'(?<=[.!?:;])\s+|\n{2,}')
# Claims: break after sentence-ending punctuation only
_CLAIM_SPLIT = re.compile(r'(?<=[.!?])\s+')

MIN_UNIT_CHARS = 5
MIN_CLAIM_CHARS = 15


def estimate_tokens(text: str) -> int:
    """Approximate token count of text (characters / CHARS_PER_TOKEN, rounded up)"""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def split_units(text: str) -> List[str]:
    """Split text into sentence-like units, dropping fragments of 5 characters or fewer"""
    units = (u.strip() for u in _UNIT_SPLIT.split(text) if u)
    return [u for u in units if len(u) > MIN_UNIT_CHARS]


def split_into_sentences(text: str) -> List[str]:
    """
    Decompose audited text into claims

    Args:
        text: AI-generated text under audit

    Returns:
        Sentences longer than 15 characters, in order
    """
    sentences = (s.strip() for s in _CLAIM_SPLIT.split(text) if s)
    return [s for s in sentences if len(s) > MIN_CLAIM_CHARS]


def _make_chunk(text: str, document_id: str, document_name: str, index: int) -> TextChunk:
    return TextChunk(
        id=f"{document_id}-c{index}",
        text=text,
        document_id=document_id,
        document_name=document_name,
        chunk_index=index,
        token_estimate=estimate_tokens(text)
    )


def _slice_by_characters(
    text: str,
    document_id: str,
    document_name: str,
    target_tokens: int
) -> List[TextChunk]:
    """Fixed-size fallback for text without sentence boundaries"""
    chunks: List[TextChunk] = []
    char_target = target_tokens * CHARS_PER_TOKEN
    for start in range(0, len(text), char_target):
        segment = text[start:start + char_target].strip()
        if segment:
            chunks.append(_make_chunk(segment, document_id, document_name, len(chunks)))
    return chunks


def chunk_text(
    text: str,
    document_id: str,
    document_name: str,
    target_tokens: int = DEFAULT_TARGET_TOKENS,
    overlap_sentences: int = DEFAULT_OVERLAP_SENTENCES,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    min_tokens: int = DEFAULT_MIN_TOKENS
) -> List[TextChunk]:
    """
    Split a document into overlapping, token-bounded chunks

    Sentences are accumulated greedily. A chunk is flushed once the next
    sentence would push it past max_tokens and it already holds min_tokens;
    the next chunk starts with the last overlap_sentences sentences of the
    flushed one, so evidence spanning a boundary is never lost.

    Args:
        text: Raw document text
        document_id: Identifier of the owning document
        document_name: File name of the owning document
        target_tokens: Chunk size used by the character-slicing fallback
        overlap_sentences: Sentences repeated at the start of each new chunk
        max_tokens: Hard ceiling per chunk (estimated tokens)
        min_tokens: Floor a chunk must reach before it may be flushed

    Returns:
        Zero-indexed chunks with ids "{document_id}-c{index}"
    """
    sentences = split_units(text)
    if not sentences:
        return _slice_by_characters(text, document_id, document_name, target_tokens)

    chunks: List[TextChunk] = []
    current: List[str] = []
    # length of ' '.join(current), so estimates match the emitted chunk text
    current_chars = 0

    for sentence in sentences:
        joined_chars = current_chars + (1 if current else 0) + len(sentence)
        current_tokens = math.ceil(current_chars / CHARS_PER_TOKEN)

        if math.ceil(joined_chars / CHARS_PER_TOKEN) > max_tokens and current_tokens >= min_tokens:
            chunks.append(_make_chunk(' '.join(current), document_id, document_name, len(chunks)))

            current = current[-overlap_sentences:] if overlap_sentences > 0 else []
            current_chars = len(' '.join(current))

        current_chars += (1 if current else 0) + len(sentence)
        current.append(sentence)

    remainder = ' '.join(current).strip()
    if remainder:
        chunks.append(_make_chunk(remainder, document_id, document_name, len(chunks)))

    return chunks
