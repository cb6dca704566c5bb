"""
Document ingestion: file reading, chunking and source-document assembly
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .chunker import chunk_text
from .config import AuditConfig
from .errors import DocumentReadError
from .models import SourceDocument, SourceParagraph, TextChunk

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = {'txt', 'md', 'csv', 'json', 'text', 'log', 'xml', 'html', 'htm'}
BINARY_EXTENSIONS = {'pdf', 'doc', 'docx'}
SOURCE_TYPES = {'pdf', 'txt', 'md'}

# Below this many printable characters a binary file is considered unreadable
MIN_EXTRACTED_CHARS = 50

_NON_PRINTABLE = re.compile(r'[^\x20-\x7E\n\r\t]')
_WHITESPACE_RUN = re.compile(r'\s{3,}')


@dataclass
class IngestedDocument:
    """A source document after reading and chunking"""
    id: str
    name: str
    file_type: str
    raw_text: str
    chunks: List[TextChunk] = field(default_factory=list)


def file_extension(name: str) -> str:
    _, ext = os.path.splitext(name)
    return ext.lstrip('.').lower()


def extract_printable_text(data: bytes, name: str) -> str:
    """
    Best-effort text recovery from a binary document

    Non-printable bytes become spaces and long whitespace runs collapse to a
    newline. Real PDF/DOC parsing is left to dedicated tools; convert such
    files to .txt or .md for accurate results.

    Raises:
        DocumentReadError: fewer than 50 characters of plausible text remain
    """
    text = data.decode('latin-1')
    cleaned = _WHITESPACE_RUN.sub('\n', _NON_PRINTABLE.sub(' ', text))
    if len(cleaned.strip()) < MIN_EXTRACTED_CHARS:
        raise DocumentReadError(
            f'Could not extract text from "{name}". Binary formats (PDF/DOC) should be '
            f'converted to .txt or .md for accurate processing.'
        )
    return cleaned


def read_file_content(path: str) -> str:
    """
    Read a source file as plain text

    Args:
        path: File path

    Returns:
        File content; plain-text formats are returned as-is

    Raises:
        DocumentReadError: the file is missing, unreadable or yields no text
    """
    name = os.path.basename(path)
    ext = file_extension(name)
    try:
        if ext in BINARY_EXTENSIONS:
            with open(path, 'rb') as fh:
                return extract_printable_text(fh.read(), name)
        with open(path, 'r', encoding='utf-8', errors='replace') as fh:
            return fh.read()
    except OSError as e:
        raise DocumentReadError(f'Could not read "{name}": {e}') from e


def ingest_texts(
    sources: Iterable[Tuple[str, str]],
    config: Optional[AuditConfig] = None,
    start_index: int = 0
) -> List[IngestedDocument]:
    """
    Chunk already-read documents

    Args:
        sources: (file name, raw text) pairs, in upload order
        config: Chunking parameters
        start_index: Number of the first document

    Returns:
        Ingested documents with ids "doc-{start_index}", "doc-{start_index + 1}", ...
    """
    config = config or AuditConfig()
    documents = []
    for i, (name, raw_text) in enumerate(sources, start_index):
        doc_id = f'doc-{i}'
        chunks = chunk_text(
            raw_text,
            doc_id,
            name,
            target_tokens=config.target_tokens,
            overlap_sentences=config.overlap_sentences,
            max_tokens=config.max_tokens,
            min_tokens=config.min_tokens
        )
        if not chunks:
            logger.warning("ingest.empty document=%s", name)
        documents.append(IngestedDocument(
            id=doc_id,
            name=name,
            file_type=file_extension(name) or 'txt',
            raw_text=raw_text,
            chunks=chunks
        ))
    logger.info(
        "ingest.done documents=%d chunks=%d",
        len(documents), sum(len(d.chunks) for d in documents)
    )
    return documents


def ingest_files(
    paths: Sequence[str],
    config: Optional[AuditConfig] = None,
    start_index: int = 0
) -> List[IngestedDocument]:
    """Read and chunk source files"""
    return ingest_texts(
        [(os.path.basename(p), read_file_content(p)) for p in paths],
        config=config,
        start_index=start_index
    )


def all_chunks(documents: Iterable[IngestedDocument]) -> List[TextChunk]:
    """Every chunk of every document, in document then chunk order"""
    return [chunk for doc in documents for chunk in doc.chunks]


def build_source_documents(
    documents: Iterable[IngestedDocument],
    links: Optional[Mapping[str, List[str]]] = None
) -> List[SourceDocument]:
    """
    Turn ingested documents into source documents with claim back-references

    Args:
        documents: Ingested documents
        links: chunk id -> ids of the claims citing it

    Returns:
        One SourceDocument per ingested document; paragraphs are its chunks
    """
    links = links or {}
    out = []
    for doc in documents:
        paragraphs = [
            SourceParagraph(
                id=chunk.id,
                text=chunk.text,
                linked_sentence_ids=list(links.get(chunk.id, []))
            )
            for chunk in doc.chunks
        ]
        doc_type = doc.file_type if doc.file_type in SOURCE_TYPES else 'txt'
        out.append(SourceDocument(id=doc.id, name=doc.name, type=doc_type, paragraphs=paragraphs))
    return out


def link_evidence(pairs: Iterable[Tuple[str, Sequence[str]]]) -> Dict[str, List[str]]:
    """Invert (claim id, evidence chunk ids) pairs into chunk id -> claim ids"""
    links: Dict[str, List[str]] = {}
    for claim_id, chunk_ids in pairs:
        for chunk_id in chunk_ids:
            links.setdefault(chunk_id, []).append(claim_id)
    return links
