"""
In-memory TF-IDF vector index over document chunks
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np
from scipy import sparse
from sklearn.feature_extraction.text import CountVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from .models import SearchResult, TextChunk
from .utils import timed, tokenize

logger = logging.getLogger(__name__)


@dataclass
class VectorEntry:
    """A chunk and its TF-IDF vector (dimension = vocabulary size at build time)"""
    chunk: TextChunk
    vector: np.ndarray


def smoothed_idf(document_frequency: np.ndarray, n_documents: int) -> np.ndarray:
    """
    Smoothed inverse document frequency: ln((N + 1) / (df + 1)) + 1

    Always positive, never divides by zero.
    """
    df = np.asarray(document_frequency, dtype=np.float64)
    return np.log((n_documents + 1.0) / (df + 1.0)) + 1.0


def max_normalized_tf(counts: sparse.spmatrix) -> sparse.csr_matrix:
    """Scale each row of a count matrix by its own maximum term frequency"""
    counts = sparse.csr_matrix(counts, dtype=np.float64)
    row_max = counts.max(axis=1).toarray().ravel()
    row_max[row_max == 0] = 1.0
    return sparse.diags(1.0 / row_max) @ counts


def safe_cosine(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of one vector against each row of a matrix

    Zero-magnitude vectors score 0 instead of NaN.
    """
    if matrix.shape[0] == 0:
        return np.zeros(0)
    if matrix.shape[1] == 0 or not np.any(query):
        return np.zeros(matrix.shape[0])
    # sklearn leaves zero rows at zero norm, so they score 0
    return cosine_similarity(query.reshape(1, -1), matrix)[0]


class VectorIndex:
    """
    TF-IDF index answering top-k cosine similarity queries

    The index is owned by one audit run. build() discards any previous
    vocabulary and vectors; there are no incremental updates.
    """

    def __init__(self):
        self._entries: List[VectorEntry] = []
        self._vectorizer = None
        self._idf = np.zeros(0)
        self._matrix = np.zeros((0, 0))

    def build(self, chunks: Sequence[TextChunk]) -> None:
        """
        Build the index from all chunks of all ingested documents

        Args:
            chunks: Chunks to index
        """
        self.clear()
        chunks = list(chunks)
        if not chunks:
            logger.warning("index.build.empty")
            return

        with timed(logger, "index.build", chunks=len(chunks)):
            vectorizer = CountVectorizer(
                tokenizer=tokenize,
                lowercase=False,
                token_pattern=None
            )
            texts = [c.text for c in chunks]
            try:
                counts = vectorizer.fit_transform(texts)
            except ValueError:
                # every chunk consisted of stop-words or single characters
                logger.warning("index.build.empty_vocabulary chunks=%d", len(chunks))
                self._entries = [VectorEntry(chunk=c, vector=np.zeros(0)) for c in chunks]
                self._matrix = np.zeros((len(chunks), 0))
                return

            df = np.asarray((counts > 0).sum(axis=0)).ravel()
            self._idf = smoothed_idf(df, len(chunks))
            self._vectorizer = vectorizer
            self._matrix = self._weigh(counts)
            self._entries = [
                VectorEntry(chunk=chunk, vector=self._matrix[i])
                for i, chunk in enumerate(chunks)
            ]

        logger.info("index.built chunks=%d vocab=%d", len(chunks), self._idf.shape[0])

    def _weigh(self, counts: sparse.spmatrix) -> np.ndarray:
        tfidf = max_normalized_tf(counts) @ sparse.diags(self._idf)
        return np.asarray(tfidf.toarray(), dtype=np.float64)

    def vectorize(self, text: str) -> np.ndarray:
        """Project text into the index vocabulary; unknown terms contribute nothing"""
        if self._vectorizer is None:
            return np.zeros(self._matrix.shape[1])
        return self._weigh(self._vectorizer.transform([text]))[0]

    def search(self, query: str, top_k: int = 5) -> List[SearchResult]:
        """
        Find the chunks most similar to a query

        Args:
            query: Query text (a claim)
            top_k: Maximum number of results

        Returns:
            Results sorted by descending similarity; empty for an empty index
        """
        if not self._entries or top_k <= 0:
            return []

        scores = safe_cosine(self.vectorize(query), self._matrix)
        order = np.argsort(-scores, kind='stable')[:top_k]
        return [
            SearchResult(chunk=self._entries[i].chunk, score=float(scores[i]))
            for i in order
        ]

    def clear(self) -> None:
        """Drop all indexed data"""
        self._entries = []
        self._vectorizer = None
        self._idf = np.zeros(0)
        self._matrix = np.zeros((0, 0))

    @property
    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return self.size

    @property
    def chunks(self) -> List[TextChunk]:
        return [e.chunk for e in self._entries]

    @property
    def entries(self) -> List[VectorEntry]:
        return list(self._entries)

    @property
    def vocabulary(self) -> Dict[str, int]:
        """Term -> dense column index"""
        if self._vectorizer is None:
            return {}
        return {term: int(i) for term, i in self._vectorizer.vocabulary_.items()}

    @property
    def idf(self) -> np.ndarray:
        return self._idf.copy()
