"""
Utility functions for the GHOSTCUT engine
"""

import logging
import re
import time
from contextlib import contextmanager
from typing import Any, Iterator, List

import numpy as np


# Words ignored by the retrieval tokenizer
STOP_WORDS = frozenset({
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for',
    'of', 'with', 'by', 'from', 'is', 'are', 'was', 'were', 'be', 'been',
    'has', 'have', 'had', 'do', 'does', 'did', 'will', 'would', 'could',
    'should', 'may', 'might', 'can', 'this', 'that', 'these', 'those',
    'it', 'its', 'as', 'if', 'not', 'no', 'so', 'up', 'out', 'about',
    'into', 'than', 'then', 'he', 'she', 'we', 'they', 'their', 'our',
    'your', 'my', 'his', 'her', 'which', 'what', 'who', 'whom', 'how',
    'when', 'where', 'why', 'all', 'each', 'every', 'both', 'few', 'more',
    'most', 'other', 'some', 'such', 'only', 'own', 'same', 'very',
    'also', 'just', 'over', 'after', 'before', 'between', 'through',
    'during', 'without', 'again', 'further', 'once', 'here', 'there',
    'any', 'much', 'many', 'well', 'back', 'even', 'still', 'already',
})

# Confidence bounds an automated verifier may report
MIN_MODEL_CONFIDENCE = 0.05
MAX_MODEL_CONFIDENCE = 0.98

_NON_TOKEN_CHARS = re.compile(r'[^a-z0-9\s.%$]')
_NON_ALNUM = re.compile(r'[^a-z0-9\s]')


def tokenize(text: str) -> List[str]:
    """
    Tokenize text for TF-IDF retrieval

    Lowercases, keeps only [a-z0-9.%$], splits on whitespace and drops
    stop-words and single characters.

    Args:
        text: Input text

    Returns:
        List of tokens, in order of appearance
    """
    cleaned = _NON_TOKEN_CHARS.sub(' ', text.lower())
    return [w for w in cleaned.split() if len(w) > 1 and w not in STOP_WORDS]


def content_words(text: str) -> List[str]:
    """Content words of a text: alphanumerics only, longer than 2 characters"""
    cleaned = _NON_ALNUM.sub(' ', text.lower())
    return [w for w in cleaned.split() if len(w) > 2]


def clamp(value: float, min_val: float = 0.0, max_val: float = 1.0) -> float:
    """
    Clamp a value to [min_val, max_val]

    NaN is mapped to min_val.
    """
    if value is None or np.isnan(value):
        return min_val
    return float(np.clip(value, min_val, max_val))


def clamp_confidence(value: float) -> float:
    """Clamp a model-reported confidence into [0.05, 0.98]"""
    return clamp(value, MIN_MODEL_CONFIDENCE, MAX_MODEL_CONFIDENCE)


def clip_text(text: str, max_chars: int = 200) -> str:
    """Shorten text for log lines and notes"""
    text = ' '.join(text.split())
    return text if len(text) <= max_chars else text[:max_chars - 1] + '…'


@contextmanager
def timed(logger: logging.Logger, name: str, **kv: Any) -> Iterator[None]:
    """
    Usage:
      with timed(logger, "index.build", chunks=10):
          ...
    Emits one INFO on exit: "<name>.done ms=<int> key=val ..."
    """
    t0 = time.perf_counter()
    try:
        yield
    finally:
        dt_ms = int((time.perf_counter() - t0) * 1000)
        suffix = "".join(f" {k}={v}" for k, v in kv.items())
        logger.info("%s.done ms=%d%s", name, dt_ms, suffix)
