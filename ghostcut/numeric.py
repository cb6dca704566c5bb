"""
Numeric and entity analysis: quantity extraction, deviation and keyword overlap
"""

import math
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .config import NUMERIC_TOLERANCE
from .models import Severity
from .utils import STOP_WORDS, content_words


# $-prefixed or plain numbers with thousands separators and decimals,
# optionally followed by a magnitude suffix
NUMBER_PATTERN = re.compile(
    r'(?<![\w.])\$?\d(?:[\d,]*\d)?(?:\.\d+)?'
    r'(?:\s*(?:%|(?:million|billion|thousand|m|b|k)\b))?',
    re.IGNORECASE
)

MULTIPLIERS = {
    'million': 1e6,
    'm': 1e6,
    'billion': 1e9,
    'b': 1e9,
    'thousand': 1e3,
    'k': 1e3,
}

_SUFFIX = re.compile(r'(million|billion|thousand|m|b|k|%)$')

MEDICAL_TERMS = re.compile(
    r'\b(fda|clinical|medical|drug|patient|diagnosis|treatment|disease|therapy|'
    r'dosage|trial|pharmaceutical|health|hospital)\b'
)
FINANCIAL_TERMS = re.compile(
    r'\b(revenue|profit|valuation|investor|sec|stock|earnings|ipo|funding|'
    r'financial|million|billion|arr|ebitda)\b'
)
LEGAL_TERMS = re.compile(
    r'\b(law|legal|regulation|compliance|court|statute|liability|contract|'
    r'patent|license|clearance)\b'
)


@dataclass
class ExtractedNumber:
    """A quantity found in text: the literal as written and its canonical value"""
    raw: str
    value: float
    start: int
    end: int


@dataclass
class NumericConflict:
    claimed: ExtractedNumber
    source: ExtractedNumber
    deviation: float

    @property
    def detail(self) -> str:
        return (
            f'Claimed "{self.claimed.raw}" vs source "{self.source.raw}" '
            f'(deviation: {self.deviation * 100:.1f}%)'
        )


def parse_quantity(raw: str) -> float:
    """
    Canonical value of a matched quantity literal

    Strips "$", "," and whitespace and applies the magnitude suffix;
    percentages keep their face value.
    """
    clean = re.sub(r'[$,\s]', '', raw).lower()
    suffix = _SUFFIX.search(clean)
    multiplier = 1.0
    if suffix:
        clean = clean[:suffix.start()]
        multiplier = MULTIPLIERS.get(suffix.group(1), 1.0)
    try:
        return float(clean) * multiplier
    except ValueError:
        return math.nan


def extract_numbers(text: str) -> List[ExtractedNumber]:
    """
    Extract magnitude-bearing numbers from text in a single regex pass

    Args:
        text: Input text

    Returns:
        Positive quantities in order of appearance
    """
    numbers = []
    for match in NUMBER_PATTERN.finditer(text):
        raw = match.group(0).strip()
        value = parse_quantity(raw)
        if math.isnan(value) or value <= 0:
            continue
        numbers.append(ExtractedNumber(raw=raw, value=value, start=match.start(), end=match.start() + len(raw)))
    return numbers


def numeric_deviation(claimed: float, source: float) -> float:
    """
    Relative deviation |claimed - source| / |source|

    Defined as 1 when the source is 0 and the claim is not, else 0.
    """
    if source == 0:
        return 0.0 if claimed == 0 else 1.0
    return abs(claimed - source) / abs(source)


def find_numeric_conflict(
    claim_numbers: Sequence[ExtractedNumber],
    source_numbers: Sequence[ExtractedNumber],
    tolerance: float = NUMERIC_TOLERANCE
) -> Optional[NumericConflict]:
    """
    First pair of numbers deviating beyond tolerance

    Claim numbers are the outer loop and source numbers the inner one; the
    first conflicting pair wins. With several candidate numbers this is a
    heuristic, not an alignment.
    """
    for claimed in claim_numbers:
        for source in source_numbers:
            deviation = numeric_deviation(claimed.value, source.value)
            if deviation > tolerance:
                return NumericConflict(claimed=claimed, source=source, deviation=deviation)
    return None


def keyword_overlap(claim: str, chunk_text: str) -> float:
    """
    Fraction of the claim's content words that also appear in a chunk

    Stop-words in the claim are ignored.

    Args:
        claim: Claim text
        chunk_text: Candidate source text

    Returns:
        Overlap in [0, 1]; 0 for a claim without content words
    """
    words = [w for w in content_words(claim) if w not in STOP_WORDS]
    if not words:
        return 0.0
    vocabulary = set(content_words(chunk_text))
    return sum(1 for w in words if w in vocabulary) / len(words)


def detect_severity(text: str) -> Severity:
    """Severity of a contradiction from the domain of the claim"""
    lower = text.lower()
    if MEDICAL_TERMS.search(lower) or FINANCIAL_TERMS.search(lower):
        return Severity.CRITICAL
    if LEGAL_TERMS.search(lower):
        return Severity.MODERATE
    return Severity.MINOR
