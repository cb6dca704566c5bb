"""
Batched, bounded-concurrency calls to the semantic verifier
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Union

from .models import RetrievedEvidence
from .signals import SemanticVerdict, SemanticVerifier
from .utils import clip_text

logger = logging.getLogger(__name__)

Outcome = Union[SemanticVerdict, Exception]


@dataclass
class VerificationRequest:
    claim_id: str
    claim: str
    evidence: List[RetrievedEvidence] = field(default_factory=list)


class BatchScheduler:
    """
    Issues semantic verifier calls in fixed-size batches

    Calls within a batch run concurrently on a thread pool bounded to the
    batch size; batches are separated by a short delay to stay clear of
    upstream rate limits. Results keep request order, and an exception from
    one call becomes that claim's outcome without affecting the others.
    """

    def __init__(
        self,
        verifier: SemanticVerifier,
        batch_size: int = 5,
        delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self.verifier = verifier
        self.batch_size = batch_size
        self.delay = delay
        self._sleep = sleep

    def _call(self, request: VerificationRequest) -> Outcome:
        try:
            return self.verifier.verify(request.claim, request.evidence)
        except Exception as e:
            logger.warning(
                "scheduler.call_failed claim=%s error=%s",
                request.claim_id, clip_text(str(e) or e.__class__.__name__)
            )
            return e

    def run(
        self,
        requests: Sequence[VerificationRequest],
        on_progress: Optional[Callable[[int, int], None]] = None
    ) -> List[Outcome]:
        """
        Verify all requests

        Args:
            requests: Claims with their retrieved evidence
            on_progress: Called with (completed, total) after each batch

        Returns:
            One SemanticVerdict or exception per request, in request order
        """
        total = len(requests)
        outcomes: List[Outcome] = []
        if total == 0:
            return outcomes

        with ThreadPoolExecutor(max_workers=min(self.batch_size, total)) as pool:
            for start in range(0, total, self.batch_size):
                if start > 0 and self.delay > 0:
                    self._sleep(self.delay)
                batch = requests[start:start + self.batch_size]
                outcomes.extend(pool.map(self._call, batch))
                logger.debug("scheduler.batch done=%d total=%d", len(outcomes), total)
                if on_progress is not None:
                    on_progress(len(outcomes), total)

        failures = sum(1 for o in outcomes if isinstance(o, Exception))
        if failures:
            logger.warning("scheduler.failures failed=%d total=%d", failures, total)
        return outcomes
