"""
Main forensic auditor class
"""

import logging
import time
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .chunker import split_into_sentences
from .config import AuditConfig
from .errors import EmptyIndexError, NoClaimsError, VerifierOutageError
from .graph import build_claim_graph
from .history import AuditHistory
from .index import VectorIndex
from .ingest import (
    IngestedDocument,
    all_chunks,
    build_source_documents,
    ingest_files,
    ingest_texts,
    link_evidence,
)
from .models import AuditResult, ClaimStatus
from .scheduler import BatchScheduler, VerificationRequest
from .scoring import TrustScorer
from .signals import SemanticVerifier
from .utils import clip_text, timed
from .verifier import ClaimVerifier

logger = logging.getLogger(__name__)


class ForensicAuditor:
    """
    Main GHOSTCUT forensic verification system

    Audits AI-generated text against the uploaded source documents only.
    Every audit builds its own vector index, so consecutive or batched audits
    never share retrieval state.
    """

    def __init__(
        self,
        verifier: Optional[SemanticVerifier] = None,
        config: Optional[AuditConfig] = None,
        scorer: Optional[TrustScorer] = None,
        history: Optional[AuditHistory] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the auditor

        Args:
            verifier: Semantic verifier (NLI / LLM judge); without one, claims
                are judged by retrieval and numeric checks alone
            config: Audit configuration
            scorer: Trust scorer
            history: Snapshot history; created from config.history_size if omitted
            sleep: Sleep function used between verifier batches
        """
        self.config = config or AuditConfig()
        self.scorer = scorer or TrustScorer()
        self.history = history or AuditHistory(self.config.history_size)
        self._sleep = sleep
        self.documents: List[IngestedDocument] = []
        self.verifier = None
        self.scheduler = None
        self.set_verifier(verifier)

    def set_verifier(self, verifier: Optional[SemanticVerifier]):
        """
        Set the semantic verifier

        Args:
            verifier: SemanticVerifier instance, or None to disable semantic checks
        """
        self.verifier = verifier
        self.scheduler = None
        if verifier is not None:
            self.scheduler = BatchScheduler(
                verifier,
                batch_size=self.config.batch_size,
                delay=self.config.batch_delay,
                sleep=self._sleep
            )

    def load_documents(self, paths: Sequence[str]) -> List[IngestedDocument]:
        """
        Read, chunk and add source files

        Raises:
            DocumentReadError: a file could not be read
        """
        documents = ingest_files(paths, self.config, start_index=len(self.documents))
        self.documents.extend(documents)
        return documents

    def load_texts(
        self,
        sources: Union[Mapping[str, str], Iterable[Tuple[str, str]]]
    ) -> List[IngestedDocument]:
        """
        Chunk and add already-read documents

        Args:
            sources: {file name: text} or (file name, text) pairs
        """
        if isinstance(sources, Mapping):
            sources = list(sources.items())
        documents = ingest_texts(sources, self.config, start_index=len(self.documents))
        self.documents.extend(documents)
        return documents

    def clear_documents(self):
        """Drop all source documents"""
        self.documents = []

    def audit(
        self,
        text: str,
        dependencies: Optional[Mapping[str, Sequence[str]]] = None,
        label: Optional[str] = None,
        save: bool = True,
        on_progress: Optional[Callable[[int, int], None]] = None,
        verbose: bool = False
    ) -> AuditResult:
        """
        Audit AI-generated text against the loaded documents

        Args:
            text: Text under audit
            dependencies: claim id -> upstream claim ids, for cascade analysis
            label: Label of the history snapshot
            save: Whether to save the result to the history
            on_progress: Called with (completed, total) after each verifier batch
            verbose: Print progress information

        Returns:
            AuditResult with claims, documents, stats and dependency graph

        Raises:
            EmptyIndexError: no document chunks are available
            NoClaimsError: no claims could be extracted from text
            VerifierOutageError: the semantic verifier failed for every claim
        """
        start = time.perf_counter()

        index = VectorIndex()
        index.build(all_chunks(self.documents))
        if index.size == 0:
            raise EmptyIndexError()

        claims = split_into_sentences(text)
        if not claims:
            raise NoClaimsError()

        if verbose:
            print(f"Auditing {len(claims)} claims against {len(self.documents)} documents "
                  f"({index.size} chunks)...")

        claim_verifier = ClaimVerifier(index, self.config)
        claim_ids = [f"s{i + 1}" for i in range(len(claims))]

        with timed(logger, "audit.retrieve", claims=len(claims)):
            retrievals = [claim_verifier.retrieve(c) for c in claims]

        outcomes = [None] * len(claims)
        if self.scheduler is not None:
            requests = [
                VerificationRequest(claim_id=cid, claim=c, evidence=r.retrieved_evidence)
                for cid, c, r in zip(claim_ids, claims, retrievals)
            ]
            with timed(logger, "audit.semantic", claims=len(claims)):
                outcomes = self.scheduler.run(requests, on_progress=on_progress)

            failures = [o for o in outcomes if isinstance(o, Exception)]
            if len(failures) == len(claims):
                raise VerifierOutageError(len(failures), str(failures[-1]))

        sentences = []
        for cid, claim, retrieval, outcome in zip(claim_ids, claims, retrievals, outcomes):
            sentence = claim_verifier.verify(cid, claim, retrieval, outcome)
            sentences.append(sentence)
            if verbose:
                print(f"  [{cid}] {sentence.status.value:<15} {clip_text(claim, 70)}")

        links = link_evidence((s.id, s.evidence_ids) for s in sentences)
        result = AuditResult(
            sentences=sentences,
            documents=build_source_documents(self.documents, links),
            stats=self.scorer.stats(sentences),
            graph=build_claim_graph(sentences, dependencies),
            duration_ms=int((time.perf_counter() - start) * 1000)
        )

        logger.info(
            "audit.done claims=%d trust=%d risk=%s ms=%d",
            len(sentences), result.trust_score, result.risk_level.value, result.duration_ms
        )

        if save:
            self.history.save(result, label=label)

        if verbose:
            print(f"\n{result}")

        return result

    def batch_audit(self, texts: List[str], **kwargs) -> List[AuditResult]:
        """
        Audit several texts against the same documents

        Args:
            texts: Texts under audit
            **kwargs: Additional arguments passed to audit()

        Returns:
            List of AuditResults
        """
        results = []
        for text in texts:
            result = self.audit(text, **kwargs)
            results.append(result)
        return results

    def benchmark(self, dataset: List[Dict]) -> Dict[str, float]:
        """
        Benchmark claim classification on a labelled dataset

        Args:
            dataset: List of dicts with 'claim' and 'label' (a ClaimStatus value)

        Returns:
            Dictionary of metrics (accuracy, macro F1)

        Raises:
            ValueError: an item does not decompose into exactly one claim
        """
        from sklearn.metrics import accuracy_score, f1_score

        for i, item in enumerate(dataset):
            n_claims = len(split_into_sentences(item['claim']))
            if n_claims != 1:
                raise ValueError(
                    f"Benchmark item {i} must hold exactly one claim, found {n_claims}: "
                    f"{clip_text(item['claim'], 80)!r}"
                )

        predictions = []
        labels = []
        for item in dataset:
            result = self.audit(item['claim'], save=False)
            predictions.append(result.sentences[0].status.value)
            labels.append(ClaimStatus(item['label']).value)

        predictions = np.array(predictions)
        labels = np.array(labels)
        return {
            'accuracy': float(accuracy_score(labels, predictions)),
            'macro_f1': float(f1_score(labels, predictions, average='macro', zero_division=0)),
        }
