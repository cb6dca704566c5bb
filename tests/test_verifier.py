"""
Unit tests for per-claim verification
"""

import unittest
import sys
sys.path.append('..')

from ghostcut.chunker import chunk_text
from ghostcut.config import AuditConfig
from ghostcut.errors import EmptyIndexError, MalformedVerdictError, VerifierError
from ghostcut.index import VectorIndex
from ghostcut.models import ClaimStatus, Severity, VerifierKind
from ghostcut.signals import parse_semantic_verdict
from ghostcut.verifier import ClaimVerifier, build_verification


FINANCIALS = "Nextera reported ARR of $47,300,000 in fiscal 2023. The company employs 150 people."
CLINICAL = "The NeuraScan trial enrolled patients across twelve hospitals. Results were published in a peer reviewed journal."
FILING = "Series B round raised $85 million at a valuation."
DISCLOSURE = "Series B round raised $62 million at a valuation."

CONTRADICTED_CLAIM = "Nextera reported ARR of $120 million in 2023."
SUPPORTED_CLAIM = "The NeuraScan trial enrolled patients across hospitals."
SILENT_CLAIM = "Quantum bicycles orbit Jupiter frequently."
PARTIAL_CLAIM = "The company runs a trial program."
CONFLICT_CLAIM = "The Series B round raised $85 million at a high valuation."


def semantic(verdict, low=0.8, high=0.9):
    part = {
        'verdict': verdict,
        'confidence': {'low': low, 'high': high},
        'reasoning': f'The evidence shows the claim is {verdict}.'
    }
    return parse_semantic_verdict(dict(part, nli=dict(part), judge=dict(part)))


def build_index(*documents):
    chunks = []
    for i, (name, text) in enumerate(documents):
        chunks.extend(chunk_text(text, f"doc-{i}", name))
    index = VectorIndex()
    index.build(chunks)
    return index


class TestClaimVerifier(unittest.TestCase):
    """Test cases for ClaimVerifier"""

    def setUp(self):
        self.index = build_index(("financials.txt", FINANCIALS), ("clinical.txt", CLINICAL))
        self.verifier = ClaimVerifier(self.index, AuditConfig())

    def test_retrieve(self):
        retrieval = self.verifier.retrieve(CONTRADICTED_CLAIM)

        self.assertAlmostEqual(retrieval.top_score, 0.5774, places=3)
        self.assertEqual(retrieval.evidence_ids, ["doc-0-c0"])
        self.assertEqual([e.chunk_id for e in retrieval.retrieved_evidence], ["doc-0-c0"])
        self.assertIsNone(retrieval.source_conflict)

    def test_empty_index_fails_fast(self):
        with self.assertRaises(EmptyIndexError):
            ClaimVerifier(VectorIndex()).retrieve(CONTRADICTED_CLAIM)

    def test_numeric_contradiction(self):
        sentence = self.verifier.verify("s1", CONTRADICTED_CLAIM)

        self.assertEqual(sentence.status, ClaimStatus.CONTRADICTED)
        self.assertIn("deviation: 153.7%", sentence.reasoning)
        self.assertEqual((sentence.confidence.low, sentence.confidence.high), (0.90, 0.98))
        self.assertEqual(sentence.severity.level, Severity.CRITICAL)
        self.assertTrue(sentence.severity.reasoning.startswith("High-risk domain"))

    def test_source_locked_correction(self):
        sentence = self.verifier.verify("s1", CONTRADICTED_CLAIM)
        correction = sentence.correction

        self.assertIsNotNone(correction)
        self.assertEqual(correction.text, "Nextera reported ARR of $47,300,000 in 2023.")
        self.assertEqual(len(correction.citations), 1)
        citation = correction.citations[0]
        self.assertEqual(citation.paragraph_id, "doc-0-c0")
        self.assertIn(citation.excerpt, FINANCIALS)
        self.assertIn("$47,300,000", citation.excerpt)
        self.assertIn('"$120 million"', correction.removed_content)

    def test_ambiguous_correction_is_omitted(self):
        claim = "Nextera reported ARR of $120 million, repeating $120 million in 2023."
        sentence = self.verifier.verify("s1", claim)

        self.assertEqual(sentence.status, ClaimStatus.CONTRADICTED)
        self.assertIsNone(sentence.correction)

    def test_supported(self):
        sentence = self.verifier.verify("s2", SUPPORTED_CLAIM)

        self.assertEqual(sentence.status, ClaimStatus.SUPPORTED)
        self.assertEqual(sentence.evidence_ids, ["doc-1-c0"])
        self.assertIsNone(sentence.severity)
        self.assertIsNone(sentence.correction)
        self.assertTrue(sentence.verification.consensus)

    def test_no_overlap_is_unverifiable(self):
        sentence = self.verifier.verify("s3", SILENT_CLAIM)

        self.assertEqual(sentence.status, ClaimStatus.UNVERIFIABLE)
        self.assertEqual(sentence.evidence_ids, [])
        self.assertEqual(sentence.retrieved_evidence, [])
        self.assertIn("not that the claim is false", sentence.reasoning)
        self.assertGreater(sentence.confidence.low, 0.0)

    def test_partial_match_needs_corroboration(self):
        alone = self.verifier.verify("s4", PARTIAL_CLAIM)
        self.assertEqual(alone.status, ClaimStatus.UNVERIFIABLE)

        corroborated = self.verifier.verify("s4", PARTIAL_CLAIM, semantic=semantic("supported"))
        self.assertEqual(corroborated.status, ClaimStatus.SUPPORTED)
        self.assertEqual((corroborated.confidence.low, corroborated.confidence.high), (0.8, 0.9))

    def test_semantic_contradiction(self):
        sentence = self.verifier.verify("s2", SUPPORTED_CLAIM, semantic=semantic("contradicted", 0.7, 0.85))

        self.assertEqual(sentence.status, ClaimStatus.CONTRADICTED)
        self.assertEqual(sentence.severity.level, Severity.CRITICAL)
        self.assertEqual(sentence.reasoning, "The evidence shows the claim is contradicted.")
        self.assertFalse(sentence.verification.consensus)

    def test_semantic_contradiction_needs_evidence(self):
        sentence = self.verifier.verify("s3", SILENT_CLAIM, semantic=semantic("contradicted"))
        self.assertEqual(sentence.status, ClaimStatus.UNVERIFIABLE)

    def test_verifier_failure(self):
        sentence = self.verifier.verify("s1", CONTRADICTED_CLAIM, semantic=VerifierError("timeout"))

        self.assertEqual(sentence.status, ClaimStatus.UNVERIFIABLE)
        self.assertTrue(sentence.confidence.is_unavailable)
        self.assertTrue(sentence.reasoning.startswith("Verification model unavailable: timeout."))
        self.assertIn("NOT been verified", sentence.reasoning)
        self.assertIsNone(sentence.severity)
        self.assertTrue(sentence.verification.needs_review)

    def test_malformed_verdict_treated_as_failure(self):
        sentence = self.verifier.verify("s2", SUPPORTED_CLAIM, semantic=MalformedVerdictError("missing 'verdict'"))
        self.assertEqual(sentence.status, ClaimStatus.UNVERIFIABLE)

    def test_signal_results(self):
        sentence = self.verifier.verify("s1", CONTRADICTED_CLAIM, semantic=semantic("contradicted"))
        kinds = [r.verifier for r in sentence.verification.results]

        self.assertEqual(kinds, [VerifierKind.RETRIEVAL, VerifierKind.NLI, VerifierKind.LLM_JUDGE, VerifierKind.RULE_BASED])
        self.assertFalse(sentence.verification.consensus)
        note = sentence.verification.disagreement_note
        self.assertIn("TF-IDF Retrieval -> supported", note)
        self.assertIn("NumericChecker v2 -> contradicted", note)
        self.assertTrue(note.endswith("Human review recommended."))

    def test_confidence_invariant(self):
        claims = [CONTRADICTED_CLAIM, SUPPORTED_CLAIM, SILENT_CLAIM, PARTIAL_CLAIM]
        outcomes = [None, semantic("supported", 1.0, 0.0), semantic("unverifiable"), VerifierError("down")]
        for claim in claims:
            for outcome in outcomes:
                sentence = self.verifier.verify("s1", claim, semantic=outcome)
                self.assertLessEqual(0.0, sentence.confidence.low)
                self.assertLessEqual(sentence.confidence.low, sentence.confidence.high)
                self.assertLessEqual(sentence.confidence.high, 0.98)


PORT_MINUTES = (
    "Harbor logistics expanded warehouse capacity. Topics: freight, customs, staffing, crane, "
    "maintenance, rail, connections, dredging, schedules, tariff, reviews, fuel, contracts, pilot, "
    "rotations, berth, allocations, regional, board, meeting, minutes, budget, forecasts, container, "
    "yards, tugboat, fleets, security, audits, insurance, premiums, labor, negotiations, shipping, "
    "alliances, vessel, queues, storage, fees, terminal, upgrades, lighting, towers, drainage, repairs, "
    "paving, projects, gate, automation, scanner, installation, weather, delays, river, levels."
)


class TestKeywordCorroboration(unittest.TestCase):
    """A long chunk dilutes similarity; keyword overlap still corroborates the claim"""

    def setUp(self):
        self.verifier = ClaimVerifier(build_index(("port_minutes.txt", PORT_MINUTES)))

    def test_full_overlap_supports_partial_match(self):
        claim = "Harbor logistics expanded warehouse capacity."
        retrieval = self.verifier.retrieve(claim)
        self.assertGreater(retrieval.top_score, 0.12)
        self.assertLess(retrieval.top_score, 0.35)

        sentence = self.verifier.verify("s1", claim, retrieval=retrieval)

        self.assertEqual(sentence.status, ClaimStatus.SUPPORTED)
        self.assertIn("keyword overlap: 100%", sentence.reasoning)
        self.assertEqual((sentence.confidence.low, sentence.confidence.high), (0.55, 0.75))

    def test_low_overlap_stays_unverifiable(self):
        sentence = self.verifier.verify("s1", "Harbor logistics expanded offshore drilling.")

        self.assertEqual(sentence.status, ClaimStatus.UNVERIFIABLE)
        self.assertIn("keyword overlap 60%", sentence.reasoning)

    def test_threshold_is_configurable(self):
        verifier = ClaimVerifier(
            build_index(("port_minutes.txt", PORT_MINUTES)),
            AuditConfig(keyword_overlap_threshold=0.5)
        )
        sentence = verifier.verify("s1", "Harbor logistics expanded offshore drilling.")
        self.assertEqual(sentence.status, ClaimStatus.SUPPORTED)

    def test_invalid_threshold(self):
        with self.assertRaises(ValueError):
            AuditConfig(keyword_overlap_threshold=0.0)


class TestSourceConflict(unittest.TestCase):

    def setUp(self):
        self.index = build_index(("filing.pdf", FILING), ("disclosure.txt", DISCLOSURE))
        self.verifier = ClaimVerifier(self.index)

    def test_source_conflict(self):
        sentence = self.verifier.verify("s1", CONFLICT_CLAIM)

        self.assertEqual(sentence.status, ClaimStatus.SOURCE_CONFLICT)
        self.assertEqual((sentence.confidence.low, sentence.confidence.high), (0.35, 0.65))
        info = sentence.source_conflict
        self.assertEqual(info.evidence_a.document_name, "filing.pdf")
        self.assertEqual(info.evidence_b.document_name, "disclosure.txt")
        self.assertIn("$85 million", info.evidence_a.excerpt)
        self.assertIn("$62 million", info.evidence_b.excerpt)
        self.assertIn("not the audited text", info.explanation)
        self.assertFalse(sentence.verification.consensus)
        self.assertEqual(sentence.verification.final_verdict, ClaimStatus.SOURCE_CONFLICT)

    def test_source_conflict_overrides_other_signals(self):
        for outcome in (semantic("supported"), semantic("contradicted"), VerifierError("down")):
            sentence = self.verifier.verify("s1", CONFLICT_CLAIM, semantic=outcome)
            self.assertEqual(sentence.status, ClaimStatus.SOURCE_CONFLICT)
            self.assertIsNone(sentence.severity)

    def test_same_document_is_not_a_conflict(self):
        index = build_index(("filing.pdf", FILING + "\n\n" + DISCLOSURE))
        retrieval = ClaimVerifier(index).retrieve(CONFLICT_CLAIM)
        self.assertIsNone(retrieval.source_conflict)


class TestBuildVerification(unittest.TestCase):

    def test_consensus_ignores_not_applicable(self):
        supported = semantic("supported")
        verification = build_verification([supported.nli, supported.judge], ClaimStatus.SUPPORTED)
        self.assertTrue(verification.consensus)
        self.assertIsNone(verification.disagreement_note)

    def test_disagreement_is_not_resolved_by_majority(self):
        supported = semantic("supported")
        contradicted = semantic("contradicted")
        verification = build_verification(
            [supported.nli, supported.judge, contradicted.nli],
            ClaimStatus.SUPPORTED
        )
        self.assertFalse(verification.consensus)
        self.assertEqual(verification.final_verdict, ClaimStatus.SUPPORTED)
        self.assertIn("Models disagree", verification.disagreement_note)
        self.assertEqual(verification.disagreement_note.count("->"), 3)


def run_tests():
    """Run all tests"""
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestClaimVerifier))
    suite.addTests(loader.loadTestsFromTestCase(TestKeywordCorroboration))
    suite.addTests(loader.loadTestsFromTestCase(TestSourceConflict))
    suite.addTests(loader.loadTestsFromTestCase(TestBuildVerification))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return result.wasSuccessful()


if __name__ == '__main__':
    success = run_tests()
    sys.exit(0 if success else 1)
