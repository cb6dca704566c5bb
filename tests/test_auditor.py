"""
Unit tests for ForensicAuditor
"""

import io
import unittest
import sys
from contextlib import redirect_stdout
sys.path.append('..')

from ghostcut import ForensicAuditor
from ghostcut.config import AuditConfig
from ghostcut.errors import EmptyIndexError, NoClaimsError, VerifierOutageError
from ghostcut.models import ClaimStatus, NodeStatus, RiskLevel, Severity
from ghostcut.signals import FunctionVerifier


FINANCIALS = "Nextera reported ARR of $47,300,000 in fiscal 2023. The company employs 150 people."
CLINICAL = "The NeuraScan trial enrolled patients across twelve hospitals. Results were published in a peer reviewed journal."

AUDITED_TEXT = (
    "Nextera reported ARR of $120 million in 2023. "
    "The NeuraScan trial enrolled patients across hospitals. "
    "Quantum bicycles orbit Jupiter frequently."
)


def payload(verdict):
    part = {
        'verdict': verdict,
        'confidence': {'low': 0.7, 'high': 0.85},
        'reasoning': f'The evidence indicates the claim is {verdict}.'
    }
    return dict(part, nli=dict(part), judge=dict(part))


def always_supported(claim, evidence):
    return payload('supported')


def fails_on_quantum(claim, evidence):
    if 'Quantum' in claim:
        raise ConnectionError("connection reset")
    return payload('supported')


def always_down(claim, evidence):
    raise ConnectionError("service unavailable")


def no_sleep(seconds):
    pass


class TestForensicAuditor(unittest.TestCase):
    """Test cases for ForensicAuditor"""

    def setUp(self):
        self.auditor = ForensicAuditor(sleep=no_sleep)
        self.auditor.load_texts({"financials.txt": FINANCIALS, "clinical.txt": CLINICAL})

    def test_load_texts(self):
        self.assertEqual([d.id for d in self.auditor.documents], ["doc-0", "doc-1"])

        added = self.auditor.load_texts([("notes.md", "Additional notes about the quarterly review.")])
        self.assertEqual(added[0].id, "doc-2")
        self.assertEqual(len(self.auditor.documents), 3)

    def test_audit_without_semantic_verifier(self):
        result = self.auditor.audit(AUDITED_TEXT)

        self.assertEqual([s.id for s in result.sentences], ["s1", "s2", "s3"])
        self.assertEqual(
            [s.status for s in result.sentences],
            [ClaimStatus.CONTRADICTED, ClaimStatus.SUPPORTED, ClaimStatus.UNVERIFIABLE]
        )
        self.assertEqual(result.sentences[0].severity.level, Severity.CRITICAL)
        self.assertEqual(result.sentences[0].correction.text, "Nextera reported ARR of $47,300,000 in 2023.")

        self.assertEqual(result.trust_score, 63)
        self.assertEqual(result.risk_level, RiskLevel.HIGH)
        self.assertEqual(
            result.stats.percentages.to_dict(),
            {'supported': 34, 'contradicted': 33, 'unverifiable': 33, 'source_conflict': 0}
        )
        self.assertEqual(result.verification_scope, 'uploaded_documents_only')
        self.assertGreaterEqual(result.duration_ms, 0)

    def test_evidence_back_references(self):
        result = self.auditor.audit(AUDITED_TEXT)

        financials, clinical = result.documents
        self.assertEqual(financials.paragraphs[0].id, "doc-0-c0")
        self.assertEqual(financials.paragraphs[0].linked_sentence_ids, ["s1"])
        self.assertEqual(clinical.paragraphs[0].linked_sentence_ids, ["s2"])

        for sentence in result.sentences:
            for chunk_id in sentence.evidence_ids:
                paragraph = next(p for d in result.documents for p in d.paragraphs if p.id == chunk_id)
                self.assertIn(sentence.id, paragraph.linked_sentence_ids)

    def test_graph_is_always_built(self):
        result = self.auditor.audit(AUDITED_TEXT)
        self.assertEqual(len(result.graph.nodes), 3)
        self.assertEqual(result.graph.edges, [])

    def test_dependencies_cascade(self):
        result = self.auditor.audit(AUDITED_TEXT, dependencies={'s2': ['s1'], 's3': ['s2']})

        self.assertEqual(result.graph.node('s2').effective_status, NodeStatus.CASCADE)
        self.assertEqual(result.graph.node('s3').cascade_source, 's2')
        self.assertEqual(result.sentence('s2').status, ClaimStatus.SUPPORTED)

    def test_with_semantic_verifier(self):
        self.auditor.set_verifier(FunctionVerifier(always_supported))
        result = self.auditor.audit(AUDITED_TEXT)

        s1, s2, s3 = result.sentences
        self.assertEqual(s1.status, ClaimStatus.CONTRADICTED)
        self.assertFalse(s1.verification.consensus)
        self.assertEqual(s2.status, ClaimStatus.SUPPORTED)
        self.assertEqual((s2.confidence.low, s2.confidence.high), (0.7, 0.85))
        self.assertEqual(s3.status, ClaimStatus.UNVERIFIABLE)
        self.assertIn(s1, result.review_queue())

    def test_partial_verifier_failure(self):
        self.auditor.set_verifier(FunctionVerifier(fails_on_quantum))
        result = self.auditor.audit(AUDITED_TEXT)

        s3 = result.sentence('s3')
        self.assertEqual(s3.status, ClaimStatus.UNVERIFIABLE)
        self.assertTrue(s3.confidence.is_unavailable)
        self.assertIn("ConnectionError: connection reset", s3.reasoning)
        self.assertEqual(result.sentence('s2').status, ClaimStatus.SUPPORTED)

    def test_verifier_outage(self):
        self.auditor.set_verifier(FunctionVerifier(always_down))
        with self.assertRaises(VerifierOutageError) as ctx:
            self.auditor.audit(AUDITED_TEXT)

        self.assertEqual(ctx.exception.failures, 3)
        self.assertIn("service unavailable", str(ctx.exception))
        self.assertEqual(len(self.auditor.history), 0)

    def test_progress_reporting(self):
        auditor = ForensicAuditor(FunctionVerifier(always_supported), config=AuditConfig(batch_size=2), sleep=no_sleep)
        auditor.load_texts({"financials.txt": FINANCIALS, "clinical.txt": CLINICAL})

        progress = []
        auditor.audit(AUDITED_TEXT, on_progress=lambda done, total: progress.append((done, total)))
        self.assertEqual(progress, [(2, 3), (3, 3)])

    def test_empty_index(self):
        self.auditor.clear_documents()
        with self.assertRaises(EmptyIndexError):
            self.auditor.audit(AUDITED_TEXT)

    def test_no_claims(self):
        with self.assertRaises(NoClaimsError):
            self.auditor.audit("Too short.")

    def test_history(self):
        self.auditor.audit(AUDITED_TEXT, label="first draft")
        self.auditor.audit(AUDITED_TEXT, save=False)

        self.assertEqual(len(self.auditor.history), 1)
        self.assertEqual(self.auditor.history.latest.label, "first draft")
        self.assertEqual(self.auditor.history.latest.result.trust_score, 63)

    def test_batch_audit(self):
        texts = [AUDITED_TEXT, "The NeuraScan trial enrolled patients across hospitals."]
        results = self.auditor.batch_audit(texts)

        self.assertEqual(len(results), 2)
        self.assertEqual(results[1].trust_score, 100)
        self.assertEqual(results[1].risk_level, RiskLevel.LOW)
        self.assertEqual(len(self.auditor.history), 2)

        first, second = [s.id for s in self.auditor.history]
        comparison = self.auditor.history.compare(first, second)
        self.assertEqual(comparison.trust_score_delta, 37)

    def test_verbose_output(self):
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            self.auditor.audit(AUDITED_TEXT, verbose=True)

        output = buffer.getvalue()
        self.assertIn("Auditing 3 claims against 2 documents", output)
        self.assertIn("[s1] contradicted", output)
        self.assertIn("Trust Score: 63", output)

    def test_to_dict(self):
        data = self.auditor.audit(AUDITED_TEXT).to_dict()

        self.assertEqual(data['trust_score'], 63)
        self.assertEqual(data['sentences'][0]['status'], 'contradicted')
        self.assertEqual(data['sentences'][0]['severity']['level'], 'critical')
        self.assertEqual(data['documents'][0]['paragraphs'][0]['linked_sentence_ids'], ['s1'])
        self.assertEqual(data['stats']['risk_level'], 'HIGH')


def run_tests():
    """Run all tests"""
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestForensicAuditor))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return result.wasSuccessful()


if __name__ == '__main__':
    success = run_tests()
    sys.exit(0 if success else 1)
