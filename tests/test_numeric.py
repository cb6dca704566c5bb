"""
Unit tests for numeric and entity analysis
"""

import unittest
import sys
sys.path.append('..')

from ghostcut.models import Severity
from ghostcut.numeric import (
    detect_severity,
    extract_numbers,
    find_numeric_conflict,
    keyword_overlap,
    numeric_deviation,
    parse_quantity
)


class TestExtraction(unittest.TestCase):
    """Test cases for number extraction"""

    def test_currency_with_separators(self):
        numbers = extract_numbers("ARR was $47,300,000.")
        self.assertEqual(len(numbers), 1)
        self.assertEqual(numbers[0].raw, "$47,300,000")
        self.assertEqual(numbers[0].value, 47300000)

    def test_magnitude_suffixes(self):
        text = "Raised $120 million, then 3.5B, with 12K users and 2 thousand staff."
        values = [n.value for n in extract_numbers(text)]
        self.assertEqual(values, [120e6, 3.5e9, 12e3, 2e3])

    def test_percentages_keep_face_value(self):
        numbers = extract_numbers("Revenue grew 34% year over year.")
        self.assertEqual([(n.raw, n.value) for n in numbers], [("34%", 34.0)])

    def test_positions_slice_the_literal(self):
        text = "The company reported ARR of $120 million in 2023."
        for n in extract_numbers(text):
            self.assertEqual(text[n.start:n.end], n.raw)

    def test_ignores_identifiers_and_plain_words(self):
        self.assertEqual([n.value for n in extract_numbers("Q2 results, 2 more sites")], [2.0])

    def test_drops_non_positive(self):
        self.assertEqual(extract_numbers("Churn was 0 this year."), [])
        self.assertEqual(extract_numbers("No figures here."), [])

    def test_parse_quantity(self):
        self.assertEqual(parse_quantity("$1,250"), 1250.0)
        self.assertAlmostEqual(parse_quantity("47.3 million"), 47.3e6)
        self.assertEqual(parse_quantity("5m"), 5e6)


class TestDeviation(unittest.TestCase):

    def test_numeric_deviation(self):
        self.assertAlmostEqual(numeric_deviation(120e6, 47.3e6), 1.537, places=3)
        self.assertEqual(numeric_deviation(5, 0), 1.0)
        self.assertEqual(numeric_deviation(0, 0), 0.0)
        self.assertAlmostEqual(numeric_deviation(95, 100), 0.05)

    def test_find_numeric_conflict(self):
        claim = extract_numbers("reported ARR of $120 million")
        source = extract_numbers("ARR was $47,300,000")
        conflict = find_numeric_conflict(claim, source)

        self.assertIsNotNone(conflict)
        self.assertEqual(conflict.claimed.raw, "$120 million")
        self.assertEqual(conflict.source.raw, "$47,300,000")
        self.assertEqual(conflict.detail, 'Claimed "$120 million" vs source "$47,300,000" (deviation: 153.7%)')

    def test_within_tolerance(self):
        claim = extract_numbers("ARR of $47.5 million")
        source = extract_numbers("ARR was $47,300,000")
        self.assertIsNone(find_numeric_conflict(claim, source, tolerance=0.05))

    def test_first_conflict_wins(self):
        """Claim numbers are the outer loop"""
        claim = extract_numbers("150 staff and 9 offices")
        source = extract_numbers("10 offices and 150 staff")
        conflict = find_numeric_conflict(claim, source)
        self.assertEqual((conflict.claimed.raw, conflict.source.raw), ("150", "10"))

    def test_empty_inputs(self):
        self.assertIsNone(find_numeric_conflict([], extract_numbers("42 units")))
        self.assertIsNone(find_numeric_conflict(extract_numbers("42 units"), []))


class TestEntityAnalysis(unittest.TestCase):

    def test_keyword_overlap(self):
        self.assertEqual(keyword_overlap("Nextera reported ARR growth", "Nextera reported strong ARR"), 0.75)
        self.assertEqual(keyword_overlap("an at of", "anything"), 0.0)
        # "the" and "with" are not counted
        self.assertEqual(keyword_overlap("The trial ended with results", "Trial results"), 2 / 3)

    def test_detect_severity(self):
        self.assertEqual(detect_severity("The FDA approved the drug."), Severity.CRITICAL)
        self.assertEqual(detect_severity("Revenue reached $5 million."), Severity.CRITICAL)
        self.assertEqual(detect_severity("The contract was signed in court."), Severity.MODERATE)
        self.assertEqual(detect_severity("The office has a blue door."), Severity.MINOR)


def run_tests():
    """Run all tests"""
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestExtraction))
    suite.addTests(loader.loadTestsFromTestCase(TestDeviation))
    suite.addTests(loader.loadTestsFromTestCase(TestEntityAnalysis))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return result.wasSuccessful()


if __name__ == '__main__':
    success = run_tests()
    sys.exit(0 if success else 1)
