#!/usr/bin/env python3
"""
GHOSTCUT Quick Start Demo
=========================

A minimal example showing how to audit AI-generated text against source
documents with GHOSTCUT.
"""

import logging

from ghostcut import ForensicAuditor, FunctionVerifier, PromptTemplates


SOURCES = {
    "q3_report.txt": (
        "Nextera reported ARR of $47,300,000 in fiscal 2023. The company employs 150 people.\n\n"
        "The NeuraScan trial enrolled patients across twelve hospitals. "
        "Results were published in a peer reviewed journal."
    ),
}

AI_SUMMARY = (
    "Nextera reported ARR of $120 million in 2023. "
    "The NeuraScan trial enrolled patients across hospitals. "
    "Nextera plans to open an office on the Moon next year."
)


def mock_judge(claim, evidence):
    """
    Mock semantic verifier for demonstration purposes.
    Replace this with a call to your NLI model or LLM judge that sends
    PromptTemplates.SYSTEM_PROMPT and PromptTemplates.user_prompt(claim, evidence).
    """
    verdict = "supported" if evidence else "unverifiable"
    part = {
        "verdict": verdict,
        "confidence": {"low": 0.70, "high": 0.86},
        "reasoning": f"Mock judge: {len(evidence)} evidence chunk(s) retrieved.",
    }
    return dict(part, nli=dict(part), judge=dict(part))


def main():
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 70)
    print("GHOSTCUT Forensic Verification Engine - Quick Start Demo")
    print("=" * 70)
    print()

    print("Initializing auditor...")
    auditor = ForensicAuditor(verifier=FunctionVerifier(mock_judge))
    documents = auditor.load_texts(SOURCES)
    print(f"Loaded {len(documents)} document(s), "
          f"{sum(len(d.chunks) for d in documents)} chunk(s)\n")

    print("Prompt sent to the judge for the first claim:")
    print("-" * 70)
    print(PromptTemplates.user_prompt("Nextera reported ARR of $120 million in 2023.", [])[:300])
    print("-" * 70)
    print()

    result = auditor.audit(AI_SUMMARY, verbose=True)

    print()
    print("-" * 70)
    for sentence in result.sentences:
        bar = "#" * int(sentence.confidence.high * 30)
        print(f"[{sentence.id}] {sentence.status.value:13s} |{bar}")
        print(f"     {sentence.reasoning}")
        if sentence.correction is not None:
            print(f"     Suggested fix: {sentence.correction.text}")
        print()

    print("-" * 70)
    print("\nDemo completed successfully!")
    print("\nNext steps:")
    print("  1. Replace mock_judge() with your NLI model or LLM API")
    print("  2. See examples/basic_usage.py for more examples")
    print("  3. Run tests: python -m pytest tests")
    print()


if __name__ == "__main__":
    main()
