"""
Basic usage examples for the GHOSTCUT forensic auditor
"""

import sys
sys.path.append('..')

from ghostcut import AuditHistory, ForensicAuditor, FunctionVerifier, trace_root_cause


SOURCES = {
    "financials.txt": (
        "Nextera reported ARR of $47,300,000 in fiscal 2023. The company employs 150 people.\n\n"
        "Gross margin improved to 71% after the infrastructure migration."
    ),
    "clinical.txt": (
        "The NeuraScan trial enrolled patients across twelve hospitals. "
        "Results were published in a peer reviewed journal."
    ),
    "filing.pdf": "Series B round raised $85 million at a valuation.",
    "disclosure.txt": "Series B round raised $62 million at a valuation.",
}

AUDITED_TEXT = (
    "Nextera reported ARR of $120 million in 2023. "
    "The NeuraScan trial enrolled patients across hospitals. "
    "The Series B round raised $85 million at a high valuation. "
    "Quantum bicycles orbit Jupiter frequently."
)


def mock_semantic_model(claim, evidence):
    """
    Mock NLI / LLM-judge call for demonstration
    In real usage, this would send PromptTemplates.user_prompt(claim, evidence)
    to your model and return its JSON answer
    """
    if not evidence:
        verdict, reasoning = "unverifiable", "No evidence was retrieved for this claim."
    elif "$120 million" in claim:
        verdict, reasoning = "contradicted", "The source reports a different ARR figure."
    else:
        verdict, reasoning = "supported", "The retrieved evidence states the same facts."

    part = {
        "verdict": verdict,
        "confidence": {"low": 0.72, "high": 0.88, "explanation": "Mock model confidence"},
        "reasoning": reasoning,
    }
    return dict(part, nli=dict(part), judge=dict(part))


def build_auditor(with_verifier=True):
    verifier = FunctionVerifier(mock_semantic_model) if with_verifier else None
    auditor = ForensicAuditor(verifier=verifier)
    auditor.load_texts(SOURCES)
    return auditor


def example_1_basic_audit():
    """Example 1: Basic forensic audit"""
    print("=" * 70)
    print("Example 1: Basic Forensic Audit")
    print("=" * 70)

    auditor = build_auditor()
    result = auditor.audit(AUDITED_TEXT)

    for sentence in result.sentences:
        print(f"\n[{sentence.id}] {sentence.text}")
        print(f"  Status:     {sentence.status.value}")
        print(f"  Confidence: {sentence.confidence.low:.2f} - {sentence.confidence.high:.2f}")
        print(f"  Reasoning:  {sentence.reasoning}")
        if sentence.evidence_ids:
            print(f"  Evidence:   {', '.join(sentence.evidence_ids)}")

    print(f"\n{result}")
    print("\n" + "=" * 70)


def example_2_corrections():
    """Example 2: Source-locked corrections"""
    print("\n" + "=" * 70)
    print("Example 2: Source-Locked Corrections")
    print("=" * 70)

    result = build_auditor().audit(AUDITED_TEXT)

    for sentence in result.sentences:
        if sentence.correction is None:
            continue
        print(f"\nOriginal:  {sentence.text}")
        print(f"Corrected: {sentence.correction.text}")
        for citation in sentence.correction.citations:
            print(f"  Source: {citation.document_name} ({citation.paragraph_id})")
            print(f"  Excerpt: \"{citation.excerpt}\"")
        print(f"  {sentence.correction.source_locked_note}")

    print("\n" + "=" * 70)


def example_3_source_conflicts():
    """Example 3: Conflicts between source documents"""
    print("\n" + "=" * 70)
    print("Example 3: Source Conflicts")
    print("=" * 70)

    result = build_auditor().audit(AUDITED_TEXT)

    for sentence in result.sentences:
        if sentence.source_conflict is None:
            continue
        conflict = sentence.source_conflict
        print(f"\nClaim: {sentence.text}")
        print(f"  {conflict.explanation}")
        print(f"  A: {conflict.evidence_a.document_name}: \"{conflict.evidence_a.excerpt}\"")
        print(f"  B: {conflict.evidence_b.document_name}: \"{conflict.evidence_b.excerpt}\"")

    print("\n" + "=" * 70)


def example_4_multi_model_verification():
    """Example 4: Per-signal verdicts and consensus"""
    print("\n" + "=" * 70)
    print("Example 4: Multi-Model Verification")
    print("=" * 70)

    result = build_auditor().audit(AUDITED_TEXT)

    for sentence in result.sentences:
        verification = sentence.verification
        print(f"\n[{sentence.id}] consensus={verification.consensus}")
        for r in verification.results:
            print(f"  {r.model_name:25s} {r.verdict.value:15s} "
                  f"[{r.confidence.low:.2f}, {r.confidence.high:.2f}]")
        if verification.disagreement_note:
            print(f"  Note: {verification.disagreement_note}")

    print(f"\nClaims needing human review: {[s.id for s in result.review_queue()]}")
    print("\n" + "=" * 70)


def example_5_cascade_analysis():
    """Example 5: Claim dependency graph and cascades"""
    print("\n" + "=" * 70)
    print("Example 5: Cascade Analysis")
    print("=" * 70)

    text = (
        "Nextera reported ARR of $120 million in 2023. "
        "That revenue makes Nextera the largest vendor in its segment. "
        "Its market leadership attracted the Series B investors."
    )
    dependencies = {'s2': ['s1'], 's3': ['s2']}

    result = build_auditor(with_verifier=False).audit(text, dependencies=dependencies)
    graph = result.graph

    for node in graph.nodes:
        print(f"  {node.label} ({node.id}) {node.effective_status.value:13s} "
              f"depth={node.depth} pos=({node.x:.0f}, {node.y:.0f})")
    for edge in graph.edges:
        marker = "=>" if edge.is_cascade else "->"
        print(f"  {edge.source} {marker} {edge.target}")

    print(f"\nRoot causes: {graph.root_causes}")
    print(f"Trace for s3: {' -> '.join(trace_root_cause(graph, 's3'))}")
    print("\n" + "=" * 70)


def example_6_audit_history():
    """Example 6: Comparing audits"""
    print("\n" + "=" * 70)
    print("Example 6: Audit History")
    print("=" * 70)

    auditor = build_auditor()
    auditor.history = AuditHistory(max_size=5)

    first = auditor.audit(AUDITED_TEXT, label="Draft 1")
    revised = AUDITED_TEXT.replace("$120 million", "$47.3 million")
    second = auditor.audit(revised, label="Draft 2")

    previous_id, current_id = [s.id for s in auditor.history]
    comparison = auditor.history.compare(previous_id, current_id)

    print(f"\nDraft 1 trust score: {first.trust_score} ({first.risk_level.value})")
    print(f"Draft 2 trust score: {second.trust_score} ({second.risk_level.value})")
    print(f"Delta: {comparison.trust_score_delta:+d}")
    for status, delta in comparison.status_deltas.items():
        print(f"  {status.value:15s} {delta:+d}")

    print("\n" + "=" * 70)


if __name__ == "__main__":
    print("\n")
    print("=" * 70)
    print("          GHOSTCUT: Forensic Verification Examples")
    print("=" * 70)
    print()

    example_1_basic_audit()
    example_2_corrections()
    example_3_source_conflicts()
    example_4_multi_model_verification()
    example_5_cascade_analysis()
    example_6_audit_history()

    print("\nAll examples completed successfully!\n")
