"""
Exception hierarchy for GHOSTCUT audits
"""


class GhostcutError(Exception):
    """Base class for all audit errors"""


class AuditPreconditionError(GhostcutError):
    """A precondition for the whole audit failed; nothing was verified"""


class EmptyIndexError(AuditPreconditionError):
    """The vector index holds no chunks, so retrieval is impossible"""

    def __init__(self, message: str = None):
        super().__init__(
            message or
            "Retrieval-augmented verification failed: the vector index is empty. "
            "No document chunks were indexed. Upload source documents and re-run the audit."
        )


class NoClaimsError(AuditPreconditionError):
    """No verifiable claims could be extracted from the audited text"""

    def __init__(self, message: str = None):
        super().__init__(
            message or
            "No claims could be extracted from the audited text. "
            "Provide at least one complete sentence longer than 15 characters."
        )


class VerifierError(GhostcutError):
    """The semantic verifier could not produce a verdict for one claim"""


class MalformedVerdictError(VerifierError):
    """The semantic verifier answered, but the payload is unusable"""


class VerifierOutageError(GhostcutError):
    """The semantic verifier failed for every claim of an audit"""

    def __init__(self, failures: int, last_error: str = ""):
        self.failures = failures
        self.last_error = last_error
        detail = f" Last error: {last_error}" if last_error else ""
        super().__init__(
            f"Verification model unavailable: all {failures} model calls failed. "
            f"No results were fabricated. Please try again later.{detail}"
        )


class DocumentReadError(GhostcutError):
    """A source file could not be turned into plain text"""
