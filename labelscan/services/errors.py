"""
Failure taxonomy shared by the scan pipeline and its collaborators.

Transient external failures and malformed enrichment payloads are recoverable:
callers degrade to the rule-based result or to a local-only write. Only an OCR
failure ends a scan without persisting anything.
"""

from typing import Optional


# =============================================================================
# EXTERNAL SERVICES
# =============================================================================


class TransientExternalFailure(Exception):
    """An OCR, enrichment or remote-store call failed for a retryable reason."""

    pass


class ServiceUnavailableError(TransientExternalFailure):
    """External service is temporarily unavailable (network, timeout, 5xx)."""

    pass


class RateLimitError(TransientExternalFailure):
    """Rate limit exceeded."""

    pass


class RemoteStoreError(TransientExternalFailure):
    """The remote scan store rejected or failed a request."""

    pass


class MalformedResponseError(ValueError):
    """Enrichment payload was not valid JSON or did not match the expected shape."""

    def __init__(self, message: str, raw_response: Optional[str] = None):
        super().__init__(message)
        self.raw_response = raw_response


class OcrError(ValueError):
    """OCR request was rejected (bad image, bad key, Vision error object)."""

    pass


# =============================================================================
# LOCAL STATE
# =============================================================================


class LocalStorageError(Exception):
    """Reading or writing the local durable cache failed."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


# =============================================================================
# PIPELINE
# =============================================================================


class PipelineBusyError(RuntimeError):
    """A scan was triggered while another one is still in flight."""

    pass


class InvalidStateError(RuntimeError):
    """A pipeline transition was requested from a state that does not allow it."""

    pass


class ScanFailedError(Exception):
    """
    A scan ended in the Error state: no text found, OCR failed, the image
    could not be read, or matching failed unexpectedly. Nothing was persisted.
    """

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason
