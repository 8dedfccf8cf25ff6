"""
AI Service Exceptions

This module contains exception classes for the translation backend and the
batch runs driving it. Separated to avoid circular imports between
service.py, providers.py and the translation package.
"""


class TranslationError(Exception):
    """Translation service error with optional code and details."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}
        # Filled in by the orchestrator when the error stops a batch run
        self.batch_number = None
        self.total_batches = None

    def attach_batch(self, batch_number: int, total_batches: int):
        """Record which batch failed (1-based) and prefix the message with it."""
        self.batch_number = batch_number
        self.total_batches = total_batches
        self.details = {**self.details, "batch_number": batch_number, "total_batches": total_batches}
        detail = self.args[0] if self.args else ""
        self.args = (f"Translation failed at batch {batch_number} of {total_batches}: {detail}",)
        return self


class BackendError(TranslationError):
    """Non-success HTTP or network outcome from the translation backend."""

    def __init__(self, message: str, status_code: int = None, code: str = "backend_error", details: dict = None):
        super().__init__(message, code=code, details=details)
        self.status_code = status_code
        if status_code is not None:
            self.details.setdefault("status_code", status_code)


class TranslationFormatError(TranslationError):
    """Backend response could not be read as an id -> text JSON object."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, code="format_error", details=details)


class AbortError(Exception):
    """An in-flight request was abandoned because of a pause or cancel request.

    Never reported to the user as a failure.
    """

    def __init__(self, reason):
        super().__init__(f"Request aborted ({reason.value})")
        self.reason = reason
