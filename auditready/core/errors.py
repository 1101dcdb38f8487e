from __future__ import annotations


class AuditReadyError(Exception):
    """Base error for the audit readiness engine."""


class DatastoreError(AuditReadyError):
    """Read or write failure against the compliance datastore."""


class RunLedgerError(DatastoreError):
    """Agent run record could not be opened or closed."""


class CompletionServiceError(AuditReadyError):
    """Completion service call failed."""

    retryable = False


class CompletionTimeoutError(CompletionServiceError):
    """Completion service did not answer within the configured timeout."""

    retryable = True


class CompletionTransportError(CompletionServiceError):
    """Network or upstream availability failure (connection, 5xx, rate limit)."""

    retryable = True


class CompletionRejectedError(CompletionServiceError):
    """Completion service refused the request (auth, quota, bad request)."""


class ProviderConfigError(CompletionServiceError):
    """Missing or invalid provider configuration."""


class InvalidPeriodError(ValueError, AuditReadyError):
    """Period key is not in YYYY-MM form."""


class UnknownAgentError(ValueError, AuditReadyError):
    """Agent name is not one of the registered pipelines."""


class SuggestionReviewError(AuditReadyError):
    """Suggestion is missing or has already been reviewed."""
