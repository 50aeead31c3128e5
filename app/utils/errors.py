"""Custom exception hierarchy for the Loguvo credits API."""

from __future__ import annotations


class AppError(Exception):
    """Base application error with a stable machine-readable code."""

    def __init__(self, message: str, code: str, status_code: int = 400) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        """Serialize the error in the API standard shape."""
        return {"error": self.message, "code": self.code}


class InsufficientCreditsError(AppError):
    """Raised when a debit would take a balance below zero."""

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            message=f"Not enough credits: need {required}, have {available}",
            code="INSUFFICIENT_CREDITS",
            status_code=402,
        )


class AccountNotFoundError(AppError):
    """Raised when a ledger operation targets an unknown account.

    The account reference is kept on the instance for logs; the client only
    sees a generic message.
    """

    def __init__(self, account_ref: str) -> None:
        self.account_ref = account_ref
        super().__init__(
            message="Account not found",
            code="ACCOUNT_NOT_FOUND",
            status_code=404,
        )


class ExternalServiceError(AppError):
    """Raised when the logo generator fails or times out."""

    def __init__(self, reason: str = "Logo generation failed, your credit was refunded") -> None:
        super().__init__(message=reason, code="GENERATION_FAILED", status_code=502)


class MalformedWebhookPayloadError(AppError):
    """Raised for provider notifications that cannot be trusted."""

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        super().__init__(
            message=f"Malformed {provider} webhook: {reason}",
            code="MALFORMED_WEBHOOK",
            status_code=422,
        )


class ConflictError(AppError):
    """Raised on duplicate/conflicting operations."""

    def __init__(self, reason: str, code: str = "CONFLICT") -> None:
        super().__init__(message=reason, code=code, status_code=409)


class UnauthorizedError(AppError):
    """Raised when the caller is not authenticated."""

    def __init__(self, reason: str = "Unauthorized") -> None:
        super().__init__(message=reason, code="UNAUTHORIZED", status_code=401)


class ForbiddenError(AppError):
    """Raised when the user lacks permission for the action."""

    def __init__(self, reason: str = "You don't have permission") -> None:
        super().__init__(message=reason, code="FORBIDDEN", status_code=403)


class WebhookNotConfiguredError(AppError):
    """Raised when a production webhook has no signing secret.

    Answered with 503 so the provider keeps retrying until it is configured.
    """

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(
            message=f"{provider} webhooks are not configured",
            code="WEBHOOK_NOT_CONFIGURED",
            status_code=503,
        )


class InvalidInputError(AppError):
    """Raised for request payload or parameter validation issues."""

    def __init__(self, reason: str) -> None:
        super().__init__(message=reason, code="INVALID_INPUT", status_code=422)
