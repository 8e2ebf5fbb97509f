from typing import Optional


class AssessmentError(Exception):
    """Base error for the eligibility service. `code` is the machine-readable kind."""

    status_code = 500
    default_code = "assessment_failed"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ValidationError(AssessmentError):
    status_code = 400
    default_code = "invalid_input"


class AuthError(AssessmentError):
    status_code = 401
    default_code = "invalid_token"


class ProviderError(AssessmentError):
    status_code = 502
    default_code = "unavailable"

    def __init__(self, message: str, code: Optional[str] = None, upstream_status: Optional[int] = None):
        super().__init__(message, code)
        self.upstream_status = upstream_status
        if self.code == "rate_limited":
            self.status_code = 429


class ParseError(AssessmentError):
    default_code = "unparseable_response"


class PersistenceError(AssessmentError):
    default_code = "storage_failed"


class NotFoundError(AssessmentError):
    status_code = 404
    default_code = "not_found"
