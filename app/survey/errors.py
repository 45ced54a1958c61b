"""
Health Survey Engine - Exceptions

Refusals (validation), illegal navigation (state) and external service
failures each get their own branch so callers can decide what to surface.
"""

from typing import Any, Dict, List, Optional


class SurveyError(Exception):
    """Base exception for the survey engine."""
    pass


# ===== Validation =====

class SurveyValidationError(SurveyError):
    """Request refused synchronously; engine state was not touched."""
    pass


class StepIncompleteError(SurveyValidationError):
    """Advance attempted while the current subcategory has unanswered questions."""

    def __init__(self, message: str, missing_question_ids: Optional[List[int]] = None):
        super().__init__(message)
        self.missing_question_ids = list(missing_question_ids or [])


class NothingToSubmitError(SurveyValidationError):
    """The formatted payload is empty."""
    pass


# ===== State =====

class SurveyStateError(SurveyError):
    """Operation not allowed in the current session state."""
    pass


class SurveyNotReadyError(SurveyStateError):
    """Navigator has no visible step to start on."""
    pass


class SurveyCompletedError(SurveyStateError):
    """Session already submitted; reset required."""
    pass


class SessionBusyError(SurveyStateError):
    """A submission is in flight; the session is frozen until it resolves."""
    pass


# ===== External service =====

class SurveyServiceError(SurveyError):
    """Base exception for survey API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class SurveyAuthError(SurveyServiceError):
    """Authentication/authorization error (401/403)."""
    pass


class SurveyNotFoundError(SurveyServiceError):
    """Resource not found (404)."""
    pass


class SurveyRejectedError(SurveyServiceError):
    """Payload rejected by the service (400/422)."""
    pass
