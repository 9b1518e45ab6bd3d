"""Error taxonomy of the assignment, submission and grading core.

All errors are DRF ``APIException`` subclasses: the API layer lets them
propagate and the configured exception handler renders ``detail`` together
with the stable ``code``.  ``kind`` is the same code, exposed for callers that
work with the services directly.
"""
from __future__ import annotations

from rest_framework import exceptions, status


class PortalError(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed."
    default_code = "error"

    @property
    def kind(self) -> str:
        return self.default_code

    @property
    def message(self) -> str:
        if isinstance(self.detail, str):
            return str(self.detail)
        return str(self.default_detail)


class ValidationError(PortalError):
    default_detail = "Invalid input."
    default_code = "validation_error"

    def __init__(self, detail=None, *, field_errors: dict | None = None):
        super().__init__(detail or self.default_detail)
        self.field_errors = field_errors or {}


class NotFound(PortalError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class Forbidden(PortalError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied."
    default_code = "forbidden"


class NotEnrolled(Forbidden):
    default_detail = "You are not enrolled in this course."
    default_code = "not_enrolled"


class SubmissionClosed(PortalError):
    default_detail = "Assignment is no longer accepting submissions."
    default_code = "submission_closed"


class InvalidGradeFormat(PortalError):
    default_detail = "Grade must be a valid number."
    default_code = "invalid_grade_format"


class InvalidGradeRange(PortalError):
    default_code = "invalid_grade_range"

    def __init__(self, point_value):
        self.point_value = point_value
        super().__init__(f"Grade must be between 0 and {point_value} points")
