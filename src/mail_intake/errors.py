# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Error taxonomy for rejected submissions.

Every gate of the submission pipeline fails by raising one of the
:class:`SubmissionError` subclasses below. The handler converts them to a
response in a single place, so each kind maps to exactly one HTTP status.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Union


class ErrorKind(str, Enum):
    """Kinds of failure a submission can end with."""

    MISSING_FIELD = "MissingField"
    INVALID_FORMAT = "InvalidFormat"
    TOO_LONG = "TooLong"
    VALIDATION_FAILED = "ValidationFailed"
    RATE_LIMITED = "RateLimited"
    UNSUPPORTED_MEDIA_TYPE = "UnsupportedMediaType"
    UNAUTHENTICATED = "Unauthenticated"
    MALFORMED_PAYLOAD = "MalformedPayload"
    STORE_FAILURE = "StoreFailure"
    UNEXPECTED_FAILURE = "UnexpectedFailure"


class SubmissionError(Exception):
    """Base class for terminal submission failures.

    Attributes:
        kind: The :class:`ErrorKind` of the failure.
        status_code: HTTP status returned to the caller.
        message: User-facing error message.
        details: Optional detail list, or a single detail string.
    """

    kind = ErrorKind.UNEXPECTED_FAILURE
    status_code = 500

    def __init__(self, message: str, details: Optional[Union[List[str], str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_body(self) -> dict:
        body: dict = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class RateLimited(SubmissionError):
    kind = ErrorKind.RATE_LIMITED
    status_code = 429


class UnsupportedMediaType(SubmissionError):
    kind = ErrorKind.UNSUPPORTED_MEDIA_TYPE
    status_code = 415


class Unauthenticated(SubmissionError):
    kind = ErrorKind.UNAUTHENTICATED
    status_code = 401


class MalformedPayload(SubmissionError):
    kind = ErrorKind.MALFORMED_PAYLOAD
    status_code = 400


class ValidationFailed(SubmissionError):
    kind = ErrorKind.VALIDATION_FAILED
    status_code = 400


class StoreFailure(SubmissionError):
    kind = ErrorKind.STORE_FAILURE
    status_code = 500


class StoreError(Exception):
    """Raised by a record store when an insert or query fails.

    The message is surfaced to the caller as the failure detail, so store
    adapters must not put credentials or connection strings in it.
    """
