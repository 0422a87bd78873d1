# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Submission handler: the admission pipeline in front of the record store.

A request goes through a fixed sequence of gates, each of which can end it:

1. Rate limit, keyed by the first ``X-Forwarded-For`` address (429).
2. Content type must be JSON (415).
3. Session check, unless auth enforcement is off (401).
4. JSON decode and structural parse (400).
5. Semantic validation (400, with every problem listed).
6. Normalization and a single insert into the store (500 on failure).

The handler is independent from the web framework: it takes a
:class:`SubmissionRequest` and returns a :class:`HandlerResponse`, which
the FastAPI layer renders as JSON.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from .auth import SessionValidator, get_header
from .errors import (
    MalformedPayload,
    RateLimited,
    StoreError,
    StoreFailure,
    SubmissionError,
    Unauthenticated,
    UnsupportedMediaType,
    ValidationFailed,
)
from .models import EmailSubmission, NewEmail, SubmitResponse
from .prometheus import IntakeMetrics
from .rate_limit import RateLimiter
from .store import EmailStore
from .validation import validate_submission

logger = logging.getLogger(__name__)

FORWARDED_FOR_HEADER = "X-Forwarded-For"
UNKNOWN_CLIENT = "unknown"


@dataclass
class SubmissionRequest:
    """Transport-independent view of an incoming request."""

    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        return get_header(self.headers, name)


@dataclass
class HandlerResponse:
    """Status code and JSON body produced by the handler."""

    status_code: int
    body: Dict[str, Any]


def resolve_client_id(request: SubmissionRequest) -> str:
    """Return the originating client address, or ``"unknown"``."""
    forwarded = request.header(FORWARDED_FOR_HEADER)
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return UNKNOWN_CLIENT


def parse_submission(raw: bytes) -> EmailSubmission:
    """Decode a JSON body into an :class:`EmailSubmission`.

    Decoding and the structural parse happen in one pass through pydantic's
    JSON parser, which bounds nesting depth and rejects strings that are
    not valid Unicode, such as lone surrogate escapes.

    Raises:
        MalformedPayload: If the body is not JSON, not an object, or has
            fields of the wrong type.
    """
    try:
        return EmailSubmission.model_validate_json(raw)
    except RecursionError:
        raise MalformedPayload("Invalid JSON in request body")
    except ValidationError as exc:
        errors = exc.errors()
        if any(err["type"] == "json_invalid" for err in errors):
            raise MalformedPayload("Invalid JSON in request body")
        if any(not err["loc"] for err in errors):
            raise MalformedPayload("Malformed payload", ["Request body must be a JSON object"])
        details = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in errors
        ]
        raise MalformedPayload("Malformed payload", details)


def normalize_submission(submission: EmailSubmission) -> NewEmail:
    recipients = submission.recipients
    if isinstance(recipients, str):
        recipients = [recipients]
    return NewEmail(
        subject=submission.subject,
        sender=submission.sender,
        recipients=list(recipients),
        cc=list(submission.cc or []),
        bcc=list(submission.bcc or []),
        body=submission.body,
    )


class SubmissionHandler:
    """Runs the admission pipeline and stores accepted submissions.

    Attributes:
        store: Record store receiving validated emails.
        rate_limiter: Limiter shared by every request of the process.
        enforce_auth: When False, the session check is skipped.
        session_validator: Predicate over request headers; required for
            requests to pass when ``enforce_auth`` is True.
        metrics: Optional Prometheus collector.
    """

    def __init__(
        self,
        store: EmailStore,
        rate_limiter: RateLimiter,
        enforce_auth: bool = True,
        session_validator: Optional[SessionValidator] = None,
        metrics: Optional[IntakeMetrics] = None,
    ):
        self.store = store
        self.rate_limiter = rate_limiter
        self.enforce_auth = enforce_auth
        self.session_validator = session_validator
        self.metrics = metrics
        if enforce_auth and session_validator is None:
            logger.warning("Auth is enforced but no session validator is configured: all submissions will be rejected")

    async def handle(self, request: SubmissionRequest) -> HandlerResponse:
        """Process one submission and build its response."""
        try:
            response = await self._process(request)
            outcome = "stored"
        except SubmissionError as exc:
            response = HandlerResponse(exc.status_code, exc.to_body())
            outcome = exc.kind.value
        except Exception as exc:
            logger.exception("Unexpected error while handling submission")
            response = HandlerResponse(
                500, {"error": "An unexpected error occurred", "details": str(exc) or type(exc).__name__}
            )
            outcome = "UnexpectedFailure"
        if self.metrics is not None:
            self.metrics.inc_outcome(outcome)
        return response

    async def is_authenticated(self, headers: Mapping[str, str]) -> bool:
        if self.session_validator is None:
            return False
        result = self.session_validator(headers)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    async def _process(self, request: SubmissionRequest) -> HandlerResponse:
        client_id = resolve_client_id(request)
        decision = self.rate_limiter.check(client_id)
        if self.metrics is not None:
            self.metrics.set_tracked_clients(len(self.rate_limiter))
        if not decision.allowed:
            if self.metrics is not None:
                self.metrics.inc_rate_limited()
            logger.warning("Rate limited submission from %s", client_id)
            raise RateLimited(decision.message or self.rate_limiter.denial_message)

        content_type = request.header("Content-Type")
        if not content_type or "application/json" not in content_type.lower():
            raise UnsupportedMediaType("Content-Type must be application/json")

        if self.enforce_auth and not await self.is_authenticated(request.headers):
            logger.info("Rejected unauthenticated submission from %s", client_id)
            raise Unauthenticated("Unauthorized: Authentication required")

        submission = parse_submission(request.body)

        result = validate_submission(submission)
        if not result.valid:
            logger.info("Validation failed for submission from %s: %s", client_id, result.errors)
            raise ValidationFailed("Validation failed", result.errors)

        email = normalize_submission(submission)
        try:
            email_id = await self.store.insert(email)
        except StoreError as exc:
            logger.exception("Error storing email")
            raise StoreFailure("Failed to store email data", str(exc)) from exc

        logger.info("Stored email %s from %s", email_id, client_id)
        return HandlerResponse(200, SubmitResponse(email_id=email_id).model_dump(by_alias=True))

