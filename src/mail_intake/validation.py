# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Semantic validation of email submissions.

Validation runs in a fixed order. Presence of the required fields is
checked first; when any is missing the remaining checks are skipped, since
they assume the fields exist. Otherwise address formats and content
lengths are checked and every problem is reported in a single list, so a
caller can fix all of them in one round trip.

Example:
    Validating a parsed submission::

        result = validate_submission(EmailSubmission(**payload))
        if not result.valid:
            print(result.errors)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .errors import ErrorKind
from .models import EmailSubmission

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

MAX_SUBJECT_LENGTH = 200
MAX_BODY_LENGTH = 500_000


@dataclass
class ValidationIssue:
    """A single problem found in a submission."""

    kind: ErrorKind
    message: str


@dataclass
class ValidationResult:
    """Outcome of :func:`validate_submission`.

    Attributes:
        valid: True when no problem was found.
        issues: Problems found, in check order.
    """

    valid: bool
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> List[str]:
        """User-facing messages, in check order."""
        return [issue.message for issue in self.issues]


def is_valid_email(address: str) -> bool:
    """Return True if ``address`` has the shape ``local@domain.tld``."""
    return EMAIL_PATTERN.fullmatch(address) is not None


def _check_address_list(label: str, addresses: Optional[Sequence[str]], issues: List[ValidationIssue]) -> None:
    if not isinstance(addresses, (list, tuple)) or not addresses:
        return
    invalid = [a for a in addresses if not is_valid_email(a)]
    if invalid:
        issues.append(ValidationIssue(
            ErrorKind.INVALID_FORMAT,
            f"Invalid {label} email format: {', '.join(invalid)}",
        ))


def validate_submission(submission: EmailSubmission) -> ValidationResult:
    """Validate a submission against presence, format and length rules.

    Args:
        submission: The parsed candidate email.

    Returns:
        A :class:`ValidationResult`. Presence errors are returned alone;
        format and length errors are accumulated otherwise.
    """
    issues: List[ValidationIssue] = []

    def missing(message: str) -> None:
        issues.append(ValidationIssue(ErrorKind.MISSING_FIELD, message))

    if not submission.subject:
        missing("Subject is required")
    if not submission.sender:
        missing("Sender is required")
    if not isinstance(submission.recipients, list) or not submission.recipients:
        missing("At least one recipient is required")
    if not submission.body:
        missing("Email body is required")

    if issues:
        return ValidationResult(valid=False, issues=issues)

    if not is_valid_email(submission.sender):
        issues.append(ValidationIssue(ErrorKind.INVALID_FORMAT, "Sender email format is invalid"))

    _check_address_list("recipient", submission.recipients, issues)
    _check_address_list("CC", submission.cc, issues)
    _check_address_list("BCC", submission.bcc, issues)

    if len(submission.subject) > MAX_SUBJECT_LENGTH:
        issues.append(ValidationIssue(
            ErrorKind.TOO_LONG,
            f"Subject exceeds maximum length of {MAX_SUBJECT_LENGTH} characters",
        ))
    if len(submission.body) > MAX_BODY_LENGTH:
        issues.append(ValidationIssue(
            ErrorKind.TOO_LONG,
            f"Email body exceeds maximum length of {MAX_BODY_LENGTH} characters",
        ))

    return ValidationResult(valid=not issues, issues=issues)
