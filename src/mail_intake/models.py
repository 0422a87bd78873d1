# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Pydantic models for the mail intake service.

This module defines the data models used throughout the application for
parsing, serialization, and type safety.

Models:
    - EmailSubmission: Structural shape of an incoming payload
    - NewEmail: Normalized submission handed to the record store
    - EmailRecord: Stored email as returned by the record store
    - SubmitResponse: Success body of the intake endpoint
    - ErrorResponse: Error body of the intake endpoint
"""

from __future__ import annotations

from typing import Annotated, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class EmailSubmission(BaseModel):
    """Candidate email record as received from a client.

    Every field is optional at this level: absence is reported by the
    validator as a presence error, not as a malformed payload. When a field
    is present it must have the right JSON type, strings are never coerced
    from numbers or booleans. Unknown keys are ignored.

    Attributes:
        subject: Subject line.
        sender: Sender address.
        recipients: Recipient addresses, or a single bare address.
        cc: Carbon-copy addresses.
        bcc: Blind carbon-copy addresses.
        body: Message body.
    """

    model_config = ConfigDict(extra="ignore")

    subject: Annotated[
        Optional[StrictStr],
        Field(default=None, description="Subject line (max 200 characters)")
    ]
    sender: Annotated[
        Optional[StrictStr],
        Field(default=None, description="Sender email address")
    ]
    recipients: Annotated[
        Optional[Union[List[StrictStr], StrictStr]],
        Field(default=None, description="Recipient email addresses")
    ]
    cc: Annotated[
        Optional[List[StrictStr]],
        Field(default=None, description="CC email addresses")
    ]
    bcc: Annotated[
        Optional[List[StrictStr]],
        Field(default=None, description="BCC email addresses")
    ]
    body: Annotated[
        Optional[StrictStr],
        Field(default=None, description="Email body (max 500000 characters)")
    ]


class NewEmail(BaseModel):
    """A validated submission, normalized for insertion into the store."""

    subject: str
    sender: str
    recipients: List[str]
    cc: List[str] = Field(default_factory=list)
    bcc: List[str] = Field(default_factory=list)
    body: str


class EmailRecord(NewEmail):
    """Email stored by the record store, with server-assigned fields."""

    id: str
    created_at: Optional[str] = None


class SubmitResponse(BaseModel):
    """Body returned when a submission has been stored."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Email data stored successfully"
    email_id: str = Field(alias="emailId")


class ErrorResponse(BaseModel):
    """Body returned for any rejected submission."""

    error: str
    details: Optional[Union[List[str], str]] = None
