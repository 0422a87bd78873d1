"""Python client for submitting emails to a mail-intake server.

Usage in REPL:
    >>> from mail_intake.client import IntakeClient
    >>> intake = IntakeClient("http://localhost:8000", token="secret")
    >>> intake.health()
    True
    >>> intake.submit(subject="Hi", sender="a@b.com", recipients=["c@d.com"], body="hello")
    SubmitResult(ok=True, status_code=200, email_id='...')

Blank address entries are dropped before sending, the same way the web
form filters its empty input rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import requests

from .auth import API_TOKEN_HEADER_NAME


@dataclass
class SubmitResult:
    """Outcome of a submission as reported by the server."""

    ok: bool
    status_code: int
    email_id: Optional[str] = None
    error: Optional[str] = None
    details: List[str] = field(default_factory=list)

    @classmethod
    def from_response(cls, status_code: int, data: Dict[str, Any]) -> "SubmitResult":
        """Create a SubmitResult from an API response body."""
        details = data.get("details") or []
        if isinstance(details, str):
            details = [details]
        return cls(
            ok=status_code == 200 and bool(data.get("success")),
            status_code=status_code,
            email_id=data.get("emailId"),
            error=data.get("error"),
            details=list(details),
        )

    def __repr__(self) -> str:
        if self.ok:
            return f"SubmitResult(ok=True, status_code={self.status_code}, email_id='{self.email_id}')"
        return f"SubmitResult(ok=False, status_code={self.status_code}, error='{self.error}')"


def clean_addresses(addresses: Optional[Iterable[str]]) -> List[str]:
    """Strip addresses and drop the blank ones."""
    if not addresses:
        return []
    return [a.strip() for a in addresses if a and a.strip()]


class IntakeClient:
    """Client for a mail-intake server.

    Attributes:
        url: Base URL of the server.
        token: API token sent in the ``X-API-Token`` header.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        url: str = "http://localhost:8000",
        token: Optional[str] = None,
        timeout: float = 30,
    ):
        self.url = url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        """Build request headers."""
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers[API_TOKEN_HEADER_NAME] = self.token
        return headers

    def submit(
        self,
        subject: str,
        sender: str,
        recipients: Iterable[str],
        body: str,
        cc: Optional[Iterable[str]] = None,
        bcc: Optional[Iterable[str]] = None,
    ) -> SubmitResult:
        """Submit an email record.

        Rejections are returned as a failed :class:`SubmitResult`; only
        transport errors raise.

        Raises:
            requests.RequestException: If the server cannot be reached.
        """
        payload = {
            "subject": subject,
            "sender": sender,
            "recipients": clean_addresses(recipients),
            "cc": clean_addresses(cc),
            "bcc": clean_addresses(bcc),
            "body": body,
        }
        resp = requests.post(
            f"{self.url}/api/store-email",
            headers=self._headers(),
            json=payload,
            timeout=self.timeout,
        )
        try:
            data = resp.json()
        except ValueError:
            data = {"error": resp.text or f"HTTP {resp.status_code}"}
        return SubmitResult.from_response(resp.status_code, data)

    def health(self) -> bool:
        """Check if the server is healthy."""
        try:
            resp = requests.get(f"{self.url}/health", timeout=self.timeout)
            return resp.status_code == 200 and resp.json().get("status") == "ok"
        except (requests.RequestException, ValueError):
            return False

    def __repr__(self) -> str:
        return f"<IntakeClient '{self.url}'>"
