"""Tests for the submission handler gate sequence."""

import json

import pytest

from mail_intake.auth import api_token_validator
from mail_intake.errors import MalformedPayload, StoreError
from mail_intake.handler import (
    SubmissionHandler,
    SubmissionRequest,
    normalize_submission,
    parse_submission,
    resolve_client_id,
)
from mail_intake.models import EmailSubmission
from mail_intake.prometheus import IntakeMetrics
from mail_intake.rate_limit import RateLimiter

VALID_PAYLOAD = {
    "subject": "Hi",
    "sender": "a@b.com",
    "recipients": ["c@d.com"],
    "body": "hello",
}
JSON_HEADERS = {"content-type": "application/json", "x-forwarded-for": "10.0.0.1"}


class DummyStore:
    def __init__(self, fail_with=None):
        self.inserted = []
        self.fail_with = fail_with

    async def insert(self, email):
        if self.fail_with is not None:
            raise self.fail_with
        self.inserted.append(email)
        return f"id-{len(self.inserted)}"


def make_request(payload=VALID_PAYLOAD, headers=None):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return SubmissionRequest(headers=dict(headers or JSON_HEADERS), body=body)


@pytest.fixture
def store():
    return DummyStore()


@pytest.fixture
def handler(store):
    return SubmissionHandler(store, RateLimiter(), enforce_auth=False)


@pytest.mark.asyncio
async def test_valid_submission_is_stored(handler, store):
    response = await handler.handle(make_request())
    assert response.status_code == 200
    assert response.body == {
        "success": True,
        "message": "Email data stored successfully",
        "emailId": "id-1",
    }
    assert len(store.inserted) == 1
    stored = store.inserted[0]
    assert stored.recipients == ["c@d.com"]
    assert stored.cc == []
    assert stored.bcc == []


@pytest.mark.asyncio
async def test_invalid_sender_returns_400_with_details(handler, store):
    response = await handler.handle(make_request({**VALID_PAYLOAD, "sender": "not-an-email"}))
    assert response.status_code == 400
    assert response.body["error"] == "Validation failed"
    assert "Sender email format is invalid" in response.body["details"]
    assert store.inserted == []


@pytest.mark.asyncio
async def test_eleventh_request_is_rate_limited(handler, store):
    statuses = [(await handler.handle(make_request())).status_code for _ in range(11)]
    assert statuses[:10] == [200] * 10
    assert statuses[10] == 429
    assert len(store.inserted) == 10


@pytest.mark.asyncio
async def test_rate_limit_runs_before_other_gates(store):
    handler = SubmissionHandler(store, RateLimiter(limit=1), enforce_auth=False)
    first = await handler.handle(make_request(b"not json", headers={"content-type": "text/plain", "x-forwarded-for": "10.0.0.1"}))
    assert first.status_code == 415

    second = await handler.handle(make_request())
    assert second.status_code == 429
    assert second.body == {"error": "Rate limit exceeded. Maximum 1 requests per minute."}


@pytest.mark.asyncio
async def test_missing_forwarded_header_shares_unknown_bucket(store):
    handler = SubmissionHandler(store, RateLimiter(limit=1), enforce_auth=False)
    headers = {"content-type": "application/json"}
    assert (await handler.handle(make_request(headers=headers))).status_code == 200
    assert (await handler.handle(make_request(headers=headers))).status_code == 429
    assert handler.rate_limiter.get_entry("unknown").count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("content_type", [None, "text/plain", "application/x-www-form-urlencoded"])
async def test_wrong_content_type_returns_415(handler, content_type):
    headers = {"x-forwarded-for": "10.0.0.1"}
    if content_type:
        headers["content-type"] = content_type
    response = await handler.handle(make_request(headers=headers))
    assert response.status_code == 415
    assert response.body == {"error": "Content-Type must be application/json"}


@pytest.mark.asyncio
async def test_content_type_with_charset_is_accepted(handler):
    headers = {"Content-Type": "application/json; charset=utf-8"}
    assert (await handler.handle(make_request(headers=headers))).status_code == 200


@pytest.mark.asyncio
async def test_enforced_auth_rejects_missing_session(store):
    handler = SubmissionHandler(store, RateLimiter(), enforce_auth=True,
                                session_validator=api_token_validator("secret"))
    response = await handler.handle(make_request())
    assert response.status_code == 401
    assert response.body == {"error": "Unauthorized: Authentication required"}
    assert store.inserted == []


@pytest.mark.asyncio
async def test_enforced_auth_accepts_valid_session(store):
    handler = SubmissionHandler(store, RateLimiter(), enforce_auth=True,
                                session_validator=api_token_validator("secret"))
    response = await handler.handle(make_request(headers={**JSON_HEADERS, "X-API-Token": "secret"}))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_enforced_auth_without_validator_rejects_everything(store):
    handler = SubmissionHandler(store, RateLimiter(), enforce_auth=True)
    assert (await handler.handle(make_request())).status_code == 401


@pytest.mark.asyncio
async def test_async_session_validator_is_awaited(store):
    seen = []

    async def validator(headers):
        seen.append(headers.get("cookie"))
        return headers.get("cookie") == "session=ok"

    handler = SubmissionHandler(store, RateLimiter(), enforce_auth=True, session_validator=validator)
    ok = await handler.handle(make_request(headers={**JSON_HEADERS, "cookie": "session=ok"}))
    denied = await handler.handle(make_request(headers={**JSON_HEADERS, "cookie": "session=no"}))
    assert ok.status_code == 200
    assert denied.status_code == 401
    assert seen == ["session=ok", "session=no"]


@pytest.mark.asyncio
async def test_disabled_auth_ignores_validator(store):
    handler = SubmissionHandler(store, RateLimiter(), enforce_auth=False,
                                session_validator=lambda headers: False)
    assert (await handler.handle(make_request())).status_code == 200


@pytest.mark.asyncio
async def test_invalid_json_returns_400(handler):
    response = await handler.handle(make_request(b"{not json"))
    assert response.status_code == 400
    assert response.body == {"error": "Invalid JSON in request body"}


@pytest.mark.asyncio
async def test_non_object_payload_is_malformed(handler):
    response = await handler.handle(make_request([VALID_PAYLOAD]))
    assert response.status_code == 400
    assert response.body == {"error": "Malformed payload", "details": ["Request body must be a JSON object"]}


@pytest.mark.asyncio
async def test_deeply_nested_body_returns_400(handler, store):
    response = await handler.handle(make_request(b"[" * 100000 + b"]" * 100000))
    assert response.status_code == 400
    assert response.body == {"error": "Invalid JSON in request body"}
    assert store.inserted == []


@pytest.mark.asyncio
@pytest.mark.parametrize("field_name, value", [
    ("recipients", ["\ud800"]),
    ("cc", ["\udc00@b.com"]),
    ("subject", "Hi \ud800"),
    ("body", "hello \udfff"),
])
async def test_lone_surrogate_escape_returns_400(handler, store, field_name, value):
    response = await handler.handle(make_request({**VALID_PAYLOAD, field_name: value}))
    assert response.status_code == 400
    assert response.body == {"error": "Invalid JSON in request body"}
    assert store.inserted == []


@pytest.mark.asyncio
async def test_invalid_utf8_body_returns_400(handler):
    response = await handler.handle(make_request(b'{"subject": "\xff"}'))
    assert response.status_code == 400
    assert response.body == {"error": "Invalid JSON in request body"}


@pytest.mark.asyncio
async def test_wrong_field_types_are_malformed(handler, store):
    response = await handler.handle(make_request({**VALID_PAYLOAD, "subject": 42, "cc": "x@y.com"}))
    assert response.status_code == 400
    assert response.body["error"] == "Malformed payload"
    fields = {detail.split(".")[0].split(":")[0] for detail in response.body["details"]}
    assert fields == {"subject", "cc"}
    assert store.inserted == []


@pytest.mark.asyncio
async def test_missing_fields_are_validation_errors_not_malformed(handler):
    response = await handler.handle(make_request({"subject": "Hi"}))
    assert response.status_code == 400
    assert response.body == {
        "error": "Validation failed",
        "details": [
            "Sender is required",
            "At least one recipient is required",
            "Email body is required",
        ],
    }


@pytest.mark.asyncio
async def test_store_failure_returns_500_with_detail(caplog):
    store = DummyStore(fail_with=StoreError("disk I/O error"))
    handler = SubmissionHandler(store, RateLimiter(), enforce_auth=False)
    response = await handler.handle(make_request())
    assert response.status_code == 500
    assert response.body == {"error": "Failed to store email data", "details": "disk I/O error"}
    errors = [r for r in caplog.records if r.levelname == "ERROR"]
    assert errors and errors[0].exc_info is not None


@pytest.mark.asyncio
async def test_unexpected_failure_returns_500():
    store = DummyStore(fail_with=RuntimeError("boom"))
    handler = SubmissionHandler(store, RateLimiter(), enforce_auth=False)
    response = await handler.handle(make_request())
    assert response.status_code == 500
    assert response.body == {"error": "An unexpected error occurred", "details": "boom"}


@pytest.mark.asyncio
async def test_metrics_record_outcomes(store):
    metrics = IntakeMetrics()
    handler = SubmissionHandler(store, RateLimiter(limit=1), enforce_auth=False, metrics=metrics)
    await handler.handle(make_request())
    await handler.handle(make_request())

    output = metrics.generate_latest()
    assert b'mi_submissions_total{outcome="stored"} 1.0' in output
    assert b'mi_submissions_total{outcome="RateLimited"} 1.0' in output
    assert b"mi_rate_limited_total 1.0" in output
    assert b"mi_tracked_clients 1.0" in output


def test_resolve_client_id_uses_first_forwarded_address():
    request = SubmissionRequest(headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
    assert resolve_client_id(request) == "203.0.113.7"
    assert resolve_client_id(SubmissionRequest()) == "unknown"
    assert resolve_client_id(SubmissionRequest(headers={"x-forwarded-for": " "})) == "unknown"


def test_parse_submission_treats_null_as_absent():
    submission = parse_submission(b'{"subject": null, "cc": null, "extra": 1}')
    assert submission.subject is None
    assert submission.cc is None


def test_parse_submission_rejects_non_string_recipient_items():
    with pytest.raises(MalformedPayload):
        parse_submission(json.dumps({**VALID_PAYLOAD, "recipients": ["a@b.com", 5]}).encode())


def test_normalize_wraps_bare_recipient_and_defaults_copies():
    submission = EmailSubmission(subject="s", sender="a@b.com", recipients="c@d.com", body="b")
    email = normalize_submission(submission)
    assert email.recipients == ["c@d.com"]
    assert email.cc == []
    assert email.bcc == []
