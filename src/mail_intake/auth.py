# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Session validation hooks for the intake endpoint.

The handler does not know how sessions work; it calls a *session validator*,
any callable that receives the request headers and returns a bool (or an
awaitable resolving to one). :func:`api_token_validator` builds the default
validator, which accepts a shared secret in the ``X-API-Token`` header or
as an ``Authorization: Bearer`` token.
"""

from __future__ import annotations

import secrets
from typing import Awaitable, Callable, Mapping, Optional, Union

API_TOKEN_HEADER_NAME = "X-API-Token"

SessionValidator = Callable[[Mapping[str, str]], Union[bool, Awaitable[bool]]]


def get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def extract_token(headers: Mapping[str, str]) -> Optional[str]:
    """Return the API token carried by ``headers``, if any."""
    token = get_header(headers, API_TOKEN_HEADER_NAME)
    if token:
        return token
    authorization = get_header(headers, "Authorization")
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    return None


def api_token_validator(api_token: str) -> SessionValidator:
    """Build a validator accepting requests that carry ``api_token``.

    Raises:
        ValueError: If ``api_token`` is empty.
    """
    if not api_token:
        raise ValueError("api_token must not be empty")
    expected = api_token.encode("utf-8")

    def validate(headers: Mapping[str, str]) -> bool:
        provided = extract_token(headers)
        if provided is None:
            return False
        return secrets.compare_digest(provided.encode("utf-8"), expected)

    return validate
