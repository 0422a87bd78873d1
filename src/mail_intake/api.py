# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""FastAPI application factory for the mail intake service.

This module provides the REST interface in front of the
:class:`~mail_intake.handler.SubmissionHandler`:

- ``POST /api/store-email``: submit an email record for storage
- ``GET /health``: liveness probe, no authentication required
- ``GET /metrics``: Prometheus metrics, behind the same session check

The submission route reads the raw body itself rather than declaring a
Pydantic body parameter, so content type, authentication and rate limiting
are decided by the handler before any parsing happens.

Example:
    Creating and running the API application::

        from mail_intake.api import create_app

        app = create_app(handler)
        uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from typing import AsyncContextManager, Callable, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response

from .handler import SubmissionHandler, SubmissionRequest
from .logger import get_logger
from .models import ErrorResponse, SubmitResponse

logger = get_logger("IntakeAPI")

SUBMIT_PATH = "/api/store-email"

ERROR_RESPONSES = {
    code: {"model": ErrorResponse}
    for code in (400, 401, 415, 429, 500)
}


def create_app(
    handler: SubmissionHandler,
    lifespan: Optional[Callable[[FastAPI], AsyncContextManager]] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    handler:
        The :class:`SubmissionHandler` that runs the admission pipeline.
        Its metrics collector, if any, backs the ``/metrics`` endpoint.
    lifespan:
        Optional lifespan context manager for startup/shutdown events.

    Returns
    -------
    FastAPI
        A configured application ready to be served by Uvicorn or any ASGI
        server.
    """
    if lifespan is not None:
        api = FastAPI(title="Mail Intake Service", lifespan=lifespan)
    else:
        api = FastAPI(title="Mail Intake Service")
    api.state.handler = handler

    @api.get("/health")
    async def health():
        """Health check endpoint for container monitoring (no authentication required)."""
        return {"status": "ok"}

    @api.post(SUBMIT_PATH, response_model=SubmitResponse, responses=ERROR_RESPONSES)
    async def store_email(request: Request):
        """Validate an email record and persist it."""
        body = await request.body()
        result = await handler.handle(SubmissionRequest(headers=dict(request.headers), body=body))
        return JSONResponse(status_code=result.status_code, content=result.body)

    @api.get("/metrics")
    async def metrics(request: Request):
        """Expose Prometheus metrics collected by the handler."""
        if handler.enforce_auth and not await handler.is_authenticated(dict(request.headers)):
            logger.warning("Rejected unauthenticated metrics request")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Unauthorized: Authentication required"},
            )
        if handler.metrics is None:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "Metrics are not enabled")
        return Response(content=handler.metrics.generate_latest(), media_type="text/plain; version=0.0.4")

    return api
