"""HTTP intake service that validates email records and stores them.

This package provides the admission pipeline placed in front of an email
record store, with features including:

- Fixed-window per-client rate limiting
- Strict payload parsing with Pydantic models
- Address format and content length validation
- SQLite persistence via aiosqlite
- Prometheus metrics and a FastAPI REST endpoint

Example:
    Basic usage with the FastAPI application::

        from mail_intake.api import create_app
        from mail_intake.handler import SubmissionHandler
        from mail_intake.rate_limit import RateLimiter
        from mail_intake.store import SqliteEmailStore

        store = SqliteEmailStore("/data/mail_intake.db")
        handler = SubmissionHandler(store, RateLimiter(), enforce_auth=False)
        app = create_app(handler)
"""

__version__ = "0.1.0"
