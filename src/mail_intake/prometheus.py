# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for monitoring the intake endpoint.

All metrics use the ``mi_`` prefix (mail-intake).

Metrics exposed:
    - ``mi_submissions_total``: Counter of handled submissions per outcome.
    - ``mi_rate_limited_total``: Counter of requests denied by the limiter.
    - ``mi_tracked_clients``: Gauge of clients currently held by the limiter.

Example:
    Accessing metrics via the REST API::

        GET /metrics
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest


class IntakeMetrics:
    """Prometheus metrics collector for the intake endpoint.

    Attributes:
        registry: The Prometheus CollectorRegistry holding all metrics.
        submissions: Counter of submissions labeled by ``outcome``.
        rate_limited: Counter of rate limit denials.
        tracked_clients: Gauge of rate limiter entries.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize metrics with an optional custom registry.

        Args:
            registry: Optional Prometheus CollectorRegistry. A new registry
                is created when omitted, which keeps test instances isolated.
        """
        self.registry = registry or CollectorRegistry()
        self.submissions = Counter(
            "mi_submissions_total",
            "Total handled submissions",
            ["outcome"],
            registry=self.registry,
        )
        self.rate_limited = Counter(
            "mi_rate_limited_total",
            "Total rate limited requests",
            registry=self.registry,
        )
        self.tracked_clients = Gauge(
            "mi_tracked_clients",
            "Clients currently tracked by the rate limiter",
            registry=self.registry,
        )

    def inc_outcome(self, outcome: str) -> None:
        """Increment the submissions counter for an outcome label."""
        self.submissions.labels(outcome=outcome or "unknown").inc()

    def inc_rate_limited(self) -> None:
        self.rate_limited.inc()

    def set_tracked_clients(self, value: int) -> None:
        self.tracked_clients.set(value)

    def generate_latest(self) -> bytes:
        """Export all metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)
