"""
Metrics Collection with Prometheus.

Exposes business and system metrics for monitoring.
"""

from enum import Enum

from prometheus_client import REGISTRY, Counter, Gauge, Histogram, Info, generate_latest

from app.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    PLAN = "plan"
    OUTCOME = "outcome"
    SOURCE = "source"
    ERROR_TYPE = "error_type"


class MZoneMetrics:
    """
    Centralized metrics for the MZone API.

    Covers:
    - HTTP requests (rate, duration, errors)
    - Registrations, logins and verification code checks
    - Checkouts started (rate, amount per plan)
    - Subscription outcomes per confirmation path
    - Notification delivery failures
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "mzone_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "mzone_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "mzone_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "mzone_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Account Metrics
        # ====================================================================
        self.registrations_total = Counter(
            "mzone_registrations_total",
            "Total accounts registered",
            ["verification_required"],
        )

        self.logins_total = Counter(
            "mzone_logins_total",
            "Total login attempts",
            ["success"],
        )

        self.otp_checks_total = Counter(
            "mzone_otp_checks_total",
            "Total verification code checks",
            [MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Payment Metrics
        # ====================================================================
        self.payments_initialized_total = Counter(
            "mzone_payments_initialized_total",
            "Total checkouts started",
            [MetricLabels.PLAN],
        )

        self.payment_amount_minor = Histogram(
            "mzone_payment_amount_minor",
            "Checkout amounts in minor units (kobo)",
            [MetricLabels.PLAN],
            buckets=(100000, 500000, 1000000, 1600000, 2500000, 5000000, 15360000, 30000000),
        )

        self.subscription_outcomes_total = Counter(
            "mzone_subscription_outcomes_total",
            "Payment events applied to subscriptions",
            [MetricLabels.OUTCOME, MetricLabels.SOURCE],
        )

        # ====================================================================
        # Notification Metrics
        # ====================================================================
        self.notification_failures_total = Counter(
            "mzone_notification_failures_total",
            "Emails that could not be delivered",
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "mzone_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_registration(self, verification_required: bool) -> None:
        self.registrations_total.labels(verification_required=str(verification_required)).inc()

    def record_login(self, success: bool) -> None:
        self.logins_total.labels(success=str(success)).inc()

    def record_otp_check(self, outcome: str) -> None:
        self.otp_checks_total.labels(outcome=outcome).inc()

    def record_payment_initialized(self, plan_id: str, amount_minor: int) -> None:
        """Record a checkout handed to the payment provider."""
        self.payments_initialized_total.labels(plan=plan_id).inc()
        self.payment_amount_minor.labels(plan=plan_id).observe(amount_minor)

    def record_subscription_outcome(self, outcome: str, source: str) -> None:
        """Record the result of applying a payment event."""
        self.subscription_outcomes_total.labels(outcome=outcome, source=source).inc()

    def record_notification_failure(self) -> None:
        self.notification_failures_total.inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = MZoneMetrics()


def render_metrics() -> bytes:
    """Prometheus text exposition of the default registry."""
    return generate_latest(REGISTRY)
