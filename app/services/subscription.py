"""
Subscription Service - Entitlement state machine.

Applies normalized PaymentEvents to accounts. The same event may arrive from
the client's verify poll and from the provider webhook, in either order and
possibly concurrently; the stored subscription_ref makes re-application a
no-op.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from structlog import get_logger

from app.models.api import PaymentStatus, SubscriptionOutcome
from app.models.domain import PaymentEvent, SubscriptionResult, UserAccount
from app.observability.metrics import metrics
from app.observability.tracing import trace_operation
from app.services.credential_store import CredentialStore
from app.services.plan_catalog import PlanCatalog

logger = get_logger(__name__)


def _utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class SubscriptionService:
    """
    Subscription state machine.

    A successful payment sets the expiry to now + plan duration. It does not
    stack on top of time left from an earlier payment.
    """

    def __init__(
        self,
        store: CredentialStore,
        catalog: PlanCatalog,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize subscription service with its store and plan catalog."""
        self.store = store
        self.catalog = catalog
        self.clock = clock

    async def apply(self, event: PaymentEvent, source: str = "unknown") -> SubscriptionResult:
        """
        Apply a payment event to the account named in its metadata.

        Args:
            event: Normalized payment event
            source: Which path delivered the event ("verify" or "webhook"), for logs only

        Returns:
            SubscriptionResult describing what happened; never raises for
            failed payments, unknown plans or unknown accounts
        """
        with trace_operation(
            "subscription_apply", reference=event.reference, source=source
        ) as span:
            result = await self._apply(event, source)
            span.set_attribute("outcome", result.outcome.value)
            return result

    async def _apply(self, event: PaymentEvent, source: str) -> SubscriptionResult:
        log = logger.bind(reference=event.reference, account_id=str(event.identity), source=source)

        if event.status != PaymentStatus.SUCCEEDED:
            log.info("payment_not_successful", status=event.status.value)
            return self._result(SubscriptionOutcome.PAYMENT_NOT_SUCCESSFUL, event, source)

        plan = self.catalog.resolve_or_default(event.plan)

        account = await self.store.find_by_id(event.identity)
        if account is None:
            log.warning("payment_for_unknown_account")
            return self._result(SubscriptionOutcome.UNKNOWN_ACCOUNT, event, source)

        if account.subscription_ref == event.reference:
            log.info("payment_already_applied")
            return self._result(
                SubscriptionOutcome.ALREADY_APPLIED,
                event,
                source,
                plan_id=account.subscription_plan,
                expires_at=account.subscription_expires_at,
                is_active=self._entitled(account),
            )

        granted_at = self.clock()
        expires_at = granted_at + timedelta(days=plan.duration_days)

        applied = await self.store.apply_subscription(
            account_id=account.account_id,
            reference=event.reference,
            plan_id=plan.plan_id,
            granted_at=granted_at,
            expires_at=expires_at,
        )

        if not applied:
            # The other confirmation path won the conditional update
            current = await self.store.find_by_id(event.identity)
            if current is None:
                log.warning("payment_for_unknown_account")
                return self._result(SubscriptionOutcome.UNKNOWN_ACCOUNT, event, source)
            log.info("payment_applied_concurrently")
            return self._result(
                SubscriptionOutcome.ALREADY_APPLIED,
                event,
                source,
                plan_id=current.subscription_plan,
                expires_at=current.subscription_expires_at,
                is_active=self._entitled(current),
            )

        log.info(
            "subscription_activated",
            plan=plan.plan_id,
            expires_at=expires_at.isoformat(),
        )
        return self._result(
            SubscriptionOutcome.ACTIVATED,
            event,
            source,
            plan_id=plan.plan_id,
            expires_at=expires_at,
            is_active=True,
        )

    async def refresh_entitlement(self, account: UserAccount) -> UserAccount:
        """
        Lazily lapse an expired entitlement.

        If the stored expiry has passed, persist is_subscribed=False before
        returning the account; otherwise return it unchanged.
        """
        if not account.entitlement_lapsed(self.clock()):
            return account

        refreshed = await self.store.expire_entitlement(account.account_id, self.clock())
        logger.info(
            "subscription_lapsed",
            account_id=str(account.account_id),
            plan=account.subscription_plan,
            expired_at=account.subscription_expires_at.isoformat()
            if account.subscription_expires_at
            else None,
        )
        return refreshed

    def _entitled(self, account: UserAccount) -> bool:
        return account.is_subscribed and not account.entitlement_lapsed(self.clock())

    @staticmethod
    def _result(
        outcome: SubscriptionOutcome,
        event: PaymentEvent,
        source: str,
        plan_id: str | None = None,
        expires_at: datetime | None = None,
        is_active: bool = False,
    ) -> SubscriptionResult:
        metrics.record_subscription_outcome(outcome.value, source)
        return SubscriptionResult(
            outcome=outcome,
            reference=event.reference,
            plan_id=plan_id,
            expires_at=expires_at,
            is_active=is_active,
        )
