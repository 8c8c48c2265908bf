"""
Plan catalog configuration.

Maps plan IDs to prices (kobo) and entitlement durations, and resolves
discount codes.
"""

from structlog import get_logger

from app.exceptions import PlanNotFoundError
from app.models.domain import Plan, PlanQuote

logger = get_logger(__name__)


# Plan catalog (amounts in kobo; must match what the frontend advertises)
DEFAULT_PLANS: dict[str, Plan] = {
    "monthly": Plan(
        plan_id="monthly",
        display_name="Monthly Plan",
        base_amount_minor=1_600_000,
        duration_days=30,
    ),
    "yearly": Plan(
        plan_id="yearly",
        display_name="Yearly Plan",
        base_amount_minor=15_360_000,
        duration_days=365,
    ),
    "pro_monthly": Plan(
        plan_id="pro_monthly",
        display_name="Pro Monthly Plan",
        base_amount_minor=1_600_000,
        duration_days=30,
    ),
    "pro_yearly": Plan(
        plan_id="pro_yearly",
        display_name="Pro Yearly Plan",
        base_amount_minor=15_360_000,
        duration_days=365,
    ),
}


def apply_discount(base_amount_minor: int, percent_off: int) -> int:
    """
    Price after a percentage discount, truncated to whole minor units.

    Raises:
        ValueError: If percent_off is outside [0, 100]
    """
    if not 0 <= percent_off <= 100:
        raise ValueError(f"Discount must be between 0 and 100: {percent_off}")
    return base_amount_minor * (100 - percent_off) // 100


class PlanCatalog:
    """Static plan catalog with discount code lookup."""

    def __init__(
        self,
        plans: dict[str, Plan] | None = None,
        discount_codes: list[tuple[str, int]] | None = None,
        default_plan_id: str = "monthly",
    ) -> None:
        self.plans = plans if plans is not None else DEFAULT_PLANS
        self.discount_codes = {code.upper(): pct for code, pct in discount_codes or []}
        if default_plan_id not in self.plans:
            raise ValueError(f"Default plan is not in the catalog: {default_plan_id}")
        self.default_plan_id = default_plan_id

    @property
    def default_plan(self) -> Plan:
        return self.plans[self.default_plan_id]

    def resolve(self, plan_id: str | None) -> Plan:
        """
        Get plan configuration by ID.

        Raises:
            PlanNotFoundError: If plan ID not found
        """
        plan = self.plans.get(plan_id) if plan_id else None
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return plan

    def resolve_or_default(self, plan_id: str | None) -> Plan:
        """Resolve a plan, falling back to the default plan for unknown IDs."""
        try:
            return self.resolve(plan_id)
        except PlanNotFoundError:
            logger.warning(
                "plan_fallback_to_default",
                requested_plan=plan_id,
                default_plan=self.default_plan_id,
            )
            return self.default_plan

    def resolve_discount(self, code: str | None) -> int | None:
        """Percent off for an active discount code; None for unknown or inactive codes."""
        if not code:
            return None
        percent = self.discount_codes.get(code.strip().upper())
        if percent is None:
            logger.info("discount_code_ignored", code=code)
        return percent

    def quote(self, plan_id: str | None, discount_code: str | None = None) -> PlanQuote:
        """Price a plan (default plan for unknown IDs) with an optional discount code."""
        plan = self.resolve_or_default(plan_id)
        percent_off = self.resolve_discount(discount_code)
        return PlanQuote(
            plan=plan,
            discount_code=discount_code.strip().upper() if percent_off is not None else None,
            percent_off=percent_off or 0,
            amount_minor=apply_discount(plan.base_amount_minor, percent_off or 0),
        )

    def list_plans(self) -> list[Plan]:
        """All plans, cheapest first."""
        return sorted(self.plans.values(), key=lambda p: (p.base_amount_minor, p.plan_id))
