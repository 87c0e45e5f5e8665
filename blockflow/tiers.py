"""Per-tier limits. Enforced ad hoc by the request handlers that need them."""

from blockflow.types import Tier, TierLimits

ALL_NETWORKS = ["ethereum", "base", "arbitrum", "polygon", "optimism"]

TIER_LIMITS: dict[Tier, TierLimits] = {
    Tier.FREE: TierLimits(
        starting_credits=100,
        max_workflows=5,
        max_executions_per_month=100,
        ai_model_access=["gpt-3.5-turbo"],
        supported_networks=["ethereum"],
        free_block_categories=["triggers", "storage"],
    ),
    Tier.PRO: TierLimits(
        starting_credits=1000,
        max_workflows=50,
        max_executions_per_month=10000,
        ai_model_access=["gpt-3.5-turbo", "gpt-4"],
        supported_networks=["ethereum", "base", "arbitrum"],
    ),
    Tier.UNLIMITED: TierLimits(
        starting_credits=999999,
        max_workflows=1000,
        max_executions_per_month=999999,
        ai_model_access=["gpt-3.5-turbo", "gpt-4", "gpt-4-turbo", "gpt-4o"],
        supported_networks=list(ALL_NETWORKS),
    ),
}


def limits_for(tier) -> TierLimits:
    """Limits for *tier* (enum or raw string). Unknown values fall back to FREE."""
    try:
        return TIER_LIMITS[Tier(tier)]
    except ValueError:
        return TIER_LIMITS[Tier.FREE]


def is_unlimited(tier) -> bool:
    return str(getattr(tier, "value", tier)) == Tier.UNLIMITED.value
