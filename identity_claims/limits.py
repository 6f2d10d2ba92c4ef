"""
Tier-based limit preview.

Mirrors the escrow contract's limit policy so the issuing service can show
what a claim unlocks before it is submitted on-chain. Amounts are in token
base units (7 decimals).
"""

from dataclasses import dataclass
from typing import Dict, Union

from .claim import IdentityTier, coerce_tier

TOKEN_UNIT = 10_000_000  # 7 decimals


@dataclass(frozen=True)
class TierLimits:
    unverified_limit: int = 100 * TOKEN_UNIT
    basic_limit: int = 1_000 * TOKEN_UNIT
    verified_limit: int = 10_000 * TOKEN_UNIT
    premium_limit: int = 100_000 * TOKEN_UNIT

    def for_tier(self, tier: IdentityTier) -> int:
        return {
            IdentityTier.UNVERIFIED: self.unverified_limit,
            IdentityTier.BASIC: self.basic_limit,
            IdentityTier.VERIFIED: self.verified_limit,
            IdentityTier.PREMIUM: self.premium_limit,
        }[tier]

    def to_dict(self) -> Dict[str, int]:
        return {
            "unverified_limit": self.unverified_limit,
            "basic_limit": self.basic_limit,
            "verified_limit": self.verified_limit,
            "premium_limit": self.premium_limit,
        }


@dataclass(frozen=True)
class RiskThresholds:
    high_risk_threshold: int = 70
    high_risk_multiplier: int = 50  # percent of the tier limit


def effective_limit(
    tier: Union[IdentityTier, int],
    risk_score: int,
    limits: TierLimits = TierLimits(),
    thresholds: RiskThresholds = RiskThresholds(),
    expired: bool = False
) -> int:
    """
    Transaction limit the escrow grants for an identity.

    Expired identities fall back to the unverified limit. A risk score at or
    above the threshold scales the tier limit by the multiplier percentage.
    """
    tier = IdentityTier.UNVERIFIED if expired else coerce_tier(tier)
    if expired:
        # the escrow resets expired identities to the default record (risk 0)
        risk_score = 0

    tier_limit = limits.for_tier(tier)
    if risk_score >= thresholds.high_risk_threshold:
        return (tier_limit * thresholds.high_risk_multiplier) // 100
    return tier_limit
