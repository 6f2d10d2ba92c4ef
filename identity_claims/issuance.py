"""
Claim issuance from a KYC decision.

The KYC result handler hands over a KycDecision; the operator supplies its
issuer identity and signing capability. issue_claim() runs the factory,
assigns the issuer and signs, returning the SignedClaim for the response
layer.
"""

from typing import Optional, Union

from pydantic import BaseModel, Field
from nacl.signing import SigningKey

from . import config
from .claim import IdentityTier, SignedClaim, create_claim
from .signing import ClaimSigner, sign_claim


class KycDecision(BaseModel):
    address: str
    tier: IdentityTier
    # range is enforced by create_claim so every entry point raises the same error
    risk_score: int
    validity_seconds: int = Field(default_factory=lambda: config.CLAIM_VALIDITY_SECONDS)


def issue_claim(
    decision: KycDecision,
    issuer: Optional[str],
    signer: Union[ClaimSigner, SigningKey],
    now: Optional[int] = None
) -> SignedClaim:
    """
    Turn a KYC decision into a signed claim.

    Args:
        decision: Tier, risk score and validity chosen by the KYC handler
        issuer: Operator's signing identity (defaults to CLAIM_ISSUER)
        signer: Signing capability for that issuer
        now: Creation time override in unix seconds

    Returns:
        SignedClaim
    """
    claim = create_claim(
        decision.address,
        decision.tier,
        decision.risk_score,
        decision.validity_seconds,
        now=now,
    )
    claim.issuer = issuer if issuer is not None else config.CLAIM_ISSUER
    return sign_claim(claim, signer)
