"""
Identity Claim Business Validation

Range and expiry checks that are independent of cryptography. A claim can
be authentically signed and still fail here (for instance once it expires).
"""

from typing import Optional, Union

from .claim import IdentityClaim, SignedClaim, now_epoch, risk_score_in_range
from .errors import (
    ClaimError,
    EmptyAddress,
    EmptyIssuer,
    ExpiredClaimError,
    RiskScoreOutOfRange,
)
from .logging_config import audit_log

AnyClaim = Union[IdentityClaim, SignedClaim]


def is_expired(claim: AnyClaim, now: Optional[int] = None) -> bool:
    """
    Check if a claim has expired.

    The boundary is inclusive: a claim is expired at the exact expiry instant.
    """
    if now is None:
        now = now_epoch()
    return now >= claim.expiry


def validate(claim: AnyClaim, now: Optional[int] = None) -> None:
    """
    Validate a claim, raising on the first failing check.

    Order is fixed: risk score range, expiry, address, issuer.
    """
    if now is None:
        now = now_epoch()

    try:
        if not risk_score_in_range(claim.risk_score):
            raise RiskScoreOutOfRange(claim.risk_score)

        if is_expired(claim, now):
            raise ExpiredClaimError(claim.expiry, now)

        if not claim.address:
            raise EmptyAddress()

        if not claim.issuer:
            raise EmptyIssuer()
    except ClaimError as exc:
        audit_log.validation_failed(exc.field, exc.code.value, exc.message)
        raise
