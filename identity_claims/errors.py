"""
Identity Claim Error Taxonomy

Every failure raised by this package derives from ClaimError and carries a
FailureCode so the API boundary can map it to a response without string
matching on messages.

Three families:
- ValidationError: field-level problems (range, emptiness, expiry at creation)
- CryptoError: signing or signature verification failures
- ExpiredClaimError: business-level expiry observed by validate()
"""

from enum import Enum
from typing import Optional


class FailureCode(str, Enum):
    """Stable failure codes attached to every ClaimError."""
    INVALID = "INVALID"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    EXPIRY_NOT_FUTURE = "EXPIRY_NOT_FUTURE"
    MISSING = "MISSING"
    CRYPTO = "CRYPTO"
    BAD_SIGNATURE = "BAD_SIGNATURE"
    EXPIRED = "EXPIRED"


class ClaimError(Exception):
    """Base class for all identity claim errors."""

    code: FailureCode = FailureCode.INVALID

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self):
        d = {"code": self.code.value, "message": self.message}
        if self.field:
            d["field"] = self.field
        return d


# Validation

class ValidationError(ClaimError):
    """A claim field violates its domain."""
    code = FailureCode.INVALID


class RiskScoreOutOfRange(ValidationError):
    code = FailureCode.OUT_OF_RANGE

    def __init__(self, risk_score: int):
        super().__init__(
            f"risk score must be between 0 and 100, got {risk_score}",
            field="risk_score",
        )
        self.risk_score = risk_score


class ExpiryNotFuture(ValidationError):
    code = FailureCode.EXPIRY_NOT_FUTURE

    def __init__(self, expiry: int, now: int):
        super().__init__(
            f"expiry must be in the future (expiry={expiry}, now={now})",
            field="expiry",
        )
        self.expiry = expiry
        self.now = now


class EmptyAddress(ValidationError):
    code = FailureCode.MISSING

    def __init__(self):
        super().__init__("address cannot be empty", field="address")


class EmptyIssuer(ValidationError):
    code = FailureCode.MISSING

    def __init__(self):
        super().__init__("issuer cannot be empty", field="issuer")


class UnknownTier(ValidationError):
    def __init__(self, tier):
        super().__init__(f"unknown identity tier: {tier!r}", field="tier")
        self.tier = tier


class SerializationError(ClaimError):
    """Claim fields cannot be packed into (or parsed from) the wire layout."""
    code = FailureCode.INVALID


# Cryptography

class CryptoError(ClaimError):
    """Signing or verification failed."""
    code = FailureCode.CRYPTO


class SigningError(CryptoError):
    code = FailureCode.CRYPTO


class InvalidSignature(CryptoError):
    code = FailureCode.BAD_SIGNATURE

    def __init__(self, message: str = "invalid signature"):
        super().__init__(message, field="signature")


# Business

class ExpiredClaimError(ClaimError):
    """The claim is authentic but its expiry has passed."""
    code = FailureCode.EXPIRED

    def __init__(self, expiry: int, now: int):
        super().__init__(
            f"claim has expired (expiry={expiry}, now={now})",
            field="expiry",
        )
        self.expiry = expiry
        self.now = now
