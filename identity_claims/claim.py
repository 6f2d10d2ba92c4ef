"""
Identity Claim Types and Factory

An identity claim binds a chain address to a KYC tier, a risk score and an
absolute expiry. Claims are plain values: no primary key, no storage.

Two shapes exist:
- IdentityClaim: the mutable, unsigned draft built by create_claim(). The
  caller assigns `issuer` exactly once before signing.
- SignedClaim: the frozen result of signing. It carries its own copy of the
  five fields plus the signature and exposes no mutators, so a signed claim
  can never drift away from the bytes its signature covers.
"""

import base64
import binascii
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import IntEnum
from typing import Any, Dict, Optional, Union

from .errors import (
    ExpiryNotFuture,
    RiskScoreOutOfRange,
    UnknownTier,
    ValidationError,
)
from .logging_config import audit_log


MIN_RISK_SCORE = 0
MAX_RISK_SCORE = 100

# Wire widths of the fixed fields
U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1


class IdentityTier(IntEnum):
    """KYC verification level, consumed by the escrow policy to size limits."""
    UNVERIFIED = 0
    BASIC = 1
    VERIFIED = 2
    PREMIUM = 3


def now_epoch() -> int:
    """Get current Unix timestamp as integer."""
    return int(time.time())


def coerce_tier(tier: Union[IdentityTier, int]) -> IdentityTier:
    """Return `tier` as an IdentityTier, raising UnknownTier for other values."""
    if isinstance(tier, bool):
        raise UnknownTier(tier)
    try:
        return IdentityTier(tier)
    except ValueError as exc:
        raise UnknownTier(tier) from exc


def risk_score_in_range(risk_score: int) -> bool:
    return MIN_RISK_SCORE <= risk_score <= MAX_RISK_SCORE


@dataclass
class IdentityClaim:
    """
    Unsigned identity claim.

    Fields:
    - address: subject account (Stellar strkey)
    - tier: IdentityTier ordinal
    - risk_score: 0-100, lower is less risky
    - expiry: absolute unix seconds
    - issuer: signing authority; blank until the caller assigns it
    """
    address: str
    tier: IdentityTier
    risk_score: int
    expiry: int
    issuer: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "tier": int(self.tier),
            "risk_score": self.risk_score,
            "expiry": self.expiry,
            "issuer": self.issuer,
        }


@dataclass(frozen=True)
class SignedClaim:
    """
    A claim together with the Ed25519 signature over its canonical bytes.

    Instances are immutable; assigning any attribute raises
    dataclasses.FrozenInstanceError.
    """
    address: str
    tier: IdentityTier
    risk_score: int
    expiry: int
    issuer: str
    signature: bytes

    @classmethod
    def of(cls, claim: IdentityClaim, signature: bytes) -> 'SignedClaim':
        """Freeze a copy of `claim` alongside its signature."""
        return cls(
            address=claim.address,
            tier=claim.tier,
            risk_score=claim.risk_score,
            expiry=claim.expiry,
            issuer=claim.issuer,
            signature=bytes(signature),
        )

    def claim(self) -> IdentityClaim:
        """Return an unsigned copy of the claim fields."""
        return IdentityClaim(
            address=self.address,
            tier=self.tier,
            risk_score=self.risk_score,
            expiry=self.expiry,
            issuer=self.issuer,
        )

    def message(self) -> bytes:
        """Canonical bytes covered by the signature."""
        from .canonicalization import serialize_claim
        return serialize_claim(self)

    @property
    def signature_b64(self) -> str:
        return base64.b64encode(self.signature).decode('ascii')

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary for the response layer."""
        return {
            "address": self.address,
            "tier": int(self.tier),
            "risk_score": self.risk_score,
            "expiry": self.expiry,
            "issuer": self.issuer,
            "signature_b64": self.signature_b64,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SignedClaim':
        """Parse a signed claim received from another party."""
        required = ["address", "tier", "risk_score", "expiry", "issuer", "signature_b64"]
        missing = [f for f in required if f not in data]
        if missing:
            raise ValidationError(f"Missing required fields: {missing}")

        for name in ("address", "issuer", "signature_b64"):
            if not isinstance(data[name], str):
                raise ValidationError(f"{name} must be a string", field=name)
            try:
                data[name].encode('utf-8')
            except UnicodeEncodeError as exc:
                raise ValidationError(f"{name} is not valid UTF-8 text", field=name) from exc

        for name, upper in (("tier", U32_MAX), ("risk_score", U32_MAX), ("expiry", U64_MAX)):
            value = data[name]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"{name} must be an integer", field=name)
            if not 0 <= value <= upper:
                raise ValidationError(f"{name} out of wire range: {value}", field=name)

        try:
            signature = base64.b64decode(data["signature_b64"], validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValidationError("signature_b64 is not valid base64", field="signature") from exc

        return cls(
            address=data["address"],
            tier=coerce_tier(data["tier"]),
            risk_score=data["risk_score"],
            expiry=data["expiry"],
            issuer=data["issuer"],
            signature=signature,
        )


def create_claim(
    address: str,
    tier: Union[IdentityTier, int],
    risk_score: int,
    validity: Union[timedelta, int, float],
    now: Optional[int] = None
) -> IdentityClaim:
    """
    Factory function to create an unsigned claim.

    Args:
        address: Subject account address
        tier: Identity tier (IdentityTier or its ordinal)
        risk_score: Risk score, 0-100 inclusive
        validity: How long the claim stays valid (timedelta or seconds)
        now: Creation time in unix seconds; read from the wall clock if omitted

    Returns:
        IdentityClaim with a blank issuer

    Raises:
        RiskScoreOutOfRange: risk_score outside [0, 100]
        ExpiryNotFuture: validity does not place expiry after now
        UnknownTier: tier is not a known ordinal
        ValidationError: risk_score is not an integer, or expiry exceeds u64
    """
    if isinstance(risk_score, bool) or not isinstance(risk_score, int):
        raise ValidationError("risk score must be an integer", field="risk_score")
    if not risk_score_in_range(risk_score):
        raise RiskScoreOutOfRange(risk_score)

    tier = coerce_tier(tier)

    if isinstance(validity, timedelta):
        seconds = int(validity.total_seconds())
    else:
        seconds = int(validity)

    if now is None:
        now = now_epoch()
    expiry = now + seconds

    if expiry <= now:
        raise ExpiryNotFuture(expiry, now)
    if expiry > U64_MAX:
        raise ValidationError(f"expiry exceeds u64: {expiry}", field="expiry")

    claim = IdentityClaim(
        address=address,
        tier=tier,
        risk_score=risk_score,
        expiry=expiry,
    )

    audit_log.claim_created(address, int(tier), risk_score, expiry)
    return claim
