"""
Identity Claim Canonical Encoding

The byte layout signed by issuers and recomputed by every verifier,
including the on-chain escrow contract:

    [address bytes][tier: u32 BE][risk_score: u32 BE][expiry: u64 BE][issuer bytes]

No delimiters, no length prefixes. The two strings are not self-delimiting,
so a message can only be split back into fields when both sides agree on a
fixed address length. Changing the layout requires a matching change in the
on-chain verifier.
"""

import struct
from typing import Optional, Union

from . import config
from .claim import IdentityClaim, SignedClaim, coerce_tier
from .errors import SerializationError, UnknownTier

# Length of a Stellar strkey account address (G...)
STELLAR_ADDRESS_LENGTH = 56

_FIXED = struct.Struct(">IIQ")
FIXED_FIELDS_SIZE = _FIXED.size  # 16


def serialize_claim(claim: Union[IdentityClaim, SignedClaim]) -> bytes:
    """
    Serialize a claim to its canonical signing bytes.

    Returns:
        address || u32(tier) || u32(risk_score) || u64(expiry) || issuer
    """
    try:
        fixed = _FIXED.pack(int(claim.tier), claim.risk_score, claim.expiry)
        address = claim.address.encode('utf-8')
        issuer = claim.issuer.encode('utf-8')
    except (struct.error, UnicodeEncodeError, AttributeError, TypeError, ValueError) as exc:
        raise SerializationError(f"Cannot encode claim fields: {exc}") from exc

    return address + fixed + issuer


def deserialize_claim(data: bytes, address_length: Optional[int] = None) -> IdentityClaim:
    """
    Split canonical bytes back into a claim.

    Only meaningful when the address byte length is fixed and known to both
    parties; the remainder after the fixed fields is taken as the issuer.

    Args:
        data: Canonical claim bytes
        address_length: Agreed byte length of the address field
            (defaults to CLAIM_ADDRESS_LENGTH)

    Returns:
        IdentityClaim with all five fields populated
    """
    if address_length is None:
        address_length = config.CLAIM_ADDRESS_LENGTH
    if address_length < 0:
        raise SerializationError("address_length must be non-negative")
    if len(data) < address_length + FIXED_FIELDS_SIZE:
        raise SerializationError(
            f"Claim bytes too short: {len(data)} < {address_length + FIXED_FIELDS_SIZE}"
        )

    offset = address_length + FIXED_FIELDS_SIZE
    tier, risk_score, expiry = _FIXED.unpack(data[address_length:offset])

    try:
        address = data[:address_length].decode('utf-8')
        issuer = data[offset:].decode('utf-8')
    except UnicodeDecodeError as exc:
        raise SerializationError(f"Claim strings are not valid UTF-8: {exc}") from exc

    try:
        tier = coerce_tier(tier)
    except UnknownTier as exc:
        raise SerializationError(exc.message) from exc

    return IdentityClaim(
        address=address,
        tier=tier,
        risk_score=risk_score,
        expiry=expiry,
        issuer=issuer,
    )
