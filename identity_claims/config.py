"""
Configuration module for identity claim issuance.

Centralizes all configuration with environment variable support.
Values are read once at import; the core never mutates them.
"""

import os
from pathlib import Path
from typing import Dict

# ============================================================
# Environment Configuration
# ============================================================

# Claim defaults
CLAIM_VALIDITY_SECONDS = int(os.getenv("CLAIM_VALIDITY_SECONDS", str(30 * 24 * 3600)))
CLAIM_ISSUER = os.getenv("CLAIM_ISSUER", "")

# Stellar strkey addresses are 56 ASCII characters
CLAIM_ADDRESS_LENGTH = int(os.getenv("CLAIM_ADDRESS_LENGTH", "56"))

# Applied by the verifying party only
CLAIM_CLOCK_SKEW_SECONDS = int(os.getenv("CLAIM_CLOCK_SKEW_SECONDS", "0"))

# Signing configuration
SIGNER_TYPE = os.getenv("CLAIM_SIGNER", "file")
SIGNING_KEY_PATH = os.getenv("SIGNING_KEY_PATH", "secrets/claim_signing_key.json")
AWS_KMS_KEY_ID = os.getenv("AWS_KMS_KEY_ID", "")
AWS_REGION = os.getenv("AWS_REGION", "")
AWS_KMS_KID = os.getenv("AWS_KMS_KID", "aws-kms-ed25519")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "true").lower() in ("1", "true", "yes")


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Validate that the settings required for issuance are present.
    Returns dict of setting -> present.
    """
    checks = {
        "issuer": bool(CLAIM_ISSUER),
        "validity": CLAIM_VALIDITY_SECONDS > 0,
    }

    if SIGNER_TYPE == "file":
        checks["signing_key"] = Path(SIGNING_KEY_PATH).exists()
    elif SIGNER_TYPE == "aws_kms":
        checks["kms_key_id"] = bool(AWS_KMS_KEY_ID)

    return checks
