"""
Secure Configuration — Fixed PBE parameters and validated settings.

The salt and iteration count are public constants, not secrets, but they
must be identical on both sides: ciphertext produced with one pair cannot
be decrypted with another. Optional overrides are read from:
    SECURE_SALT = <base64-encoded 8-byte salt>
    SECURE_ITERATION_COUNT = <integer>
    SECURE_CACHE_CIPHERS = <true|false>
    SECURE_POOL_SIZE = <integer>

Security Note:
    Never log passwords or derived keys. Salt and iteration count are
    not sensitive, but are logged only at debug level.
"""
import os
import base64
import logging
import binascii
from typing import Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("navigator.secure")

# PKCS #5 PBES1 parameters shared by every key derivation.
SALT: bytes = bytes([0xE6, 0x65, 0x96, 0x02, 0x3D, 0xB0, 0xD8, 0xF8])
ITERATION_COUNT: int = 20
CIPHER_TYPE: str = "PBEWithMD5AndDES"
SALT_SIZE = 8


def load_salt(raw: Optional[str] = None) -> bytes:
    """Decode a base64 salt override, falling back to the built-in salt.

    Args:
        raw: base64 text; if None, SECURE_SALT is read from the environment.

    Returns:
        8-byte salt.

    Raises:
        ValueError: If the value is not base64 or not exactly 8 bytes.
    """
    if raw is None:
        raw = os.environ.get("SECURE_SALT")
    if not raw:
        return SALT
    try:
        salt = base64.b64decode(raw, validate=True)
    except binascii.Error as err:
        raise ValueError("SECURE_SALT is not valid base64") from err
    if len(salt) != SALT_SIZE:
        raise ValueError(
            f"SECURE_SALT must decode to exactly {SALT_SIZE} bytes, "
            f"got {len(salt)}"
        )
    return salt


class CipherConfig(BaseModel):
    """Validated, immutable PBE configuration."""

    salt: bytes = Field(default=SALT)
    iteration_count: int = Field(default=ITERATION_COUNT, ge=1)
    algorithm: str = Field(default=CIPHER_TYPE)
    cache_ciphers: bool = Field(default=True)
    pool_size: int = Field(default=4, ge=1, le=256)

    model_config = {"frozen": True}

    @field_validator("salt")
    @classmethod
    def validate_salt(cls, v: bytes) -> bytes:
        """PBES1 uses an 8-byte salt."""
        if len(v) != SALT_SIZE:
            raise ValueError(
                f"salt must be exactly {SALT_SIZE} bytes, got {len(v)}"
            )
        return v

    @field_validator("algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        """Only one password-based scheme is supported."""
        if v != CIPHER_TYPE:
            raise ValueError(f"Unsupported cipher algorithm: {v}")
        return v

    @classmethod
    def from_env(cls) -> "CipherConfig":
        """Create CipherConfig from environment overrides.

        Returns:
            Populated CipherConfig instance.
        """
        values = {"salt": load_salt()}
        iterations = os.environ.get("SECURE_ITERATION_COUNT")
        if iterations is not None:
            values["iteration_count"] = iterations
        cache_ciphers = os.environ.get("SECURE_CACHE_CIPHERS")
        if cache_ciphers is not None:
            values["cache_ciphers"] = cache_ciphers
        pool_size = os.environ.get("SECURE_POOL_SIZE")
        if pool_size is not None:
            values["pool_size"] = pool_size
        config = cls(**values)
        logger.debug(
            "Loaded cipher config: algorithm=%s iterations=%d cache=%s pool=%d",
            config.algorithm, config.iteration_count,
            config.cache_ciphers, config.pool_size,
        )
        return config


DEFAULT_CONFIG = CipherConfig()
