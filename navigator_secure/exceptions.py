"""
Secure Exceptions — Error taxonomy for password-based encryption.

Every failure coming from the crypto backend, the Base64 codec or the
text codecs is re-raised at the operation boundary as one of these, with
the original exception chained as ``__cause__``.

Security Note:
    Exception messages never carry passwords, key material, plaintext
    or ciphertext. Only operation names and exception class names.
"""


class CryptoError(RuntimeError):
    """Base exception for every navigator_secure failure."""


class KeyDerivationError(CryptoError):
    """Password missing, not encodable, or the KDF hash is unavailable."""


class CipherInitError(CryptoError):
    """The cipher could not be initialized with the derived key."""


class EncodingError(CryptoError):
    """Text payload cannot be represented as UTF-8 bytes."""


class DecodingError(CryptoError):
    """Malformed Base64 input, or decrypted bytes that are not valid UTF-8."""


class CryptoOperationError(CryptoError):
    """The cipher transform failed (bad padding, bad block length, ...).

    Decrypting with the wrong password usually lands here, but may also
    succeed and return garbage: the scheme carries no integrity check.
    """


__all__ = [
    "CryptoError",
    "KeyDerivationError",
    "CipherInitError",
    "EncodingError",
    "DecodingError",
    "CryptoOperationError",
]
