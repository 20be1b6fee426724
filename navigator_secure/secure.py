"""
SecureUtils — Password-based encryption of bytes, text and values.

Provides the public API:
- ``encrypt(context, password, payload)`` — bytes or str → Base64 text
- ``decrypt(context, password, text)`` — Base64 text → bytes
- ``decrypt_as_string(context, password, text)`` — Base64 text → str
- ``encrypt_value`` / ``decrypt_value`` — JSON values (orjson) round trip
- ``get_encrypting_cipher`` / ``get_decrypting_cipher`` — process-wide
  cached handles
- ``generate_random_password()``

Cipher handles used by the operations are cached in the request-scoped
``CryptoContext``; the process-wide ``CipherCache`` backs only the two
accessors. The two caches are independent and may hold different
handles for the same password.

Security Note:
    Never log passwords, plaintext or ciphertext values. There is no
    integrity check: a wrong password and corrupted ciphertext look the
    same (CryptoOperationError, or garbage output).
"""
import logging
import secrets
from typing import Any, Optional, Union

import orjson

from .config import CipherConfig, DEFAULT_CONFIG
from .cache import CipherCache
from .context import (
    CacheKey,
    CryptoContext,
    ObjectCache,
    VALIDITY,
    ENCRYPTION_CATEGORY,
    DECRYPTION_CATEGORY,
)
from .crypto import CipherHandle, CipherMode, build_cipher, b64encode, b64decode
from .exceptions import (
    CryptoError,
    CryptoOperationError,
    EncodingError,
    DecodingError,
)

logger = logging.getLogger("navigator.secure")

_BYTES_WRAPPER_KEY = "__secure_bytes_b64__"

Payload = Union[bytes, bytearray, memoryview, str]


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def serialize_value(value: Any) -> bytes:
    """Serialize a Python value to bytes for encryption.

    Supports: str, int, float, dict, list, bytes, bool, None.
    bytes values are wrapped as a one-key dict holding Base64 text.

    Raises:
        EncodingError: If orjson cannot serialize the value.
    """
    try:
        if isinstance(value, (bytes, bytearray)):
            wrapped = {
                _BYTES_WRAPPER_KEY: b64encode(value)
            }
            return orjson.dumps(wrapped)
        return orjson.dumps(value)
    except TypeError as err:  # orjson.JSONEncodeError
        raise EncodingError(
            f"Cannot serialize value of type {type(value).__name__}"
        ) from err


def deserialize_value(data: bytes) -> Any:
    """Deserialize bytes produced by ``serialize_value``.

    A dict whose only key is the bytes wrapper key is always read back as
    bytes, so a user dict of that exact shape does not round-trip.

    Raises:
        DecodingError: If the bytes are not valid JSON, or the wrapped
            bytes are not valid Base64 text.
    """
    try:
        parsed = orjson.loads(data)
    except orjson.JSONDecodeError as err:
        raise DecodingError("Decrypted payload is not valid JSON") from err
    if isinstance(parsed, dict) and _BYTES_WRAPPER_KEY in parsed and len(parsed) == 1:
        return b64decode(parsed[_BYTES_WRAPPER_KEY])
    return parsed


def generate_random_password() -> str:
    """Return a random signed 64-bit integer as decimal text.

    Drawn from ``secrets``; the result is printable ASCII and therefore a
    valid PBE password.
    """
    return str(int.from_bytes(secrets.token_bytes(8), "big", signed=True))


class SecureUtils:
    """Password-based encryption service.

    Owns the process-wide ``CipherCache`` (for the accessors) and the
    ``ObjectCache`` used to keep handles in a ``CryptoContext``. Both can
    be injected so the host application controls their lifetime.
    """

    def __init__(
        self,
        config: Optional[CipherConfig] = None,
        cipher_cache: Optional[CipherCache] = None,
        object_cache: Optional[ObjectCache] = None,
    ):
        self._config = config or DEFAULT_CONFIG
        self._ciphers = cipher_cache or CipherCache(self._config)
        self._objects = object_cache or ObjectCache()

    @property
    def config(self) -> CipherConfig:
        return self._config

    @property
    def cipher_cache(self) -> CipherCache:
        return self._ciphers

    @property
    def object_cache(self) -> ObjectCache:
        return self._objects

    # ------------------------------------------------------------------
    # Process-wide accessors
    # ------------------------------------------------------------------

    def get_encrypting_cipher(
        self, password: str, cache_cipher: Optional[bool] = None
    ) -> CipherHandle:
        """Return an encrypting handle, cached per password unless disabled.

        Args:
            password: Encryption password.
            cache_cipher: Use the process-wide cache; defaults to
                ``config.cache_ciphers``.
        """
        if cache_cipher is None:
            cache_cipher = self._config.cache_ciphers
        return self._ciphers.get_encrypting_cipher(password, cache_cipher)

    def get_decrypting_cipher(
        self, password: str, cache_cipher: Optional[bool] = None
    ) -> CipherHandle:
        """Return a decrypting handle, cached per password unless disabled."""
        if cache_cipher is None:
            cache_cipher = self._config.cache_ciphers
        return self._ciphers.get_decrypting_cipher(password, cache_cipher)

    # ------------------------------------------------------------------
    # Context-scoped handles
    # ------------------------------------------------------------------

    def _context_cipher(
        self,
        context: Optional[CryptoContext],
        password: str,
        mode: CipherMode,
    ) -> CipherHandle:
        category = (
            ENCRYPTION_CATEGORY if mode is CipherMode.ENCRYPT
            else DECRYPTION_CATEGORY
        )
        key = CacheKey(category, password)
        return self._objects.get_or_add(
            context, key, VALIDITY,
            lambda: build_cipher(password, mode, self._config),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def encrypt(
        self,
        context: Optional[CryptoContext],
        password: str,
        payload: Payload,
    ) -> str:
        """Encrypt bytes (or UTF-8 text) and return Base64 text.

        Args:
            context: Current context; scopes the cached cipher handle.
            password: Encryption password.
            payload: Bytes, or text to encode as UTF-8 first.

        Returns:
            Base64-encoded ciphertext.

        Raises:
            EncodingError: If text cannot be encoded as UTF-8.
            KeyDerivationError: If the password cannot derive a key.
            CipherInitError: If the cipher cannot be initialized.
            CryptoOperationError: If the transform fails.
        """
        if isinstance(payload, str):
            try:
                payload = payload.encode("utf-8")
            except UnicodeEncodeError as err:
                raise EncodingError("Text cannot be encoded as UTF-8") from err
        try:
            cipher = self._context_cipher(context, password, CipherMode.ENCRYPT)
            return b64encode(cipher.do_final(payload))
        except CryptoError as err:
            logger.error("Encryption failed: %s", err.__class__.__name__)
            raise
        except Exception as err:
            logger.error("Encryption failed: %s", err.__class__.__name__)
            raise CryptoOperationError(
                f"Encryption failed: {err.__class__.__name__}"
            ) from err

    def decrypt(
        self,
        context: Optional[CryptoContext],
        password: str,
        text: str,
    ) -> bytes:
        """Decrypt Base64 text into bytes.

        Raises:
            DecodingError: If ``text`` is not valid Base64.
            KeyDerivationError: If the password cannot derive a key.
            CipherInitError: If the cipher cannot be initialized.
            CryptoOperationError: If the transform fails, typically bad
                padding from a wrong password or corrupted ciphertext.
        """
        try:
            data = b64decode(text)
            cipher = self._context_cipher(context, password, CipherMode.DECRYPT)
            return cipher.do_final(data)
        except CryptoError as err:
            logger.error("Decryption failed: %s", err.__class__.__name__)
            raise
        except Exception as err:
            logger.error("Decryption failed: %s", err.__class__.__name__)
            raise CryptoOperationError(
                f"Decryption failed: {err.__class__.__name__}"
            ) from err

    def decrypt_as_string(
        self,
        context: Optional[CryptoContext],
        password: str,
        text: str,
    ) -> str:
        """Decrypt Base64 text and decode the result as UTF-8.

        Raises:
            DecodingError: If the input is not Base64 or the plaintext is
                not valid UTF-8.
        """
        data = self.decrypt(context, password, text)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as err:
            raise DecodingError("Decrypted bytes are not valid UTF-8") from err

    def encrypt_value(
        self,
        context: Optional[CryptoContext],
        password: str,
        value: Any,
    ) -> str:
        """Serialize ``value`` with orjson and encrypt it."""
        return self.encrypt(context, password, serialize_value(value))

    def decrypt_value(
        self,
        context: Optional[CryptoContext],
        password: str,
        text: str,
    ) -> Any:
        """Decrypt text produced by ``encrypt_value`` back into a value."""
        return deserialize_value(self.decrypt(context, password, text))


# Default service backing the module-level functions.
default_secure = SecureUtils()


def get_encrypting_cipher(
    password: str, cache_cipher: Optional[bool] = None
) -> CipherHandle:
    return default_secure.get_encrypting_cipher(password, cache_cipher)


def get_decrypting_cipher(
    password: str, cache_cipher: Optional[bool] = None
) -> CipherHandle:
    return default_secure.get_decrypting_cipher(password, cache_cipher)


def encrypt(context: Optional[CryptoContext], password: str, payload: Payload) -> str:
    return default_secure.encrypt(context, password, payload)


def decrypt(context: Optional[CryptoContext], password: str, text: str) -> bytes:
    return default_secure.decrypt(context, password, text)


def decrypt_as_string(
    context: Optional[CryptoContext], password: str, text: str
) -> str:
    return default_secure.decrypt_as_string(context, password, text)


def encrypt_value(context: Optional[CryptoContext], password: str, value: Any) -> str:
    return default_secure.encrypt_value(context, password, value)


def decrypt_value(context: Optional[CryptoContext], password: str, text: str) -> Any:
    return default_secure.decrypt_value(context, password, text)
