"""
Secure Crypto Core — Key derivation, cipher construction and Base64 text.

Implements the PKCS #5 v1.5 PBES1 scheme known as PBEWithMD5AndDES:
- Key derivation: PBKDF1-MD5(password, salt, iterations) → 16 bytes
  (first 8 bytes DES key, last 8 bytes CBC IV)
- Cipher: DES-CBC with PKCS #5 padding

Output is compatible with ciphertext produced by the Java
``PBEWithMD5AndDES`` provider for the same salt and iteration count.

Security Note:
    This scheme is unauthenticated and uses a fixed salt, so the IV is
    fixed per password. Decrypting with a wrong password is not detected
    reliably: it fails on padding or silently returns garbage.
    Never log passwords, keys, plaintext or ciphertext.
"""
import base64
import logging
import threading
from enum import Enum
from typing import Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, modes
from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES

from .config import CipherConfig, DEFAULT_CONFIG
from .exceptions import (
    KeyDerivationError,
    CipherInitError,
    CryptoOperationError,
    DecodingError,
)

logger = logging.getLogger("navigator.secure")

DES_KEY_SIZE = 8
DES_BLOCK_BITS = 64  # DES block, also the PKCS #5 padding unit
DERIVED_KEY_SIZE = 16  # DES key + IV

BytesLike = Union[bytes, bytearray, memoryview]


class CipherMode(str, Enum):
    """Direction a cipher handle is bound to."""
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


def zero_memory(buf: Optional[bytearray]) -> None:
    """Best-effort zeroization of a mutable buffer."""
    if buf is None:
        return
    for i in range(len(buf)):
        buf[i] = 0


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

class DerivedKey:
    """PBKDF1 output: an 8-byte DES key followed by an 8-byte IV.

    Material is held in a bytearray so it can be wiped once the cipher
    has been initialized.
    """

    __slots__ = ("_material",)

    def __init__(self, material: BytesLike):
        if len(material) != DERIVED_KEY_SIZE:
            raise ValueError(
                f"derived key must be {DERIVED_KEY_SIZE} bytes, "
                f"got {len(material)}"
            )
        self._material = bytearray(material)

    @property
    def key(self) -> bytes:
        return bytes(self._material[:DES_KEY_SIZE])

    @property
    def iv(self) -> bytes:
        return bytes(self._material[DES_KEY_SIZE:])

    @property
    def wiped(self) -> bool:
        return not any(self._material)

    def wipe(self) -> None:
        zero_memory(self._material)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DerivedKey):
            return NotImplemented
        return self._material == other._material

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return "<DerivedKey [redacted]>"


def _encode_password(password: Optional[str]) -> bytes:
    """Encode a password the way PBES1 expects: one byte per character.

    Raises:
        KeyDerivationError: If the password is missing, empty or holds
            characters outside printable ASCII.
    """
    if password is None:
        raise KeyDerivationError("Password is required for key derivation")
    if not isinstance(password, str):
        raise KeyDerivationError(
            f"Password must be str, got {type(password).__name__}"
        )
    if not password:
        raise KeyDerivationError("Password cannot be empty")
    if any(ch < " " or ch > "~" for ch in password):
        raise KeyDerivationError("Password is not printable ASCII")
    return password.encode("ascii")


def derive_key(
    password: Optional[str],
    config: Optional[CipherConfig] = None,
) -> DerivedKey:
    """Derive DES key material using PBKDF1 with MD5.

    ``dk = MD5(password || salt)``, then ``dk = MD5(dk)`` for the
    remaining iterations. Deterministic for a given config.

    Args:
        password: Printable ASCII password.
        config: Salt and iteration count; defaults to the fixed parameters.

    Returns:
        DerivedKey holding the DES key and IV.

    Raises:
        KeyDerivationError: If the password is invalid or MD5 is
            unavailable in the crypto backend.
    """
    config = config or DEFAULT_CONFIG
    pw_bytes = _encode_password(password)
    try:
        digest = hashes.Hash(hashes.MD5())
        digest.update(pw_bytes)
        digest.update(config.salt)
        dk = digest.finalize()
        for _ in range(config.iteration_count - 1):
            digest = hashes.Hash(hashes.MD5())
            digest.update(dk)
            dk = digest.finalize()
    except UnsupportedAlgorithm as err:
        raise KeyDerivationError(
            "MD5 is not available in the crypto backend"
        ) from err
    return DerivedKey(dk)


# ---------------------------------------------------------------------------
# Cipher handles
# ---------------------------------------------------------------------------

class CipherHandle:
    """A cipher bound to one derived key and one direction.

    ``do_final`` runs a complete transform (pad + encrypt, or decrypt +
    unpad) while holding the handle's own lock, so a handle shared by
    many threads serializes their calls.
    """

    __slots__ = ("_mode", "_cipher", "_lock")

    def __init__(self, key: DerivedKey, mode: CipherMode):
        self._mode = CipherMode(mode)
        # K1 = K2 = K3 makes TripleDES run as single DES.
        self._cipher = Cipher(TripleDES(key.key * 3), modes.CBC(key.iv))
        self._lock = threading.Lock()

    @property
    def mode(self) -> CipherMode:
        return self._mode

    @property
    def lock(self) -> threading.Lock:
        return self._lock

    def do_final(self, data: BytesLike) -> bytes:
        """Transform ``data`` in one shot.

        Raises:
            CryptoOperationError: On bad block length or bad padding.
        """
        with self._lock:
            try:
                if not isinstance(data, (bytes, bytearray, memoryview)):
                    raise TypeError(
                        f"data must be bytes, got {type(data).__name__}"
                    )
                if self._mode is CipherMode.ENCRYPT:
                    return self._encrypt(data)
                return self._decrypt(data)
            except (ValueError, TypeError) as err:
                raise CryptoOperationError(
                    f"Cipher {self._mode.value} failed: {err.__class__.__name__}"
                ) from err

    def _encrypt(self, data: BytesLike) -> bytes:
        padder = padding.PKCS7(DES_BLOCK_BITS).padder()
        padded = padder.update(bytes(data)) + padder.finalize()
        encryptor = self._cipher.encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    def _decrypt(self, data: BytesLike) -> bytes:
        decryptor = self._cipher.decryptor()
        padded = decryptor.update(bytes(data)) + decryptor.finalize()
        unpadder = padding.PKCS7(DES_BLOCK_BITS).unpadder()
        return unpadder.update(padded) + unpadder.finalize()

    def __repr__(self) -> str:
        return f"<CipherHandle mode={self._mode.value} id={id(self):#x}>"


def build_cipher(
    password: Optional[str],
    mode: CipherMode,
    config: Optional[CipherConfig] = None,
) -> CipherHandle:
    """Derive the key for ``password`` and build a fresh cipher handle.

    No caching happens here; every call derives and initializes anew.

    Args:
        password: Printable ASCII password.
        mode: ENCRYPT or DECRYPT.
        config: PBE parameters; defaults to the fixed parameters.

    Returns:
        A new CipherHandle.

    Raises:
        KeyDerivationError: If key derivation fails.
        CipherInitError: If the cipher cannot be initialized.
    """
    key = derive_key(password, config)
    try:
        handle = CipherHandle(key, mode)
    except Exception as err:
        raise CipherInitError(
            f"Cannot initialize cipher: {err.__class__.__name__}"
        ) from err
    finally:
        key.wipe()
    logger.debug("Built %s cipher handle", handle.mode.value)
    return handle


# ---------------------------------------------------------------------------
# Base64 text
# ---------------------------------------------------------------------------

def b64encode(data: BytesLike) -> str:
    """Encode bytes as Base64 text without line breaks."""
    return base64.b64encode(bytes(data)).decode("ascii")


def b64decode(text: str) -> bytes:
    """Decode Base64 text; whitespace (line wrapping) is ignored.

    Raises:
        DecodingError: On any character outside the Base64 alphabet,
            bad padding, or a non-text argument.
    """
    if not isinstance(text, str):
        raise DecodingError(
            f"Base64 input must be str, got {type(text).__name__}"
        )
    cleaned = "".join(text.split())
    try:
        return base64.b64decode(cleaned, validate=True)
    except ValueError as err:
        raise DecodingError("Malformed Base64 input") from err
