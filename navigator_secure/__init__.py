"""Navigator Secure — Password-based encryption with cached cipher handles.

Security Note (Threat Model):
    The only supported scheme is PBEWithMD5AndDES with a fixed salt and
    iteration count, kept for compatibility with existing ciphertext.
    It provides confidentiality against casual inspection only: no
    integrity or authentication, a 56-bit key, and a fixed IV per
    password. Derived key buffers are wiped after use, but the cipher
    backend keeps its own copy for as long as a handle is cached.
"""

from .version import __version__
from .exceptions import (
    CryptoError,
    KeyDerivationError,
    CipherInitError,
    EncodingError,
    DecodingError,
    CryptoOperationError,
)
from .config import CipherConfig, SALT, ITERATION_COUNT, CIPHER_TYPE
from .crypto import (
    CipherMode,
    CipherHandle,
    DerivedKey,
    derive_key,
    build_cipher,
    b64encode,
    b64decode,
)
from .cache import CipherCache, CipherPool
from .context import CacheKey, CryptoContext, ObjectCache
from .secure import (
    SecureUtils,
    default_secure,
    encrypt,
    decrypt,
    decrypt_as_string,
    encrypt_value,
    decrypt_value,
    get_encrypting_cipher,
    get_decrypting_cipher,
    generate_random_password,
)

__all__ = [
    "__version__",
    "CryptoError",
    "KeyDerivationError",
    "CipherInitError",
    "EncodingError",
    "DecodingError",
    "CryptoOperationError",
    "CipherConfig",
    "SALT",
    "ITERATION_COUNT",
    "CIPHER_TYPE",
    "CipherMode",
    "CipherHandle",
    "DerivedKey",
    "derive_key",
    "build_cipher",
    "b64encode",
    "b64decode",
    "CipherCache",
    "CipherPool",
    "CacheKey",
    "CryptoContext",
    "ObjectCache",
    "SecureUtils",
    "default_secure",
    "encrypt",
    "decrypt",
    "decrypt_as_string",
    "encrypt_value",
    "decrypt_value",
    "get_encrypting_cipher",
    "get_decrypting_cipher",
    "generate_random_password",
]
