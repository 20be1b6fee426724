"""
Cipher Cache — Process-lifetime memoization of cipher handles.

Two independent maps, one per direction, each guarded by its own lock.
The lock covers the whole lookup-build-store sequence, so concurrent
first use of a password builds exactly one handle and every caller
gets the same instance.

``CipherPool`` is the alternative for hot passwords: instead of sharing
one handle (and its lock) among all callers, a bounded set of handles
is checked out one per call.
"""
import logging
import threading
from contextlib import contextmanager
from collections.abc import Iterator
from typing import Optional

from .config import CipherConfig, DEFAULT_CONFIG
from .crypto import CipherHandle, CipherMode, build_cipher

logger = logging.getLogger("navigator.secure")


class CipherCache:
    """Dual-mode password → CipherHandle cache.

    Owned by the host application and injected where needed; a default
    instance backs the module-level accessors in ``navigator_secure``.
    Entries live until ``clear()`` or process exit.
    """

    def __init__(self, config: Optional[CipherConfig] = None):
        self._config = config or DEFAULT_CONFIG
        self._maps: dict[CipherMode, dict[str, CipherHandle]] = {
            CipherMode.ENCRYPT: {},
            CipherMode.DECRYPT: {},
        }
        self._locks: dict[CipherMode, threading.Lock] = {
            CipherMode.ENCRYPT: threading.Lock(),
            CipherMode.DECRYPT: threading.Lock(),
        }

    @property
    def config(self) -> CipherConfig:
        return self._config

    def get_or_create(
        self,
        password: str,
        mode: CipherMode,
        cache_enabled: bool = True,
    ) -> CipherHandle:
        """Return the cached handle for ``password``, building it on a miss.

        Args:
            password: Encryption password (also the cache key).
            mode: ENCRYPT or DECRYPT; selects the map.
            cache_enabled: If False, always build a fresh, unstored handle.

        Raises:
            KeyDerivationError: If the password cannot derive a key.
            CipherInitError: If the cipher cannot be initialized.
        """
        mode = CipherMode(mode)
        if not cache_enabled:
            return build_cipher(password, mode, self._config)
        with self._locks[mode]:
            cipher_map = self._maps[mode]
            handle = cipher_map.get(password)
            if handle is None:
                logger.debug("Cipher cache miss (%s)", mode.value)
                handle = build_cipher(password, mode, self._config)
                cipher_map[password] = handle
            return handle

    def get_encrypting_cipher(
        self, password: str, cache_cipher: bool = True
    ) -> CipherHandle:
        return self.get_or_create(password, CipherMode.ENCRYPT, cache_cipher)

    def get_decrypting_cipher(
        self, password: str, cache_cipher: bool = True
    ) -> CipherHandle:
        return self.get_or_create(password, CipherMode.DECRYPT, cache_cipher)

    def clear(self) -> None:
        """Drop every cached handle, in both modes."""
        for mode, lock in self._locks.items():
            with lock:
                self._maps[mode].clear()

    def __len__(self) -> int:
        return sum(len(m) for m in self._maps.values())

    def __contains__(self, item: object) -> bool:
        try:
            password, mode = item  # type: ignore[misc]
            mode = CipherMode(mode)
        except (TypeError, ValueError):
            return False
        with self._locks[mode]:
            return password in self._maps[mode]

    def __repr__(self) -> str:
        return (
            f"<CipherCache encrypt={len(self._maps[CipherMode.ENCRYPT])} "
            f"decrypt={len(self._maps[CipherMode.DECRYPT])}>"
        )


class CipherPool:
    """Bounded pool of handles for one password and direction.

    Handles are built lazily, up to ``size``; ``checkout()`` blocks while
    every built handle is in use and the pool is full.
    """

    def __init__(
        self,
        password: str,
        mode: CipherMode,
        size: Optional[int] = None,
        config: Optional[CipherConfig] = None,
    ):
        self._config = config or DEFAULT_CONFIG
        self._password = password
        self._mode = CipherMode(mode)
        self._size = size if size is not None else self._config.pool_size
        if self._size < 1:
            raise ValueError("CipherPool size must be at least 1")
        self._idle: list[CipherHandle] = []
        self._created = 0
        self._cond = threading.Condition()

    @property
    def mode(self) -> CipherMode:
        return self._mode

    @property
    def size(self) -> int:
        return self._size

    @property
    def created(self) -> int:
        """Number of handles built so far."""
        with self._cond:
            return self._created

    @property
    def available(self) -> int:
        """Idle handles plus handles that may still be built."""
        with self._cond:
            return len(self._idle) + (self._size - self._created)

    def _acquire(self) -> CipherHandle:
        with self._cond:
            while not self._idle and self._created >= self._size:
                self._cond.wait()
            if self._idle:
                return self._idle.pop()
            # reserve a slot before building outside the lock
            self._created += 1
        try:
            return build_cipher(self._password, self._mode, self._config)
        except Exception:
            with self._cond:
                self._created -= 1
                self._cond.notify()
            raise

    def _release(self, handle: CipherHandle) -> None:
        with self._cond:
            self._idle.append(handle)
            self._cond.notify()

    @contextmanager
    def checkout(self) -> Iterator[CipherHandle]:
        """Borrow a handle exclusively for the duration of the block."""
        handle = self._acquire()
        try:
            yield handle
        finally:
            self._release(handle)

    def do_final(self, data: bytes) -> bytes:
        """Transform ``data`` with a pooled handle."""
        with self.checkout() as handle:
            return handle.do_final(data)

    def __repr__(self) -> str:
        return (
            f"<CipherPool mode={self._mode.value} size={self._size} "
            f"created={self._created}>"
        )
