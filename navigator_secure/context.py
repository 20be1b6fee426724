"""
Crypto Context — Request-scoped storage for cipher handles.

A ``CryptoContext`` is created per request (or per unit of work), passed
through every encrypt/decrypt call, and closed at the end. Anything
stored in it lives exactly as long as the context. ``ObjectCache``
stores and finds objects in a context under a compound key and a
validity stamp.
"""
import uuid
import logging
import threading
from datetime import datetime, timezone
from collections import OrderedDict
from collections.abc import Hashable, Iterator, MutableMapping
from typing import Any, NamedTuple, Optional

logger = logging.getLogger("navigator.secure")

# Stamp used by the encrypt/decrypt operations: valid for the whole scope.
VALIDITY = 0

ENCRYPTION_CATEGORY = "Encryption cipher"
DECRYPTION_CATEGORY = "Decryption cipher"


class CacheKey(NamedTuple):
    """Compound cache key: a category tag plus a key within it."""
    category: str
    key: Hashable

    def __repr__(self) -> str:
        # key is usually a password
        return f"CacheKey(category={self.category!r}, key=<redacted>)"


class CryptoContext(MutableMapping[Hashable, Any]):
    """Request-scoped, in-memory object storage.

    Objects are never serialized or persisted. If ``max_objects`` is set,
    the least recently used entry is evicted once the bound is exceeded.
    The context can be used as a ``with`` block; leaving it closes the
    context and drops everything it holds.
    """

    def __init__(
        self,
        id: Optional[str] = None,
        max_objects: Optional[int] = None,
    ) -> None:
        if max_objects is not None and max_objects < 1:
            raise ValueError("max_objects must be at least 1")
        self._id_ = id or uuid.uuid4().hex
        self._objects: OrderedDict[Hashable, Any] = OrderedDict()
        self._max_objects = max_objects
        self._lock = threading.RLock()
        self._closed = False
        self.__created__ = datetime.now(timezone.utc)
        self._created = int(self.__created__.timestamp())

    def __repr__(self) -> str:
        return (
            f'<Crypto-Context [id:{self._id_}, closed:{self._closed}] '
            f'objects={len(self._objects)}>'
        )

    # --- Properties ---

    @property
    def context_id(self) -> str:
        return self._id_

    @property
    def created(self) -> int:
        return self._created

    @property
    def created_at(self) -> datetime:
        return self.__created__

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def empty(self) -> bool:
        return not bool(self._objects)

    @property
    def max_objects(self) -> Optional[int]:
        return self._max_objects

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    # --- Lifecycle ---

    def invalidate(self) -> None:
        """Drop every stored object; the context stays usable."""
        with self._lock:
            self._objects.clear()

    def close(self) -> None:
        """Drop every stored object and refuse further writes."""
        with self._lock:
            self._objects.clear()
            self._closed = True
        logger.debug("Crypto context %s closed", self._id_)

    def __enter__(self) -> "CryptoContext":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # --- Magic Methods ---

    def __len__(self) -> int:
        return len(self._objects)

    def __iter__(self) -> Iterator[Hashable]:
        with self._lock:
            keys = list(self._objects)
        return iter(keys)

    def __contains__(self, key: object) -> bool:
        return key in self._objects

    def __getitem__(self, key: Hashable) -> Any:
        with self._lock:
            value = self._objects[key]
            self._objects.move_to_end(key)
            return value

    def __setitem__(self, key: Hashable, value: Any) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError(f"Crypto context {self._id_} is closed")
            self._objects[key] = value
            self._objects.move_to_end(key)
            if self._max_objects is not None:
                while len(self._objects) > self._max_objects:
                    self._objects.popitem(last=False)
                    logger.debug(
                        "Crypto context %s evicted an entry (max_objects=%d)",
                        self._id_, self._max_objects,
                    )

    def __delitem__(self, key: Hashable) -> None:
        with self._lock:
            del self._objects[key]


class _Entry(NamedTuple):
    validity: int
    value: Any


class ObjectCache:
    """Validity-stamped lookups over a ``CryptoContext``.

    An entry is valid when its stamp is not older than the stamp asked
    for. A ``None`` context has no scope: nothing is stored or found.
    """

    def find_valid(
        self,
        context: Optional[CryptoContext],
        key: CacheKey,
        validity: int,
    ) -> Optional[Any]:
        if context is None:
            return None
        entry = context.get(key)
        if entry is None or entry.validity < validity:
            return None
        return entry.value

    def add(
        self,
        context: Optional[CryptoContext],
        key: CacheKey,
        validity: int,
        value: Any,
    ) -> None:
        if context is None or context.closed:
            return
        context[key] = _Entry(validity, value)

    def get_or_add(
        self,
        context: Optional[CryptoContext],
        key: CacheKey,
        validity: int,
        factory,
    ) -> Any:
        """Find a valid entry, or build one with ``factory()`` and add it.

        The lookup and the store run under the context lock, so one
        context never builds two objects for the same key.
        """
        if context is None:
            return factory()
        with context.lock:
            value = self.find_valid(context, key, validity)
            if value is None:
                logger.debug("Context cache miss (%s)", key.category)
                value = factory()
                self.add(context, key, validity, value)
            return value
