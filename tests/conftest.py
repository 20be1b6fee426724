import pytest

from navigator_secure import CryptoContext, SecureUtils


@pytest.fixture
def context():
    """Create a fresh CryptoContext, closed after the test."""
    with CryptoContext() as ctx:
        yield ctx


@pytest.fixture
def secure():
    """Create a SecureUtils service with its own caches."""
    return SecureUtils()


@pytest.fixture
def password():
    return "secret123"
