"""
Tests for the encrypt/decrypt operations.

Tests cover:
- Round trips of bytes, text and values
- Determinism and cross-password isolation
- Context-scoped and process-wide handle caching
- Concurrent use of a shared handle
- Error translation
"""
from concurrent.futures import ThreadPoolExecutor

import pytest

import navigator_secure
import navigator_secure.secure as secure_module
from navigator_secure import (
    CacheKey,
    CipherCache,
    CipherConfig,
    CipherMode,
    CryptoContext,
    SecureUtils,
    build_cipher,
    b64decode,
    b64encode,
    encrypt,
    decrypt,
    decrypt_as_string,
    generate_random_password,
    CryptoError,
    CryptoOperationError,
    DecodingError,
    EncodingError,
    KeyDerivationError,
)


# --- Round trips ---

class TestRoundTrip:
    """Tests for encrypt followed by decrypt."""

    def test_hello_world(self, context, password):
        text = encrypt(context, password, "hello world".encode("utf-8"))
        assert isinstance(text, str)
        assert decrypt_as_string(context, password, text) == "hello world"

    @pytest.mark.parametrize("payload", [
        b"",
        b"x",
        b"12345678",
        bytes(range(256)),
        b"\x00" * 1000,
    ])
    def test_bytes(self, secure, context, password, payload):
        text = secure.encrypt(context, password, payload)
        assert secure.decrypt(context, password, text) == payload

    def test_text_overload(self, secure, context, password):
        text = secure.encrypt(context, password, "añadir €")
        assert secure.decrypt(context, password, text) == "añadir €".encode("utf-8")
        assert secure.decrypt_as_string(context, password, text) == "añadir €"

    def test_without_context(self, secure, password):
        text = secure.encrypt(None, password, b"no scope")
        assert secure.decrypt(None, password, text) == b"no scope"

    def test_across_contexts(self, secure, password):
        """Test ciphertext from one context decrypts in another."""
        with CryptoContext() as first:
            text = secure.encrypt(first, password, b"payload")
        with CryptoContext() as second:
            assert secure.decrypt(second, password, text) == b"payload"

    def test_accepts_wrapped_base64(self, secure, context, password):
        text = secure.encrypt(context, password, b"a" * 100)
        wrapped = "\n".join(text[i:i + 76] for i in range(0, len(text), 76))
        assert secure.decrypt(context, password, wrapped) == b"a" * 100

    @pytest.mark.parametrize("value", [
        {"user": "jlara", "roles": ["admin"], "active": True},
        [1, 2.5, "three", None],
        "plain text",
        42,
        b"\x00\xffraw",
    ])
    def test_values(self, secure, context, password, value):
        text = secure.encrypt_value(context, password, value)
        assert secure.decrypt_value(context, password, text) == value

    def test_malformed_wrapped_bytes(self, secure, context, password):
        """Test a bad Base64 bytes wrapper fails as a decoding error."""
        text = secure.encrypt_value(
            context, password, {"__secure_bytes_b64__": "abc"}
        )
        with pytest.raises(DecodingError) as excinfo:
            secure.decrypt_value(context, password, text)
        assert excinfo.value.__cause__ is not None

    def test_non_text_wrapped_bytes(self, secure, context, password):
        text = secure.encrypt_value(
            context, password, {"__secure_bytes_b64__": 12}
        )
        with pytest.raises(DecodingError):
            secure.decrypt_value(context, password, text)

    def test_wrapper_shaped_dict_reads_as_bytes(self, secure, context, password):
        text = secure.encrypt_value(
            context, password, {"__secure_bytes_b64__": "aGk="}
        )
        assert secure.decrypt_value(context, password, text) == b"hi"

    def test_unserializable_value(self, secure, context, password):
        with pytest.raises(EncodingError):
            secure.encrypt_value(context, password, object())


# --- Scheme properties ---

class TestSchemeProperties:
    """Tests for determinism and password isolation."""

    def test_deterministic(self, secure, password):
        with CryptoContext() as first, CryptoContext() as second:
            assert (
                secure.encrypt(first, password, b"hello world")
                == secure.encrypt(second, password, b"hello world")
            )

    def test_known_answer(self, password):
        """Test wire compatibility with PBEWithMD5AndDES ciphertext."""
        assert encrypt(None, password, b"hello world") == "jjHHiFfdb+xRbGMc2NFlQA=="
        assert decrypt(None, password, "jjHHiFfdb+xRbGMc2NFlQA==") == b"hello world"
        assert decrypt_as_string(
            None, password, "jjHHiFfdb+xRbGMc2NFlQA=="
        ) == "hello world"

    def test_matches_fresh_handle(self, secure, context, password):
        fresh = build_cipher(password, CipherMode.ENCRYPT)
        expected = b64encode(fresh.do_final(b"hello world"))
        assert secure.encrypt(context, password, b"hello world") == expected

    def test_password_changes_ciphertext(self, secure, context):
        assert (
            secure.encrypt(context, "secret123", b"hello world")
            != secure.encrypt(context, "secret124", b"hello world")
        )

    def test_wrong_password(self, secure, context, password):
        """Test a wrong password faults or yields something else."""
        text = secure.encrypt(context, password, b"hello world")
        try:
            result = secure.decrypt(context, "wrong-pw", text)
        except CryptoOperationError:
            return
        assert result != b"hello world"

    def test_wrong_password_as_string(self, secure, context, password):
        text = secure.encrypt(context, password, "hello world")
        try:
            result = secure.decrypt_as_string(context, "wrong-pw", text)
        except (CryptoOperationError, DecodingError):
            return
        assert result != "hello world"

    def test_custom_config_is_incompatible(self, context, password):
        default = SecureUtils()
        other = SecureUtils(config=CipherConfig(iteration_count=1000))
        text = default.encrypt(context, password, b"hello world")
        with CryptoContext() as other_ctx:
            try:
                result = other.decrypt(other_ctx, password, text)
            except CryptoOperationError:
                return
        assert result != b"hello world"


# --- Caching ---

class TestCaching:
    """Tests for handle caching in the context and process-wide."""

    def test_handle_stored_in_context(self, secure, context, password):
        secure.encrypt(context, password, b"payload")
        key = CacheKey("Encryption cipher", password)
        assert key in context
        assert CacheKey("Decryption cipher", password) not in context

    def test_context_handle_reused(self, secure, context, password):
        secure.encrypt(context, password, b"one")
        key = CacheKey("Encryption cipher", password)
        handle = secure.object_cache.find_valid(context, key, 0)
        secure.encrypt(context, password, b"two")
        assert secure.object_cache.find_valid(context, key, 0) is handle

    def test_decrypt_category(self, secure, context, password):
        text = secure.encrypt(context, password, b"payload")
        secure.decrypt(context, password, text)
        assert CacheKey("Decryption cipher", password) in context
        assert len(context) == 2

    def test_context_and_process_caches_independent(self, secure, context, password):
        secure.encrypt(context, password, b"payload")
        key = CacheKey("Encryption cipher", password)
        scoped = secure.object_cache.find_valid(context, key, 0)
        assert secure.get_encrypting_cipher(password) is not scoped
        assert len(secure.cipher_cache) == 1

    def test_accessor_identity(self, secure, password):
        assert secure.get_encrypting_cipher(password, True) is \
            secure.get_encrypting_cipher(password, True)
        assert secure.get_decrypting_cipher(password, False) is not \
            secure.get_decrypting_cipher(password, False)

    def test_accessor_default_from_config(self, password):
        secure = SecureUtils(config=CipherConfig(cache_ciphers=False))
        assert secure.get_encrypting_cipher(password) is not \
            secure.get_encrypting_cipher(password)

    def test_injected_cipher_cache(self, password):
        cache = CipherCache()
        secure = SecureUtils(cipher_cache=cache)
        handle = secure.get_decrypting_cipher(password)
        assert cache.get_decrypting_cipher(password) is handle

    def test_module_accessors(self, password):
        assert navigator_secure.get_encrypting_cipher(password, True) is \
            navigator_secure.get_encrypting_cipher(password, True)
        assert navigator_secure.get_encrypting_cipher(password, False) is not \
            navigator_secure.get_encrypting_cipher(password, False)

    def test_module_accessors_follow_config(self, password, monkeypatch):
        """Test module accessors default to config.cache_ciphers."""
        assert secure_module.get_decrypting_cipher(password) is \
            secure_module.get_decrypting_cipher(password)
        monkeypatch.setattr(
            secure_module, "default_secure",
            SecureUtils(config=CipherConfig(cache_ciphers=False)),
        )
        assert secure_module.get_decrypting_cipher(password) is not \
            secure_module.get_decrypting_cipher(password)


# --- Concurrency ---

class TestConcurrency:
    """Tests for shared handles under threads."""

    def test_concurrent_encrypt_shared_handle(self, secure, context, password):
        payloads = [f"payload-{i}".encode() * (i + 1) for i in range(64)]
        fresh = build_cipher(password, CipherMode.ENCRYPT)
        expected = [b64encode(fresh.do_final(p)) for p in payloads]

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(
                lambda p: secure.encrypt(context, password, p), payloads
            ))
        assert results == expected
        assert len(context) == 1

    def test_concurrent_roundtrip(self, secure, context, password):
        payloads = [f"message {i}".encode() for i in range(64)]

        def roundtrip(payload):
            return secure.decrypt(
                context, password, secure.encrypt(context, password, payload)
            )

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(roundtrip, payloads))
        assert results == payloads


# --- Errors ---

class TestErrors:
    """Tests for error translation."""

    def test_malformed_base64(self, secure, context, password):
        with pytest.raises(DecodingError) as excinfo:
            secure.decrypt(context, password, "not-valid-base64")
        assert excinfo.value.__cause__ is not None

    def test_malformed_base64_module_level(self, context, password):
        with pytest.raises(DecodingError):
            decrypt(context, password, "not-valid-base64")

    def test_bad_block_length(self, secure, context, password):
        with pytest.raises(CryptoOperationError):
            secure.decrypt(context, password, b64encode(b"12345"))

    def test_empty_ciphertext(self, secure, context, password):
        with pytest.raises(CryptoOperationError):
            secure.decrypt(context, password, "")

    def test_unencodable_text(self, secure, context, password):
        """Test lone surrogates cannot be encoded as UTF-8."""
        with pytest.raises(EncodingError):
            secure.encrypt(context, password, "bad \ud800 text")

    def test_invalid_utf8_plaintext(self, secure, context, password):
        text = secure.encrypt(context, password, b"\xff\xfe\xfd")
        with pytest.raises(DecodingError):
            secure.decrypt_as_string(context, password, text)

    @pytest.mark.parametrize("bad", [None, ""])
    def test_missing_password(self, secure, context, bad):
        with pytest.raises(KeyDerivationError):
            secure.encrypt(context, bad, b"payload")

    def test_failed_build_not_cached(self, secure, context):
        with pytest.raises(KeyDerivationError):
            secure.encrypt(context, "", b"payload")
        assert context.empty is True

    def test_errors_share_base(self):
        for exc in (CryptoOperationError, DecodingError, EncodingError, KeyDerivationError):
            assert issubclass(exc, CryptoError)
            assert issubclass(exc, RuntimeError)

    def test_unexpected_payload_type(self, secure, context, password):
        with pytest.raises(CryptoError):
            secure.encrypt(context, password, 12345)


# --- Password generation ---

class TestGeneratePassword:
    """Tests for random password generation."""

    def test_is_decimal_long(self):
        value = generate_random_password()
        assert -2 ** 63 <= int(value) < 2 ** 63

    def test_varies(self):
        assert len({generate_random_password() for _ in range(20)}) > 1

    def test_usable_as_password(self, secure, context):
        pw = generate_random_password()
        text = secure.encrypt(context, pw, b"payload")
        assert secure.decrypt(context, pw, text) == b"payload"
        assert b64decode(text)
