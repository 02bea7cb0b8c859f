"""
Tests for the encrypted container codec
"""
import hashlib
import os

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from core import container
from core.exceptions import DecryptionFailed, MalformedContainer


class TestDeriveKey:
    """Tests for password based key derivation"""

    def test_matches_pbkdf2_hmac_sha256(self):
        """Key equals PBKDF2-HMAC-SHA256 with 100000 iterations and 32 bytes"""
        salt = bytes(range(16))
        expected = hashlib.pbkdf2_hmac("sha256", b"correct horse", salt, 100_000, 32)
        assert container.derive_key("correct horse", salt) == expected

    def test_password_is_utf8_encoded(self):
        """Non-ASCII passwords are hashed as UTF-8"""
        salt = b"\x01" * 16
        expected = hashlib.pbkdf2_hmac("sha256", "pässwörd".encode("utf-8"), salt, 100_000, 32)
        assert container.derive_key("pässwörd", salt) == expected

    def test_rejects_wrong_salt_length(self):
        """Salt must be exactly 16 bytes"""
        with pytest.raises(ValueError):
            container.derive_key("pw", b"short")


class TestEncodeDecode:
    """Round trips and container layout"""

    @pytest.mark.parametrize(
        "plaintext",
        [b"", b"a", b"hello world", os.urandom(4096)],
    )
    def test_round_trip(self, plaintext):
        """decode(encode(p, w), w) == p"""
        sealed = container.encode(plaintext, "secret")
        assert container.decode(sealed, "secret") == plaintext

    def test_layout(self):
        """Container is salt || nonce || ciphertext || tag"""
        plaintext = b"layout check"
        sealed = container.encode(plaintext, "secret")
        assert len(sealed) == 16 + 12 + len(plaintext) + 16

        salt, nonce, body = container.split_container(sealed)
        assert len(salt) == 16
        assert len(nonce) == 12
        key = hashlib.pbkdf2_hmac("sha256", b"secret", salt, 100_000, 32)
        assert AESGCM(key).decrypt(nonce, body, None) == plaintext

    def test_decodes_container_built_independently(self):
        """A container assembled by another client decodes"""
        salt = os.urandom(16)
        nonce = os.urandom(12)
        key = hashlib.pbkdf2_hmac("sha256", b"browser-password", salt, 100_000, 32)
        sealed = salt + nonce + AESGCM(key).encrypt(nonce, b"from the browser", None)

        assert container.decode(sealed, "browser-password") == b"from the browser"

    def test_encodings_differ(self):
        """Fresh salt and nonce make every encoding different"""
        first = container.encode(b"same content", "same password")
        second = container.encode(b"same content", "same password")
        assert first != second
        assert first[:16] != second[:16]
        assert first[16:28] != second[16:28]


class TestDecodeFailures:
    """Failure semantics of decode"""

    def test_wrong_password(self):
        """A different password fails with DecryptionFailed"""
        sealed = container.encode(b"top secret", "password-1")
        with pytest.raises(DecryptionFailed):
            container.decode(sealed, "password-2")

    @pytest.mark.parametrize("length", [0, 1, 16, 27])
    def test_too_short_is_malformed(self, length):
        """Fewer than 28 bytes fails with MalformedContainer"""
        with pytest.raises(MalformedContainer):
            container.decode(b"\x00" * length, "pw")

    def test_header_only_fails_decryption(self):
        """28 bytes has no tag to verify"""
        with pytest.raises(DecryptionFailed):
            container.decode(os.urandom(28), "pw")

    def test_bit_flips_are_detected(self):
        """Flipping a bit in salt, nonce, ciphertext or tag never yields plaintext"""
        plaintext = b"integrity"
        sealed = container.encode(plaintext, "pw")
        ciphertext_start = 28
        tag_start = len(sealed) - 16
        positions = [
            (0, 0), (15, 7),                      # salt
            (16, 0), (27, 3),                     # nonce
            (ciphertext_start, 0), (ciphertext_start + 4, 5),
            (tag_start, 0), (len(sealed) - 1, 7),  # tag
        ]
        for index, bit in positions:
            tampered = bytearray(sealed)
            tampered[index] ^= 1 << bit
            with pytest.raises(DecryptionFailed):
                container.decode(bytes(tampered), "pw")

    def test_truncated_container(self):
        """Dropping the last byte breaks the tag"""
        sealed = container.encode(b"truncate me", "pw")
        with pytest.raises(DecryptionFailed):
            container.decode(sealed[:-1], "pw")

    def test_failures_are_indistinguishable(self):
        """Wrong password and tampering raise the same message"""
        sealed = container.encode(b"data", "pw")
        tampered = bytearray(sealed)
        tampered[-1] ^= 0x01

        with pytest.raises(DecryptionFailed) as wrong_password:
            container.decode(sealed, "not-pw")
        with pytest.raises(DecryptionFailed) as tampered_error:
            container.decode(bytes(tampered), "pw")

        assert str(wrong_password.value) == str(tampered_error.value)
        assert wrong_password.value.__cause__ is None
