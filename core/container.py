"""
Encrypted container codec

A container is a single flat byte sequence:

    offset 0..16   salt (random per encoding)
    offset 16..28  nonce (random per encoding)
    offset 28..end ciphertext || 16-byte authentication tag

The key is derived from a user password with PBKDF2-HMAC-SHA256 and the
payload is sealed with AES-256-GCM. The codec is pure: no I/O and no state,
every call receives its password explicitly.
"""
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from core.exceptions import DecryptionFailed, MalformedContainer

SALT_LENGTH = 16
NONCE_LENGTH = 12
TAG_LENGTH = 16
HEADER_LENGTH = SALT_LENGTH + NONCE_LENGTH
KEY_LENGTH = 32
PBKDF2_ITERATIONS = 100_000

# Label sent by clients as ``client_encryption_algo``
ALGORITHM = "AES-256-GCM+PBKDF2-SHA256"


def derive_key(
    password: str, salt: bytes, iterations: int = PBKDF2_ITERATIONS
) -> bytes:
    """
    Derive a 256-bit key from a password and salt

    Args:
        password: User chosen password (UTF-8 encoded before hashing)
        salt: 16 random bytes stored in the container header
        iterations: PBKDF2 iteration count

    Returns:
        32 byte key
    """
    if len(salt) != SALT_LENGTH:
        raise ValueError(f"Salt must be {SALT_LENGTH} bytes, got {len(salt)}")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


def split_container(container: bytes) -> tuple[bytes, bytes, bytes]:
    """
    Split a container into (salt, nonce, ciphertext_and_tag)

    Raises:
        MalformedContainer: If the container cannot hold a salt and a nonce
    """
    if len(container) < HEADER_LENGTH:
        raise MalformedContainer(
            f"Container must be at least {HEADER_LENGTH} bytes, got {len(container)}"
        )
    salt = bytes(container[:SALT_LENGTH])
    nonce = bytes(container[SALT_LENGTH:HEADER_LENGTH])
    return salt, nonce, bytes(container[HEADER_LENGTH:])


def encode(plaintext: bytes, password: str) -> bytes:
    """
    Encrypt plaintext under a password into a self-describing container

    A fresh salt and nonce are drawn for every call, so two encodings of the
    same plaintext with the same password never produce the same bytes.
    """
    salt = os.urandom(SALT_LENGTH)
    nonce = os.urandom(NONCE_LENGTH)
    key = derive_key(password, salt)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)
    return salt + nonce + ciphertext


def decode(container: bytes, password: str) -> bytes:
    """
    Recover the plaintext of a container

    Raises:
        MalformedContainer: If the container is shorter than 28 bytes
        DecryptionFailed: Wrong password or tampered container
    """
    salt, nonce, ciphertext = split_container(container)
    key = derive_key(password, salt)
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag:
        raise DecryptionFailed() from None
