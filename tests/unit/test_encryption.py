"""
Test encryption service functionality.
"""

import pytest

from app.services.infrastructure.encryption_service import (
    EncryptionError,
    decrypt_token,
    encrypt_token,
    generate_new_key,
)


@pytest.fixture
def encryption_key(monkeypatch):
    key = generate_new_key()
    monkeypatch.setattr("app.services.infrastructure.encryption_service.settings.ENCRYPTION_KEY", key)
    return key


def test_basic_encryption_decryption(encryption_key):
    """Test that encryption and decryption work correctly."""
    test_token = "fake_oauth_token_12345"

    encrypted = encrypt_token(test_token)

    assert encrypted != test_token.encode()
    assert decrypt_token(encrypted) == test_token


def test_decrypt_accepts_memoryview(encryption_key):
    encrypted = encrypt_token("gho_abc")
    assert decrypt_token(memoryview(encrypted)) == "gho_abc"


def test_tampered_token_is_rejected(encryption_key):
    encrypted = bytearray(encrypt_token("gho_abc"))
    encrypted[-5] ^= 0x01

    with pytest.raises(EncryptionError):
        decrypt_token(bytes(encrypted))


def test_plaintext_storage_without_key(monkeypatch):
    monkeypatch.setattr("app.services.infrastructure.encryption_service.settings.ENCRYPTION_KEY", None)

    assert encrypt_token("dev-token") == b"dev-token"
    assert decrypt_token(b"dev-token") == "dev-token"


def test_empty_token_is_rejected():
    with pytest.raises(EncryptionError):
        encrypt_token("")
