"""Tests for the FieldEncryptor (Fernet-based flare data encryption)."""

from __future__ import annotations

import pytest
from cryptography.fernet import Fernet

from jvala.core.storage.encryption import EncryptionError, FieldEncryptor


@pytest.fixture
def key() -> str:
    return Fernet.generate_key().decode()


@pytest.fixture
def encryptor(key: str) -> FieldEncryptor:
    return FieldEncryptor(key)


class TestRoundTrip:
    """Verify encrypt → decrypt returns the original data."""

    def test_snapshot_round_trip(self, encryptor: FieldEncryptor):
        data = {"weather": {"temperature": 78, "humidity": 72}, "air_quality": {"aqi": 42}}
        token = encryptor.encrypt(data)
        assert isinstance(token, str)
        assert token != ""
        result = encryptor.decrypt(token)
        assert result == data

    def test_follow_ups_round_trip(self, encryptor: FieldEncryptor):
        data = [
            {"timestamp": "2024-01-01T10:00:00+00:00", "note": "Still throbbing"},
            {"timestamp": "2024-01-01T18:00:00+00:00", "note": "Easing off"},
        ]
        assert encryptor.decrypt(encryptor.encrypt(data)) == data

    def test_string_round_trip(self, encryptor: FieldEncryptor):
        data = "Woke up with stiff joints"
        assert encryptor.decrypt(encryptor.encrypt(data)) == data

    def test_null_round_trip(self, encryptor: FieldEncryptor):
        assert encryptor.encrypt(None) == ""
        assert encryptor.decrypt("") is None

    def test_empty_string_decrypt_returns_none(self, encryptor: FieldEncryptor):
        assert encryptor.decrypt("") is None


class TestKeyValidation:
    def test_empty_key_raises(self):
        with pytest.raises(EncryptionError, match="must not be empty"):
            FieldEncryptor("")

    def test_whitespace_key_raises(self):
        with pytest.raises(EncryptionError, match="must not be empty"):
            FieldEncryptor("   ")

    def test_invalid_key_raises(self):
        with pytest.raises(EncryptionError, match="Invalid encryption key"):
            FieldEncryptor("not-a-valid-fernet-key")


class TestCorruptData:
    def test_wrong_key_cannot_decrypt(self, encryptor: FieldEncryptor):
        token = encryptor.encrypt({"note": "private"})
        other_key = Fernet.generate_key().decode()
        other_encryptor = FieldEncryptor(other_key)
        with pytest.raises(EncryptionError, match="invalid token"):
            other_encryptor.decrypt(token)

    def test_tampered_token_raises(self, encryptor: FieldEncryptor):
        token = encryptor.encrypt({"data": 1})
        tampered = token[:-5] + "XXXXX"
        with pytest.raises(EncryptionError):
            encryptor.decrypt(tampered)

    def test_garbage_token_raises(self, encryptor: FieldEncryptor):
        with pytest.raises(EncryptionError):
            encryptor.decrypt("not-a-valid-token")


class TestGenerateKey:
    def test_generates_valid_key(self):
        key = FieldEncryptor.generate_key()
        assert isinstance(key, str)
        assert len(key) == 44  # base64-encoded 32 bytes

    def test_generated_key_works(self):
        key = FieldEncryptor.generate_key()
        enc = FieldEncryptor(key)
        data = {"test": True}
        assert enc.decrypt(enc.encrypt(data)) == data

    def test_each_key_is_unique(self):
        keys = {FieldEncryptor.generate_key() for _ in range(10)}
        assert len(keys) == 10


class TestUnserializable:
    def test_non_json_value_raises(self, encryptor: FieldEncryptor):
        with pytest.raises(EncryptionError, match="Encryption failed"):
            encryptor.encrypt({"when": object()})

    def test_same_data_produces_different_tokens(self, encryptor: FieldEncryptor):
        """Fernet includes a random IV, so stored notes never repeat ciphertext."""
        t1 = encryptor.encrypt("migraine")
        t2 = encryptor.encrypt("migraine")
        assert t1 != t2
        assert encryptor.decrypt(t1) == encryptor.decrypt(t2) == "migraine"
