"""
Tests for number encryption
"""

import base64

import pytest
from cryptography.fernet import Fernet

from pagetags.config import Config
from pagetags.tags.errors import DecryptionError, TypeMismatch
from pagetags.tags.values import INTEGER_MAX
from pagetags.utils.encryption import NumberCipher, get_encryption_key


class TestEncryptionKey:
    """Key selection"""

    def test_uses_valid_encryption_key(self, monkeypatch):
        key = Fernet.generate_key().decode('ascii')
        monkeypatch.setattr(Config, 'ENCRYPTION_KEY', key)
        assert get_encryption_key() == key

    def test_derives_from_secret_key(self, monkeypatch):
        monkeypatch.setattr(Config, 'ENCRYPTION_KEY', '')
        monkeypatch.setattr(Config, 'SECRET_KEY', 'secret')

        key = get_encryption_key()

        assert len(base64.urlsafe_b64decode(key)) == 32
        assert key == get_encryption_key()

    def test_invalid_key_falls_back(self, monkeypatch):
        monkeypatch.setattr(Config, 'ENCRYPTION_KEY', 'dG9vLXNob3J0')  # 'too-short'
        monkeypatch.setattr(Config, 'SECRET_KEY', 'secret')

        key = get_encryption_key()

        assert key != 'dG9vLXNob3J0'
        assert len(base64.urlsafe_b64decode(key)) == 32

    def test_same_secret_same_tokens_decrypt(self, monkeypatch):
        """Processes sharing SECRET_KEY can read each other's tokens"""
        monkeypatch.setattr(Config, 'ENCRYPTION_KEY', '')
        monkeypatch.setattr(Config, 'SECRET_KEY', 'shared')

        token = NumberCipher().encrypt_number(99)
        assert NumberCipher().decrypt_number(token) == 99


class TestNumberCipher:
    """Encrypt/decrypt integers"""

    @pytest.fixture
    def cipher(self):
        return NumberCipher(Fernet.generate_key().decode('ascii'))

    def test_round_trip(self, cipher):
        for number in (0, 5, -5, INTEGER_MAX):
            assert cipher.decrypt_number(cipher.encrypt_number(number)) == number

    def test_tokens_differ(self, cipher):
        """Fernet tokens are randomized"""
        assert cipher.encrypt_number(1) != cipher.encrypt_number(1)

    def test_out_of_range(self, cipher):
        with pytest.raises(TypeMismatch):
            cipher.encrypt_number(INTEGER_MAX + 1)

    def test_other_key(self, cipher):
        other = NumberCipher(Fernet.generate_key().decode('ascii'))
        with pytest.raises(DecryptionError):
            other.decrypt_number(cipher.encrypt_number(1))

    def test_non_ascii_token(self, cipher):
        with pytest.raises(DecryptionError):
            cipher.decrypt_number('tökén')

    def test_wrong_payload_size(self, cipher):
        token = cipher._fernet.encrypt(b'abc').decode('ascii').rstrip('=')
        with pytest.raises(DecryptionError, match='payload size'):
            cipher.decrypt_number(token)
