"""
Reversible number encryption.

Hides sequential database ids in URLs and pages: templates call
`encrypt_number(user.id)` and the serving layer calls `decrypt_number` on
the way back in. Tokens are Fernet tokens (AES-128-CBC + HMAC-SHA256) with
the base64 padding stripped so they can be used as path segments.
"""

from cryptography.fernet import Fernet, InvalidToken
from pagetags.config import Config
from pagetags.tags.errors import DecryptionError, TypeMismatch
from pagetags.tags.values import INTEGER_MIN, INTEGER_MAX
import base64
import logging

logger = logging.getLogger(__name__)


def get_encryption_key():
    """
    Return a valid Fernet key as a string.

    Uses ENCRYPTION_KEY when it decodes to exactly 32 bytes, otherwise
    derives a key from SECRET_KEY so every process sharing the secret can
    decrypt the others' tokens.
    """
    key = (Config.ENCRYPTION_KEY or '').strip()

    if key:
        try:
            # Validate base64 URL-safe format
            decoded = base64.urlsafe_b64decode(key)
            if len(decoded) == 32:
                return key
            logger.warning(f"ENCRYPTION_KEY has the wrong size ({len(decoded)} bytes), deriving from SECRET_KEY")
        except ValueError as e:
            logger.warning(f"Invalid ENCRYPTION_KEY: {e}, deriving from SECRET_KEY")

    # Fernet needs exactly 32 bytes, base64 URL-safe encoded
    from hashlib import sha256
    secret_key_bytes = Config.SECRET_KEY.encode('utf-8')
    key_bytes = sha256(secret_key_bytes).digest()
    key = base64.urlsafe_b64encode(key_bytes).decode('utf-8')

    return key


class NumberCipher:
    """
    Encrypts 64-bit signed integers into URL-safe strings and back.

    Tampered or malformed tokens raise DecryptionError instead of decoding
    to a different number.
    """

    PAYLOAD_SIZE = 8

    def __init__(self, key: str = None):
        """
        Args:
            key: Fernet key; defaults to get_encryption_key()
        """
        self._fernet = Fernet(key or get_encryption_key())

    def encrypt_number(self, number: int) -> str:
        """
        Encrypt an integer.

        Returns:
            URL-safe token without padding
        """
        if not INTEGER_MIN <= number <= INTEGER_MAX:
            raise TypeMismatch('64-bit integer', str(number), 'encrypt_number')

        payload = number.to_bytes(self.PAYLOAD_SIZE, 'big', signed=True)
        token = self._fernet.encrypt(payload)

        return token.decode('ascii').rstrip('=')

    def decrypt_number(self, token: str) -> int:
        """
        Decrypt a token produced by encrypt_number.

        Raises:
            DecryptionError: If the token is malformed, tampered with or was
                made with another key
        """
        padded = token + '=' * (-len(token) % 4)

        try:
            payload = self._fernet.decrypt(padded.encode('ascii'))
        except UnicodeEncodeError:
            raise DecryptionError("token contains non-ASCII characters", token) from None
        except InvalidToken:
            raise DecryptionError("invalid or tampered token", token) from None

        if len(payload) != self.PAYLOAD_SIZE:
            raise DecryptionError(f"unexpected payload size {len(payload)}", token)

        return int.from_bytes(payload, 'big', signed=True)
