"""
Encryption of external-system credentials stored at rest.
"""
import base64
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from app.core.config import settings


class CredentialDecryptionError(Exception):
    """Raised when a stored credential cannot be decrypted."""
    pass


class CredentialCipher:
    """Encrypts and decrypts external system passwords with Fernet."""
    
    def __init__(self, encryption_key: Optional[bytes] = None):
        if encryption_key:
            self.fernet = Fernet(encryption_key)
        else:
            self.fernet = Fernet(Fernet.generate_key())
    
    @classmethod
    def from_password(cls, password: str, salt: bytes) -> 'CredentialCipher':
        """Create a cipher from a password-derived key."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=100000,
        )
        key = base64.urlsafe_b64encode(kdf.derive(password.encode()))
        return cls(key)
    
    @classmethod
    def from_settings(cls) -> 'CredentialCipher':
        """Build the application cipher from configured key material."""
        if settings.CREDENTIALS_ENCRYPTION_KEY:
            return cls(settings.CREDENTIALS_ENCRYPTION_KEY.encode())
        return cls.from_password(settings.SECRET_KEY, settings.CREDENTIALS_KEY_SALT.encode())
    
    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string."""
        return self.fernet.encrypt(plaintext.encode()).decode()
    
    def decrypt(self, encrypted_text: str) -> str:
        """Decrypt a string."""
        try:
            return self.fernet.decrypt(encrypted_text.encode()).decode()
        except InvalidToken:
            # Never echo the ciphertext back
            raise CredentialDecryptionError(
                "Stored credential could not be decrypted; re-enter the password"
            ) from None


_cipher: Optional[CredentialCipher] = None


def get_credential_cipher() -> CredentialCipher:
    """Return the process-wide credential cipher."""
    global _cipher
    if _cipher is None:
        _cipher = CredentialCipher.from_settings()
    return _cipher
