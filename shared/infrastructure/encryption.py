"""
Symmetric encryption for guest personal data.

Guest identity document numbers are stored encrypted with Fernet
(AES-128-CBC + HMAC). ``settings.ENCRYPTION_KEY`` may be either a Fernet
key or an arbitrary passphrase, which is stretched with SHA-256.
"""

import base64
import binascii
import hashlib
from functools import lru_cache

from cryptography.fernet import Fernet
from django.core.exceptions import ImproperlyConfigured
from django.conf import settings


def _derive_key(secret: str) -> bytes:
    raw = secret.encode()
    try:
        if len(base64.urlsafe_b64decode(raw)) == 32:
            return raw
    except (binascii.Error, ValueError):
        pass
    return base64.urlsafe_b64encode(hashlib.sha256(raw).digest())


@lru_cache(maxsize=4)
def _fernet_for(secret: str) -> Fernet:
    return Fernet(_derive_key(secret))


def get_fernet() -> Fernet:
    secret = getattr(settings, 'ENCRYPTION_KEY', None)
    if not secret:
        raise ImproperlyConfigured(
            "ENCRYPTION_KEY is not configured. "
            "Generate one with: python -c 'from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())'"
        )
    return _fernet_for(secret)


def encrypt_string(plaintext: str) -> str:
    if not plaintext:
        return ''
    return get_fernet().encrypt(plaintext.encode()).decode()


def decrypt_string(token: str) -> str:
    """Raises ``cryptography.fernet.InvalidToken`` for tampered or foreign values"""
    if not token:
        return ''
    return get_fernet().decrypt(token.encode()).decode()
