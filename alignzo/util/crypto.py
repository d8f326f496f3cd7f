import base64, hashlib
from cryptography.fernet import Fernet, InvalidToken
from ..core.config import get_settings

def _derive_key(secret: str) -> bytes:
    # Deterministic key from APP_SECRET
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)

def get_fernet() -> Fernet:
    return Fernet(_derive_key(get_settings().app_secret))

def encrypt(plaintext: str) -> str:
    if not plaintext:
        return ""
    return get_fernet().encrypt(plaintext.encode("utf-8")).decode("utf-8")

def decrypt(token: str) -> str:
    # A token written under an older APP_SECRET reads as empty
    if not token:
        return ""
    try:
        return get_fernet().decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        return ""
