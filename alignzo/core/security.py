from datetime import timedelta
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from passlib.context import CryptContext
from typing import Optional
from .config import get_settings

SESSION_COOKIE = "session"
SESSION_MAX_AGE = int(timedelta(days=7).total_seconds())

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)

def get_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(get_settings().app_secret, salt="session")

def sign_session(uid: int, email: str) -> str:
    return get_serializer().dumps({"uid": uid, "email": email})

def verify_session(token: str) -> Optional[dict]:
    try:
        return get_serializer().loads(token, max_age=SESSION_MAX_AGE)
    except (BadSignature, SignatureExpired):
        return None
