import os
from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from .errors import AuthError

# The signing secret has no default; startup refuses to run without it
SECRET = os.getenv('JWT_SECRET') or os.getenv('JWT_SECRET_KEY')
ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv('ACCESS_TOKEN_EXPIRE_MINUTES', str(60 * 24)))

pwd_ctx = CryptContext(schemes=['pbkdf2_sha256'], deprecated='auto')
bearer_scheme = HTTPBearer(auto_error=False)

def require_secret() -> str:
    if not SECRET:
        raise RuntimeError('JWT_SECRET must be set')
    return SECRET

def hash_password(password: str) -> str:
    return pwd_ctx.hash(password)

def verify_password(password: str, hashed: str) -> bool:
    return pwd_ctx.verify(password, hashed)

def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({'exp': expire})
    encoded = jwt.encode(to_encode, require_secret(), algorithm=ALGORITHM)
    return encoded

def decode_token(token: str):
    try:
        payload = jwt.decode(token, require_secret(), algorithms=[ALGORITHM])
        return payload
    except JWTError:
        return None

async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> str:
    """Resolve the caller's username from a verified bearer token"""
    if credentials is None or credentials.scheme.lower() != 'bearer':
        raise AuthError('Not authenticated')
    payload = decode_token(credentials.credentials)
    if not payload:
        raise AuthError('Invalid token')
    username = payload.get('username')
    if not isinstance(username, str) or not username:
        raise AuthError('Token has no username claim')
    return username
