# backend/app/core/security.py
import os
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from fastapi.security.utils import get_authorization_scheme_param
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .db import get_db
from .config import ORDER_DELETE_SECRET
from ..models.user import AppUser
from ..models.setting import AppSetting

logger = logging.getLogger(__name__)

# kept for the OpenAPI login form
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-change-me")
ALGORITHM = os.getenv("JWT_ALG", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

OVERRIDE_SECRET_KEY = "order_delete_secret"
OVERRIDE_ROLES = ("admin",)

# ---- password helpers ----
def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)

def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)

# ---- JWT ----
def create_access_token(sub: str, role: str, expires_minutes: Optional[int] = None) -> str:
    expire = datetime.now(tz=timezone.utc) + timedelta(
        minutes=expires_minutes or ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload = {"sub": sub, "role": role, "exp": expire}
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)

# ---- tolerant Authorization header parsing ----
def _extract_bearer_token(request: Request) -> str:
    """
    Accepts sloppy headers:
      - extra spaces:      "Bearer   <JWT>"
      - doubled scheme:    "Bearer Bearer <JWT>"
      - quoted value:      Authorization: "Bearer <JWT>"
    """
    auth = request.headers.get("Authorization")
    cred_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not auth:
        raise cred_exc

    auth = str(auth).strip().strip('"').strip("'")
    scheme, param = get_authorization_scheme_param(auth)

    if not scheme or scheme.lower() != "bearer":
        raise cred_exc

    token = (param or "").strip()

    if token.lower().startswith("bearer "):
        token = token.split(None, 1)[1].strip()

    # a JWT never contains spaces
    token = token.replace(" ", "")

    if not token:
        raise cred_exc

    return token

# ---- current user from token ----
def get_current_user(
    db: Session = Depends(get_db),
    token: str = Depends(_extract_bearer_token),
) -> AppUser:
    cred_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        data = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        username = data.get("sub")
        if not username:
            raise cred_exc
    except JWTError:
        raise cred_exc

    user = db.query(AppUser).filter(AppUser.Username == username).first()
    if not user or not user.IsActive:
        raise cred_exc
    return user

# ---- role guard ----
def require_roles(*roles: str):
    UserDep = Annotated[AppUser, Depends(get_current_user)]
    def _dep(current: UserDep) -> AppUser:
        if current.Role not in roles:
            raise HTTPException(status_code=403, detail="Not allowed for this role")
        return current
    return _dep

# ---- administrative override (purchase order deletion guard) ----
def may_override(user: Optional[AppUser]) -> bool:
    return bool(user and user.IsActive and user.Role in OVERRIDE_ROLES)

def set_override_secret(db: Session, plain: str) -> None:
    """Store (or rotate) the hashed override secret. Caller commits."""
    row = db.get(AppSetting, OVERRIDE_SECRET_KEY)
    hashed = hash_password(plain)
    if row:
        row.Value = hashed
    else:
        db.add(AppSetting(Key=OVERRIDE_SECRET_KEY, Value=hashed))

def verify_override_secret(db: Session, credential: Optional[str]) -> bool:
    """
    Single verify-or-fail check. Falls back to ORDER_DELETE_SECRET only when no
    hash has been stored yet; with neither configured nothing verifies.
    """
    if not credential:
        return False
    row = db.get(AppSetting, OVERRIDE_SECRET_KEY)
    if row and row.Value:
        return verify_password(credential, row.Value)
    if ORDER_DELETE_SECRET:
        logger.warning("override secret not stored yet, checking ORDER_DELETE_SECRET from env")
        return hmac.compare_digest(credential.encode(), ORDER_DELETE_SECRET.encode())
    return False
