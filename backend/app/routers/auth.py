# app/routers/auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from ..core.api import ok
from ..core.db import get_db
from ..core.security import (
    hash_password, verify_password, create_access_token, get_current_user, require_roles, set_override_secret,
)
from ..models.user import AppUser
from ..schemas.user import OverrideSecretIn, UserCreate, UserRead, Token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

Admin = require_roles("admin")


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, db: Session = Depends(get_db), _: AppUser = Depends(Admin)):
    username = payload.username.strip()
    email = payload.email.strip().lower() if payload.email else None

    if db.query(AppUser).filter(AppUser.Username == username).first():
        raise HTTPException(status_code=409, detail="Username already exists")
    if email and db.query(AppUser).filter(AppUser.Email == email).first():
        raise HTTPException(status_code=409, detail="Email already exists")

    user = AppUser(
        Username=username,
        FullName=payload.full_name.strip() if payload.full_name else None,
        Email=email,
        Role=payload.role or "viewer",
        IsActive=True,
        HashedPassword=hash_password(payload.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user %s registered with role %s", user.Username, user.Role)
    return user


@router.post("/login", response_model=Token)
def login(form: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    username = form.username.strip()
    user = db.query(AppUser).filter(AppUser.Username == username).first()

    if not user or not user.IsActive or not verify_password(form.password, user.HashedPassword):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Wrong username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = create_access_token(sub=user.Username, role=user.Role)
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", response_model=UserRead)
def me(current: AppUser = Depends(get_current_user)):
    return current


@router.put("/override-secret")
def rotate_override_secret(payload: OverrideSecretIn, db: Session = Depends(get_db), current: AppUser = Depends(Admin)):
    """Sets the credential needed to delete validated or received purchase orders."""
    set_override_secret(db, payload.secret)
    db.commit()
    logger.info("order deletion secret rotated by %s", current.Username)
    return ok({"rotated": True})
