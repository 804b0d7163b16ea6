from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from watchlog.core.auth import (
    create_access_token,
    get_current_user_id,
    hash_password,
    verify_password,
)
from watchlog.db.models import User
from watchlog.db.session import get_db

router = APIRouter(prefix="/api/users", tags=["users"])

DEFAULT_PREFERENCES = {"theme": "dark"}


class RegisterIn(BaseModel):
    username: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)


class LoginIn(BaseModel):
    email: str
    password: str


class PreferencesIn(BaseModel):
    theme: Optional[Literal["dark", "light"]] = None


class ProfileUpdateIn(BaseModel):
    username: Optional[str] = Field(None, min_length=1)
    password: Optional[str] = Field(None, min_length=6)
    preferences: Optional[PreferencesIn] = None


def _profile(user: User) -> dict:
    return {
        "_id": user.id,
        "username": user.username,
        "email": user.email,
        "preferences": user.preferences or dict(DEFAULT_PREFERENCES),
    }


def _find_by_email(db: Session, email: str) -> User | None:
    stmt = select(User).where(User.email == email.strip().lower()).limit(1)
    return db.execute(stmt).scalars().first()


@router.post("", status_code=201)
def register_user(payload: RegisterIn, db: Session = Depends(get_db)):
    if _find_by_email(db, payload.email) is not None:
        raise HTTPException(status_code=400, detail="User already exists")
    user = User(
        username=payload.username.strip(),
        email=payload.email.strip().lower(),
        password_hash=hash_password(payload.password),
        preferences=dict(DEFAULT_PREFERENCES),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return {**_profile(user), "token": create_access_token(user.id)}


@router.post("/login")
def login_user(payload: LoginIn, db: Session = Depends(get_db)):
    user = _find_by_email(db, payload.email)
    if user is None or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return {**_profile(user), "token": create_access_token(user.id)}


@router.get("/profile")
def get_profile(
    user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)
):
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return _profile(user)


@router.put("/profile")
def update_profile(
    payload: ProfileUpdateIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    if payload.username is not None:
        user.username = payload.username.strip()
    if payload.preferences is not None and payload.preferences.theme is not None:
        preferences = dict(user.preferences or DEFAULT_PREFERENCES)
        preferences["theme"] = payload.preferences.theme
        user.preferences = preferences
    if payload.password:
        user.password_hash = hash_password(payload.password)
    db.commit()
    db.refresh(user)
    return {**_profile(user), "token": create_access_token(user.id)}
