# crm_admin/routers/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from crm_admin.core.database import get_db
from crm_admin.core.errors import AuthenticationError
from crm_admin.deps import get_current_user
from crm_admin.models.user import User
from crm_admin.services.auth import create_access_token
from crm_admin.services.passwords import verify_password

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginPayload(BaseModel):
    email: EmailStr
    password: str


def _authenticate(db: Session, email: str, password: str) -> dict:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not user.password_hash or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid credentials")

    token = create_access_token(
        str(user.id),
        extra={"client_id": user.client_id, "role": user.role},
    )
    return {"access_token": token, "token_type": "bearer"}


@router.post("/login")
def login(payload: LoginPayload, db: Session = Depends(get_db)):
    return _authenticate(db, payload.email, payload.password)


@router.post("/token")
def token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """Used by the Swagger UI Authorize button (form fields username/password)."""
    return _authenticate(db, form_data.username, form_data.password)


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "clientId": user.client_id,
    }
