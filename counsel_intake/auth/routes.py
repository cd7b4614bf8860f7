import logging
from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from .permissions import AuthContext, get_auth_context
from .security import token_for, verify_password
from counsel_intake.core.db import get_db, utcnow
from counsel_intake.models.orm import User

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("intake.auth.routes")


class LoginIn(BaseModel):
    email: str
    password: str


def _user_payload(user: User) -> dict:
    org_slug = user.organization.slug if user.organization else None
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "role": user.role,
        "organizationId": user.organization_id,
        "organizationSlug": org_slug,
    }


@router.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    user = db.scalar(select(User).where(User.email == email))

    if not user or not user.is_active:
        logger.info("Login failed for '%s' (not found or inactive)", email)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not verify_password(payload.password, user.hashed_password):
        logger.info("Login failed for '%s' (invalid password)", email)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    user.last_login = utcnow()
    db.commit()

    token = token_for(user)

    logger.info("Login success for '%s' (role=%s)", user.email, user.role)

    return {"token": token, "user": _user_payload(user)}


@router.get("/me")
def me(auth: AuthContext = Depends(get_auth_context)):
    return {"user": _user_payload(auth.user)}
