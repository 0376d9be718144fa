"""Registration, login and the current user."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import Plan, User
from app.schemas.auth import Token, UserCreate, UserLogin, UserResponse
from app.services.auth import create_access_token, get_password_hash, verify_password
from app.services.notifications import send_welcome_email

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


@router.post("/register", response_model=Token, status_code=201)
def register(data: UserCreate, db: Session = Depends(get_db)):
    email = _normalize_email(data.email)
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="An account with this email already exists. Please log in.")
    user = User(
        email=email,
        hashed_password=get_password_hash(data.password),
        full_name=(data.full_name or "").strip() or None,
        plan=Plan.free,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="An account with this email already exists. Please log in.")
    db.refresh(user)
    if not send_welcome_email(user.email, user.full_name):
        logger.info("[Auth] welcome email not sent to %s", user.email)
    token = create_access_token(user.id, user.email)
    return Token(access_token=token, user=UserResponse.model_validate(user))


@router.post("/login", response_model=Token)
def login(data: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == _normalize_email(data.email)).first()
    if not user or not verify_password(data.password, user.hashed_password):
        logger.warning("[Auth] failed login for %s", data.email)
        raise HTTPException(status_code=401, detail="Invalid email or password")
    token = create_access_token(user.id, user.email)
    return Token(access_token=token, user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return UserResponse.model_validate(current_user)
