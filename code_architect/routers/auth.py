# code_architect/routers/auth.py
import logging
from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import APIKeyCookie
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..errors import ConstraintViolation, InvalidInput, Unauthenticated, Unauthorized, NotFound
from ..models import Users
from ..schemas import CurrentUser, LoginRequest, RegisterRequest, UserEnvelope, UserOut
from ..sessions import SessionRecord, SessionStore
from ..storage import Storage

logger = logging.getLogger(__name__)

authRoutes = APIRouter(prefix="/api", tags=["auth"])

session_cookie = APIKeyCookie(name=settings.SESSION_COOKIE_NAME, auto_error=False)
db_link = Annotated[Session, Depends(get_db)]

bcrypt_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)


def hash_password(plain: str) -> str:
    return bcrypt_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt_context.verify(plain, hashed)


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


session_store_dep = Annotated[SessionStore, Depends(get_session_store)]


def create_session_token(user: Users, record: SessionRecord) -> str:
    to_encode = {"sub": user.email, "uid": user.id, "sid": record.sid, "exp": record.expires_at}
    return jwt.encode(to_encode, settings.SESSION_SECRET, algorithm=settings.JWT_ALGORITHM)


def resolve_user(token: Optional[str], db: Session, store: SessionStore) -> Users:
    """Map a cookie value to a live user or raise ``Unauthenticated``."""
    if not token:
        raise Unauthenticated("Not authenticated")
    try:
        payload = jwt.decode(token, settings.SESSION_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise Unauthenticated("Invalid or expired session")

    user_id = payload.get("uid")
    sid = payload.get("sid")
    if not user_id or not sid:
        raise Unauthenticated("Not authorized: missing claims")

    record = store.get(sid)
    if record is None or record.user_id != user_id:
        raise Unauthenticated("Session has ended")

    user = Storage(db).get_user(user_id)
    if not user:
        raise Unauthenticated("User not found")
    return user


def get_current_user(
    token: Annotated[Optional[str], Depends(session_cookie)],
    db: db_link,
    store: session_store_dep,
) -> Users:
    return resolve_user(token, db, store)


current_login_user = Annotated[Users, Depends(get_current_user)]


def start_session(response: Response, user: Users, store: SessionStore) -> None:
    record = store.create(user.id)
    token = create_session_token(user, record)
    max_age = int((record.expires_at - datetime.now(timezone.utc)).total_seconds())
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=max_age,
        samesite="lax",  # use "none" + secure=True when on HTTPS cross-site
        secure=settings.COOKIE_SECURE,
    )


@authRoutes.post("/register", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
def register_user(payload: RegisterRequest, db: db_link, store: session_store_dep, response: Response):
    storage = Storage(db)
    email = payload.email.strip().lower()
    username = payload.username.strip()

    if storage.get_user_by_email(email):
        raise ConstraintViolation("Email already registered")
    if storage.get_user_by_username(username):
        raise ConstraintViolation("Username already taken")

    user = storage.create_user(username=username, email=email, password_hash=hash_password(payload.password))
    start_session(response, user, store)
    logger.info("Registered user %s (id=%s)", user.username, user.id)
    return {"user": user}


@authRoutes.post("/login", response_model=UserEnvelope)
def login(payload: LoginRequest, db: db_link, store: session_store_dep, response: Response):
    user = Storage(db).get_user_by_email(payload.email.strip().lower())
    if not user or not verify_password(payload.password, user.password_hash):
        raise InvalidInput("Invalid email or password")

    start_session(response, user, store)
    logger.info("User %s logged in", user.id)
    return {"user": user}


@authRoutes.post("/logout")
def logout(
    current_user: current_login_user,
    token: Annotated[Optional[str], Depends(session_cookie)],
    store: session_store_dep,
    response: Response,
):
    # the token already verified in get_current_user
    payload = jwt.get_unverified_claims(token)
    store.delete(payload["sid"])
    response.delete_cookie(settings.SESSION_COOKIE_NAME, httponly=True, samesite="lax", secure=settings.COOKIE_SECURE)
    logger.info("User %s logged out", current_user.id)
    return {"message": "Logged out"}


@authRoutes.get("/current-user", response_model=CurrentUser)
def read_current_user(current_user: current_login_user):
    return CurrentUser(user_id=current_user.id, username=current_user.username, email=current_user.email)


@authRoutes.get("/users/{user_id}", response_model=UserOut)
def read_user(user_id: int, db: db_link, current_user: current_login_user):
    user = Storage(db).get_user(user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")
    if user.id != current_user.id:
        raise Unauthorized("Cannot read another user's profile")
    return user
