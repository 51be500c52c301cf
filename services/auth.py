from datetime import timedelta

import bcrypt
from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.orm import Session

from database import get_db
from models.database.user import User as DBUser
from shared.utils import config, setup_logging, utcnow

logger = setup_logging("auth")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/token")


class InvalidTokenError(Exception):
    """Raised when a bearer credential cannot be resolved to an active user."""


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str | None = None
    name: str | None = None
    disabled: bool = False


class LoginRequest(BaseModel):
    username: str
    password: str


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)
    email: EmailStr | None = None
    name: str | None = Field(None, max_length=255)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def get_user(db: Session, username: str) -> DBUser | None:
    """Get user from database by username."""
    return db.query(DBUser).filter(DBUser.username == username).first()


def get_user_by_id(db: Session, user_id: str) -> DBUser | None:
    """Get user from database by id."""
    return db.get(DBUser, user_id)


def authenticate_user(db: Session, username: str, password: str) -> DBUser | None:
    """Authenticate user credentials."""
    user = get_user(db, username)
    if not user or user.disabled or not verify_password(password, user.hashed_password):
        return None
    return user


def create_access_token(data: dict[str, str], expires_delta: timedelta | None = None) -> str:
    """Create JWT access token."""
    payload: dict[str, object] = dict(data)
    expires = expires_delta or timedelta(minutes=config.get("access_token_expire_minutes", 1440))
    payload["exp"] = utcnow() + expires
    return jwt.encode(payload, config.get("secret_key"), algorithm=config.get("jwt_algorithm", "HS256"))


def resolve_user_id(db: Session, token: str) -> str:
    """
    Resolve a bearer token to a stable user identifier.

    Raises:
        InvalidTokenError: If the token is malformed, expired or names an unknown user
    """
    try:
        payload = jwt.decode(
            token, config.get("secret_key"), algorithms=[config.get("jwt_algorithm", "HS256")]
        )
    except JWTError as e:
        raise InvalidTokenError("Invalid token") from e

    user_id = payload.get("sub")
    if not isinstance(user_id, str):
        raise InvalidTokenError("Invalid token")
    user = get_user_by_id(db, user_id)
    if user is None or user.disabled:
        raise InvalidTokenError("User not found")
    return user.id


async def get_current_user_id(
    token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> str:
    """Dependency returning the id of the authenticated caller."""
    try:
        return resolve_user_id(db, token)
    except InvalidTokenError as e:
        raise HTTPException(
            status_code=401, detail=str(e), headers={"WWW-Authenticate": "Bearer"}
        ) from e


router = APIRouter()


@router.post(
    "/register",
    tags=["Authentication"],
    summary="Register User",
    response_model=User,
    status_code=201,
    responses={400: {"description": "Username or email already registered"}},
)
async def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """Create a new user account."""
    if get_user(db, request.username):
        raise HTTPException(status_code=400, detail="Username already registered")
    if request.email and db.query(DBUser).filter(DBUser.email == request.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = DBUser(
        username=request.username,
        email=request.email,
        name=request.name,
        hashed_password=hash_password(request.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Registered user {user.username} ({user.id})")
    return user


@router.post(
    "/token",
    tags=["Authentication"],
    summary="User Login",
    description="Authenticate user credentials and receive JWT access token",
    response_model=Token,
    responses={
        400: {
            "description": "Invalid credentials provided",
            "content": {
                "application/json": {"example": {"detail": "Incorrect username or password"}}
            },
        },
    },
)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """Authenticate user and return JWT access token."""
    user = authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=400, detail="Incorrect username or password")
    return Token(access_token=create_access_token({"sub": user.id}))


@router.post(
    "/token-json",
    tags=["Authentication"],
    summary="User Login (JSON)",
    description="Authenticate user credentials via JSON and receive JWT access token",
    response_model=Token,
)
async def login_json(login_request: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate user and return JWT access token via JSON."""
    user = authenticate_user(db, login_request.username, login_request.password)
    if not user:
        raise HTTPException(status_code=400, detail="Incorrect username or password")
    return Token(access_token=create_access_token({"sub": user.id}))


@router.get(
    "/users/me",
    tags=["Authentication"],
    summary="Get Current User",
    response_model=User,
    responses={401: {"description": "Invalid or expired token"}},
)
async def read_users_me(
    user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)
):
    """Get current authenticated user profile."""
    return get_user_by_id(db, user_id)
