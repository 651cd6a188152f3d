import os
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from passlib.context import CryptContext
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from database import get_db, get_features, as_datetime
from schema_probe import SchemaFeatures
from schemas import (
    LoginRequest, LoginResponse, RegisterRequest, PasswordResetRequest,
    CurrentUserResponse, PasswordExpiryResponse,
)

logger = logging.getLogger(__name__)

# Load secret key and token expiration from environment variables (or use defaults)
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", 8))
PASSWORD_MAX_AGE_DAYS = int(os.getenv("PASSWORD_MAX_AGE_DAYS", 60))
MIN_PASSWORD_LENGTH = 6

SUPER_ADMIN = 1
ADMIN = 2

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{os.getenv('API_PREFIX', '/api')}/admin/login")

router = APIRouter(prefix="/admin", tags=["admin"])


def get_password_hash(password):
    return pwd_context.hash(password)

def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)

def create_access_token(data: dict, expires_delta: timedelta | None = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt

def password_age_days(changed_at, now: datetime | None = None) -> int:
    changed_at = as_datetime(changed_at)
    if changed_at is None:
        return 0
    now = now or datetime.now()
    if changed_at.tzinfo is not None:
        changed_at = changed_at.astimezone().replace(tzinfo=None)
    return max((now - changed_at).days, 0)

def _password_date_column(features: SchemaFeatures):
    if features.user_password_changed_at and features.user_created_at:
        return "COALESCE(PasswordChangedAt, CreatedAt)"
    if features.user_password_changed_at:
        return "PasswordChangedAt"
    if features.user_created_at:
        return "CreatedAt"
    return None


def create_user(db: Session, features: SchemaFeatures, username: str, password: str, level: int):
    now = datetime.now()
    values = {
        "Username": username,
        "PasswordHash": get_password_hash(password),
        "UserLevel": level,
        "IsActive": True,
    }
    if features.user_created_at:
        values["CreatedAt"] = now
    if features.user_password_changed_at:
        values["PasswordChangedAt"] = now

    columns = ", ".join(values)
    params = ", ".join(f":{c}" for c in values)
    db.execute(text(f"INSERT INTO Users ({columns}) VALUES ({params})"), values)
    db.commit()


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = payload.get("userId")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    try:
        user = db.execute(
            text("SELECT UserID, Username, UserLevel FROM Users WHERE UserID = :id AND IsActive = :active"),
            {"id": user_id, "active": True},
        ).mappings().first()
    except SQLAlchemyError as e:
        logger.error(f"JWT user lookup failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return dict(user)


def require_level(required_level: int = ADMIN):
    """Lower level means more privilege: 1 passes every check, 2 only level-2 routes."""
    def dependency(current_user: dict = Depends(get_current_user)) -> dict:
        if current_user["UserLevel"] > required_level:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user
    return dependency


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db), features: SchemaFeatures = Depends(get_features)):
    if not payload.username or not payload.password:
        raise HTTPException(status_code=400, detail="Username and password are required")

    date_column = _password_date_column(features)
    columns = "UserID, Username, PasswordHash, UserLevel"
    if date_column:
        columns += f", {date_column} AS ChangeDate"

    try:
        user = db.execute(
            text(f"SELECT {columns} FROM Users WHERE Username = :username AND IsActive = :active"),
            {"username": payload.username, "active": True},
        ).mappings().first()

        # Same answer for unknown user and wrong password
        if not user or not verify_password(payload.password, user["PasswordHash"]):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

        days_since_change = password_age_days(user.get("ChangeDate"))

        db.execute(
            text("UPDATE Users SET LastLogin = :now WHERE UserID = :id"),
            {"now": datetime.now(), "id": user["UserID"]},
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Login error: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    access_token = create_access_token(data={"userId": user["UserID"], "userLevel": user["UserLevel"]})
    logger.info(f"User {user['Username']} logged in")
    return {
        "token": access_token,
        "userLevel": user["UserLevel"],
        "username": user["Username"],
        "passwordExpired": days_since_change >= PASSWORD_MAX_AGE_DAYS,
        "daysSinceChange": days_since_change,
    }


@router.post("/register")
def register_user(
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
    current_user: dict = Depends(require_level(SUPER_ADMIN)),
):
    if not payload.username or not payload.password:
        raise HTTPException(status_code=400, detail="Username and password are required")
    if payload.userLevel not in (SUPER_ADMIN, ADMIN):
        raise HTTPException(status_code=400, detail="Invalid user level")

    try:
        exists = db.execute(
            text("SELECT 1 FROM Users WHERE Username = :username"), {"username": payload.username}
        ).first()
        if exists:
            raise HTTPException(status_code=400, detail="Username already exists")

        create_user(db, features, payload.username, payload.password, payload.userLevel)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Registration error: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    logger.info(f"User {payload.username} registered by {current_user['Username']}")
    return {"success": True}


@router.get("/me", response_model=CurrentUserResponse)
def read_users_me(current_user: dict = Depends(require_level())):
    return {
        "userId": current_user["UserID"],
        "username": current_user["Username"],
        "userLevel": current_user["UserLevel"],
    }


@router.post("/reset-password")
def reset_password(
    payload: PasswordResetRequest,
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
    current_user: dict = Depends(require_level()),
):
    if not payload.currentPassword or not payload.newPassword:
        raise HTTPException(status_code=400, detail="Current and new password are required")
    if len(payload.newPassword) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"New password must be at least {MIN_PASSWORD_LENGTH} characters long",
        )

    user_id = current_user["UserID"]
    try:
        current_hash = db.execute(
            text("SELECT PasswordHash FROM Users WHERE UserID = :id"), {"id": user_id}
        ).scalar()
        if current_hash is None:
            raise HTTPException(status_code=404, detail="User not found")
        if not verify_password(payload.currentPassword, current_hash):
            raise HTTPException(status_code=401, detail="Current password is incorrect")

        query = "UPDATE Users SET PasswordHash = :password_hash"
        params = {"password_hash": get_password_hash(payload.newPassword), "id": user_id}
        if features.user_password_changed_at:
            query += ", PasswordChangedAt = :now"
            params["now"] = datetime.now()
        query += " WHERE UserID = :id"

        db.execute(text(query), params)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Password reset error: {e}")
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    logger.info(f"Password updated for user {user_id}")
    return {"success": True, "message": "Password updated successfully"}


@router.get("/password-expired", response_model=PasswordExpiryResponse)
def password_expired(
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
    current_user: dict = Depends(require_level()),
):
    date_column = _password_date_column(features)
    try:
        row = db.execute(
            text(f"SELECT {date_column or 'NULL'} AS ChangeDate FROM Users WHERE UserID = :id"),
            {"id": current_user["UserID"]},
        ).mappings().first()
    except SQLAlchemyError as e:
        logger.error(f"Password expiry check error: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if row is None:
        raise HTTPException(status_code=404, detail="User not found")

    days_since_change = password_age_days(row["ChangeDate"])
    return {"expired": days_since_change >= PASSWORD_MAX_AGE_DAYS, "daysSinceChange": days_since_change}
