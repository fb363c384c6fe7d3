import logging
import sqlite3
from typing import Any, Dict, Optional

from passlib.context import CryptContext

from database import get_db_connection
from errors import BadRequestError, ConflictError, InternalError, UnauthorizedError
from utils.validators import EmailValidator, PasswordValidator, TextValidator

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

INVALID_CREDENTIALS = "Invalid credentials"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Tanınmayan hash biçimi
        return False


def _public_user(row: sqlite3.Row) -> Dict[str, Any]:
    return {"id": row["id"], "fullName": row["full_name"], "email": row["email"]}


class UserService:
    """Kullanıcı kaydı, girişi ve kimlik sorguları."""

    def __init__(self, db_file: Optional[str] = None, min_password_length: int = 8) -> None:
        self.db_file = db_file
        self.min_password_length = min_password_length

    def register(self, full_name: Optional[str], email: Optional[str], password: Optional[str]) -> Dict[str, Any]:
        if not full_name or not email or not password:
            raise BadRequestError("Missing required fields", "Full name, email, and password are required")
        if not TextValidator.validate_full_name(full_name):
            raise BadRequestError("Invalid full name")
        if not EmailValidator.is_valid_email(email):
            raise BadRequestError("Invalid email", "Please provide a valid email address")
        if not PasswordValidator.is_strong_enough(password, self.min_password_length):
            raise BadRequestError(
                "Password too short",
                f"Password must be at least {self.min_password_length} characters long",
            )

        email = EmailValidator.normalize_email(email)
        full_name = TextValidator.sanitize_text(full_name)
        hashed = hash_password(password)

        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.execute(
                "INSERT INTO users (full_name, email, hashed_password) VALUES (?, ?, ?)",
                (full_name, email, hashed),
            )
            user_id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            logger.info("Registration rejected: email already in use")
            raise ConflictError("Email already in use", "An account with this email already exists") from e
        except sqlite3.Error as e:
            logger.exception("registerUser failed")
            raise InternalError("Failed to register user") from e
        finally:
            conn.close()

        logger.info(f"User registered: id={user_id}")
        return {"id": user_id, "fullName": full_name, "email": email}

    def login(self, email: Optional[str], password: Optional[str]) -> Dict[str, Any]:
        if not email or not password:
            raise BadRequestError("Missing required fields", "Email and password are required")

        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(
                "SELECT id, full_name, email, hashed_password FROM users WHERE email = ?",
                (EmailValidator.normalize_email(email),),
            ).fetchone()
        except sqlite3.Error as e:
            logger.exception("loginUser failed")
            raise InternalError("Failed to login user") from e
        finally:
            conn.close()

        # Bilinmeyen e-posta ve yanlış parola aynı yanıtı alır
        if row is None or not verify_password(password, row["hashed_password"]):
            logger.warning("Login rejected: invalid credentials")
            raise UnauthorizedError(INVALID_CREDENTIALS, "Invalid email or password")
        return _public_user(row)

    def get_user(self, user_id: int) -> Optional[Dict[str, Any]]:
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(
                "SELECT id, full_name, email FROM users WHERE id = ?", (user_id,)
            ).fetchone()
            return _public_user(row) if row else None
        finally:
            conn.close()

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(
                "SELECT id, full_name, email FROM users WHERE email = ?",
                (EmailValidator.normalize_email(email),),
            ).fetchone()
            return _public_user(row) if row else None
        finally:
            conn.close()
