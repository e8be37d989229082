import hmac
import logging

from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import AuthError, InputError
from app.models import AdminUser
from app.models.base import utcnow
from app.repositories import user_repo

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def secret_matches(provided: str | None, expected: str) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def authenticate_admin(db: AsyncSession, email: str | None, password: str | None) -> AdminUser:
    if not email or not password:
        raise InputError("Email and password are required")
    email = email.strip().lower()
    admin = await user_repo.get_active_admin_by_email(db, email)
    if admin is None or not verify_password(password, admin.password_hash):
        logger.info("Failed admin login for %s", email)
        raise AuthError("Invalid email or password")
    admin.last_login = utcnow()
    await db.flush()
    return admin
