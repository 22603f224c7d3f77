# habittracker/identity.py
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from habittracker.config import settings
from habittracker.core.exceptions import AuthenticationError, EmailTakenError, StoreError
from habittracker.models import User
from habittracker.security import hash_password, verify_password

logger = logging.getLogger("habittracker.identity")


@dataclass(frozen=True)
class UserSession:
    """Who is acting. Passed explicitly to every habit operation."""
    user_id: int
    email: str


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class IdentityProvider:

    def __init__(self, db: Session):
        self.db = db

    def _user_by_email(self, email: str) -> Optional[User]:
        try:
            return self.db.query(User).filter(User.email == email).first()
        except SQLAlchemyError as e:
            raise StoreError("Could not reach the user store") from e

    def sign_in(self, email: str, password: str) -> UserSession:
        email = _normalize_email(email)
        user  = self._user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.warning(f"Failed sign-in attempt: {email}")
            raise AuthenticationError("Incorrect email or password")
        logger.info(f"User signed in: {email}")
        return UserSession(user_id=user.id, email=user.email)

    def sign_up(self, email: str, password: str) -> UserSession:
        email = _normalize_email(email)
        if "@" not in email:
            raise AuthenticationError("A valid email address is required")
        if len(password or "") < settings.MIN_PASSWORD_LENGTH:
            raise AuthenticationError(
                f"Password should be at least {settings.MIN_PASSWORD_LENGTH} characters"
            )
        if self._user_by_email(email):
            logger.warning(f"Sign-up attempt with existing email: {email}")
            raise EmailTakenError("Email already registered")

        # The user record starts empty; habits are added later
        user = User(email=email, password_hash=hash_password(password))
        try:
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
        except IntegrityError:
            self.db.rollback()
            raise EmailTakenError("Email already registered")
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError("Could not create user record") from e

        logger.info(f"New user registered: {email}")
        return UserSession(user_id=user.id, email=user.email)

    def restore(self, user_id: int) -> Optional[UserSession]:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            return None
        return UserSession(user_id=user.id, email=user.email)
