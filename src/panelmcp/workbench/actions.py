"""Sample business actions for the workbench configuration."""

import hashlib
import secrets

from pydantic import BaseModel, Field, model_validator

from ..actions import Action
from ..database.entity_repo import save_entity
from ..utils.logging import get_logger
from ..database.schema import utc_now_z
from .models import EMAIL_PATTERN, User

logger = get_logger(__name__)

PBKDF2_ITERATIONS = 260000


def hash_password(password: str, salt: str | None = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        _, iterations, salt, expected = encoded.split("$")
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations))
    return secrets.compare_digest(digest.hex(), expected)


def _active_user(session, email: str) -> User:
    user = (
        session.query(User)
        .filter(User.email == email, User.deleted_at.is_(None))
        .first()
    )
    if user is None:
        raise LookupError(f"No user with email '{email}' exists.")
    return user


class ResetPassword(Action):
    identifier = "reset-password"
    name = "Reset Password"
    description = "Resets a user's password"

    class Parameters(BaseModel):
        email: str = Field(..., pattern=EMAIL_PATTERN, description="The email address of the user")
        password: str = Field(..., min_length=8, description="The new password")
        password_confirmation: str = Field(..., description="Confirm the new password")

        @model_validator(mode="after")
        def _passwords_match(self):
            if self.password != self.password_confirmation:
                raise ValueError("The password confirmation does not match.")
            return self

    def handle(self, session, params):
        user = _active_user(session, params.email)
        user.password_hash = hash_password(params.password)
        save_entity(session, user)
        return {"email": user.email, "message": "Password reset successfully"}


class SendWelcomeEmail(Action):
    identifier = "send-welcome-email"
    name = "Send Welcome Email"
    description = "Sends a welcome email to a user"

    class Parameters(BaseModel):
        email: str = Field(..., pattern=EMAIL_PATTERN, description="The email address of the user")

    def handle(self, session, params):
        user = _active_user(session, params.email)
        user.welcomed_at = utc_now_z()
        save_entity(session, user)
        logger.info(f"Welcome email queued for {user.email}")
        return {"email": user.email, "welcomed_at": user.welcomed_at, "message": "Welcome email sent successfully"}
