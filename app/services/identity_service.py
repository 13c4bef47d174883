"""
IdentityService - password sign-up / sign-in and user lookup.

This is the minimal identity provider the rest of the app consumes as an
opaque user id. Sign-up never creates a workspace: the client calls the
bootstrap mutation after signing in, and the seed attaches users to its own
workspaces explicitly.
"""

from typing import Optional

from beanie import PydanticObjectId
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError

from app.config import settings
from app.core.exceptions import BadRequestError, ConflictError, UnauthorizedError
from app.core.logging_config import get_logger
from app.core.security import create_access_token, hash_password, verify_password
from app.models.user import User

logger = get_logger(__name__)


class IdentityService:
    """Service for account creation, credential checks and user lookups."""

    async def sign_up(
        self,
        email: str,
        password: str,
        name: Optional[str] = None
    ) -> User:
        """
        Create a password account.

        Raises:
            BadRequestError: Password shorter than PASSWORD_MIN_LENGTH
            ConflictError: An account with this email already exists
        """
        email = email.strip().lower()
        if len(password) < settings.PASSWORD_MIN_LENGTH:
            raise BadRequestError(
                f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters"
            )

        user = User(
            email=email,
            name=name.strip() if name and name.strip() else None,
            password_hash=hash_password(password),
        )
        try:
            await user.insert()
        except DuplicateKeyError:
            logger.info("sign_up_email_taken", email=email)
            raise ConflictError("An account with this email already exists")

        logger.info("user_signed_up", user_id=str(user.id))
        return user

    async def sign_in(self, email: str, password: str) -> User:
        """
        Check credentials.

        Raises:
            UnauthorizedError: Unknown email or wrong password (same message for both)
        """
        user = await self.find_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.info("sign_in_failed", email=email.strip().lower())
            raise UnauthorizedError("Invalid email or password")

        logger.info("user_signed_in", user_id=str(user.id))
        return user

    def issue_token(self, user: User) -> str:
        return create_access_token(str(user.id), user.email)

    async def find_user_by_email(self, email: str) -> Optional[User]:
        return await User.find_one(User.email == email.strip().lower())

    async def get_user(self, user_id: str) -> Optional[User]:
        """Load a user by id; malformed ids resolve to None."""
        try:
            return await User.get(PydanticObjectId(user_id))
        except (InvalidId, TypeError):
            return None


_identity_service: Optional[IdentityService] = None


def get_identity_service() -> IdentityService:
    """Get singleton IdentityService instance."""
    global _identity_service
    if _identity_service is None:
        _identity_service = IdentityService()
    return _identity_service
