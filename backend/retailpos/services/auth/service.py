"""
Authentication service: registration by email verification, sign-in and
session token issuance.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import bcrypt
from pydantic import BaseModel, ValidationError
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from retailpos.db.session import AsyncSessionLocal
from retailpos.db.models import User, Role, Store, AccountStatus
from retailpos.core.config import settings
from retailpos.core.errors import (
    DuplicateResourceError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    NotImplementedFeatureError,
)
from retailpos.core.logging import get_logger
from retailpos.core.metrics import track_registration, track_sign_in, track_tokens_issued
from retailpos.services.email.service import EmailService, get_email_service
from .phone import normalize_phone, try_normalize_phone
from .tokens import TokenService, get_token_service

logger = get_logger(__name__)


class PendingRegistration(BaseModel):
    """Registration attributes carried by the email verification token."""
    username: str
    email: str
    phone: str
    firstname: str
    lastname: str
    store: UUID
    role: UUID
    password: str  # already hashed
    status: AccountStatus = AccountStatus.ACTIVE


class AuthService:
    """Service for account registration and authentication."""

    def __init__(
        self,
        token_service: TokenService | None = None,
        email_service: EmailService | None = None,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    ):
        self.tokens = token_service or get_token_service()
        self.email = email_service or get_email_service()
        self.session_factory = session_factory
        self.access_expiration = settings.JWT_ACCESS_EXPIRATION
        self.refresh_expiration = settings.JWT_REFRESH_EXPIRATION
        self.verify_email_expiration = settings.JWT_VERIFY_EMAIL_EXPIRATION
        self.salt_rounds = settings.BCRYPT_SALT_ROUNDS

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt."""
        # bcrypt only looks at the first 72 bytes
        password_bytes = password.encode('utf-8')[:72]
        salt = bcrypt.gensalt(rounds=self.salt_rounds)
        hashed = bcrypt.hashpw(password_bytes, salt)
        return hashed.decode('utf-8')

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against a hash."""
        try:
            password_bytes = plain_password.encode('utf-8')[:72]
            hashed_bytes = hashed_password.encode('utf-8')
            return bcrypt.checkpw(password_bytes, hashed_bytes)
        except ValueError:
            # Stored value is not a bcrypt hash
            return False

    async def initiate_registration(self, data: dict[str, Any]) -> None:
        """
        Start a registration by emailing a verification link.

        Nothing is written to the database; the attributes travel inside the
        signed token until the link is followed.

        Raises:
            DuplicateResourceError: email, phone or username already taken
            NotFoundError: the referenced store or role does not exist
            MailDeliveryError: the verification email could not be sent
        """
        data = dict(data)
        data["email"] = data["email"].lower()
        data["phone"] = normalize_phone(data["phone"])

        async with self.session_factory() as session:
            existing = await self._find_user(
                session,
                emails=[data["email"]],
                phones=[data["phone"]],
                usernames=[data["username"]],
            )
            if existing:
                await track_registration("duplicate")
                raise DuplicateResourceError()

            await self._ensure_references(session, store_id=data["store"], role_id=data["role"])

        data["password"] = self.hash_password(data["password"])
        token = self.tokens.generate_token(data, self.verify_email_expiration)

        await self.email.send_verification_email(data["email"], token)

        await track_registration("pending")
        logger.info_with_data(
            "Verification email dispatched",
            {"username": data["username"]},
        )

    async def complete_registration(self, token: str) -> dict:
        """
        Create the account described by a verification token and sign it in.

        Raises:
            InvalidTokenError: token invalid, expired or not a registration token
            DuplicateResourceError: an account with the same identifiers was
                created after the link was sent (or the link was used twice)
            NotFoundError: the store or role was removed after the link was sent
        """
        payload = self.tokens.verify_token(token)
        if payload is None:
            await track_registration("invalid_token")
            raise InvalidTokenError()

        try:
            pending = PendingRegistration.model_validate(payload)
        except ValidationError:
            await track_registration("invalid_token")
            raise InvalidTokenError() from None

        user = User(
            username=pending.username,
            email=pending.email.lower(),
            phone=normalize_phone(pending.phone),
            firstname=pending.firstname,
            lastname=pending.lastname,
            password=pending.password,
            store_id=pending.store,
            role_id=pending.role,
            status=pending.status,
        )

        async with self.session_factory() as session:
            await self._ensure_references(session, store_id=pending.store, role_id=pending.role)

            session.add(user)
            try:
                await session.commit()
            except IntegrityError:
                # Unique constraints are the authoritative duplicate guard;
                # a foreign key violation means a reference vanished meanwhile
                await session.rollback()
                await self._ensure_references(session, store_id=pending.store, role_id=pending.role)
                await track_registration("duplicate")
                raise DuplicateResourceError() from None

            await track_registration("completed")
            logger.info_with_data("Account created", {"user_id": str(user.id)})

            return await self.authenticate(session, user)

    async def sign_in(self, name: str, password: str) -> dict:
        """
        Authenticate with a username, email or phone number and a password.

        Raises:
            NotFoundError: no account matches ``name``
            InvalidCredentialsError: the password does not match
        """
        phones = [name]
        normalized = try_normalize_phone(name)
        if normalized and normalized != name:
            phones.append(normalized)

        async with self.session_factory() as session:
            user = await self._find_user(
                session,
                emails=[name, name.lower()],
                phones=phones,
                usernames=[name],
            )

            if not user:
                await track_sign_in("not_found")
                raise NotFoundError("user not found")

            if not self.verify_password(password, user.password):
                await track_sign_in("invalid_credentials")
                logger.warning_with_data("Sign-in rejected", {"user_id": str(user.id)})
                raise InvalidCredentialsError()

            await track_sign_in("success")
            return await self.authenticate(session, user)

    async def authenticate(self, session: AsyncSession, user: User) -> dict:
        """Mark the account online and issue an access/refresh token pair."""
        user.online = True
        user.last_login = datetime.now(timezone.utc)
        await session.commit()

        claims = {
            "id": str(user.id),
            "role": str(user.role_id),
            "store": str(user.store_id),
        }
        access = self.tokens.generate_token(claims, self.access_expiration)
        refresh = self.tokens.generate_token(claims, self.refresh_expiration)
        await track_tokens_issued(2)

        logger.info_with_data("Session opened", {"user_id": str(user.id)})

        return {
            "user": user,
            "token": {"access": access, "refresh": refresh},
        }

    async def sign_out(self, user_id: UUID) -> dict:
        raise NotImplementedFeatureError("Sign-out")

    async def forgot_password(self, email: str) -> dict:
        raise NotImplementedFeatureError("Forgot password")

    async def reset_password(self, token: str, password: str) -> dict:
        raise NotImplementedFeatureError("Reset password")

    async def change_password(self, user_id: UUID, current_password: str, new_password: str) -> dict:
        raise NotImplementedFeatureError("Change password")

    async def verify_otp(self, name: str, code: str) -> dict:
        raise NotImplementedFeatureError("OTP verification")

    async def resend_otp(self, name: str) -> dict:
        raise NotImplementedFeatureError("OTP resend")

    async def enable_two_factor(self, user_id: UUID) -> dict:
        raise NotImplementedFeatureError("Two-factor enable")

    async def disable_two_factor(self, user_id: UUID) -> dict:
        raise NotImplementedFeatureError("Two-factor disable")

    async def verify_two_factor(self, user_id: UUID, code: str) -> dict:
        raise NotImplementedFeatureError("Two-factor verification")

    async def refresh_tokens(self, refresh_token: str) -> dict:
        raise NotImplementedFeatureError("Token refresh")

    async def _find_user(
        self,
        session: AsyncSession,
        emails: list[str],
        phones: list[str],
        usernames: list[str],
    ) -> User | None:
        """First account matching any of the given identifiers."""
        result = await session.execute(
            select(User)
            .where(
                or_(
                    User.email.in_(emails),
                    User.phone.in_(phones),
                    User.username.in_(usernames),
                )
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _ensure_references(self, session: AsyncSession, store_id: str, role_id: str) -> None:
        if await session.get(Store, UUID(str(store_id))) is None:
            raise NotFoundError("store not found")
        if await session.get(Role, UUID(str(role_id))) is None:
            raise NotFoundError("role not found")


# Singleton instance
_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get the auth service singleton."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
