"""
Tests for the registration and sign-in flow.
"""
import pytest

from retailpos.core.errors import (
    DuplicateResourceError,
    InvalidCredentialsError,
    InvalidTokenError,
    MailDeliveryError,
    NotFoundError,
    NotImplementedFeatureError,
)
from retailpos.db.models import User
from retailpos.services.auth import AuthService

from conftest import RecordingEmailService, count_users, load_user


async def register(auth_service: AuthService, email_service, data: dict) -> dict:
    await auth_service.initiate_registration(data)
    return await auth_service.complete_registration(email_service.last_token)


class TestInitiateRegistration:

    async def test_sends_mail_without_creating_account(
        self, auth_service, email_service, session_factory, registration_data
    ):
        await auth_service.initiate_registration(registration_data)

        assert len(email_service.sent) == 1
        assert email_service.sent[0][0] == "a@x.com"
        assert await count_users(session_factory) == 0

    async def test_token_carries_hashed_password(
        self, auth_service, email_service, token_service, registration_data
    ):
        await auth_service.initiate_registration(registration_data)

        claims = token_service.verify_token(email_service.last_token)
        assert claims["username"] == "alice"
        assert claims["password"] != "secret1"
        assert auth_service.verify_password("secret1", claims["password"])

    @pytest.mark.parametrize(
        "field,value",
        [
            ("username", "bob"),
            ("email", "bob@x.com"),
            ("email", "BOB@X.COM"),
            ("phone", "+15557654321"),
            ("phone", "+1 555-765-4321"),
        ],
    )
    async def test_any_single_collision_rejects(
        self, auth_service, email_service, session_factory,
        registration_data, existing_user, field, value,
    ):
        data = {**registration_data, field: value}

        with pytest.raises(DuplicateResourceError):
            await auth_service.initiate_registration(data)

        assert email_service.sent == []
        assert await count_users(session_factory) == 1

    async def test_unknown_store_rejected(self, auth_service, email_service, registration_data):
        data = {**registration_data, "store": "00000000-0000-0000-0000-000000000000"}

        with pytest.raises(NotFoundError):
            await auth_service.initiate_registration(data)

        assert email_service.sent == []

    async def test_unknown_role_rejected(self, auth_service, email_service, registration_data):
        data = {**registration_data, "role": "00000000-0000-0000-0000-000000000000"}

        with pytest.raises(NotFoundError):
            await auth_service.initiate_registration(data)

        assert email_service.sent == []

    async def test_mail_failure_propagates(
        self, token_service, session_factory, registration_data
    ):
        service = AuthService(
            token_service=token_service,
            email_service=RecordingEmailService(error=MailDeliveryError()),
            session_factory=session_factory,
        )

        with pytest.raises(MailDeliveryError):
            await service.initiate_registration(registration_data)

        assert await count_users(session_factory) == 0


class TestCompleteRegistration:

    async def test_creates_account_and_signs_in(
        self, auth_service, email_service, token_service, session_factory, registration_data
    ):
        result = await register(auth_service, email_service, registration_data)

        user = result["user"]
        assert user.username == "alice"
        assert user.online is True
        assert user.last_login is not None

        access = token_service.verify_token(result["token"]["access"])
        refresh = token_service.verify_token(result["token"]["refresh"])
        expected = {
            "id": str(user.id),
            "role": registration_data["role"],
            "store": registration_data["store"],
        }
        assert access == expected
        assert refresh == expected

        stored = await load_user(session_factory, "alice")
        assert stored is not None
        assert stored.online is True

    async def test_password_stored_as_hash(
        self, auth_service, email_service, session_factory, registration_data
    ):
        await register(auth_service, email_service, registration_data)

        stored = await load_user(session_factory, "alice")
        assert stored.password != "secret1"
        assert stored.password.startswith("$2")
        assert auth_service.verify_password("secret1", stored.password)

    async def test_phone_stored_in_e164(
        self, auth_service, email_service, session_factory, registration_data
    ):
        data = {**registration_data, "phone": "+1 (555) 123-4567"}
        await register(auth_service, email_service, data)

        stored = await load_user(session_factory, "alice")
        assert stored.phone == "+15551234567"

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
    async def test_invalid_token_creates_nothing(self, auth_service, session_factory, token):
        with pytest.raises(InvalidTokenError):
            await auth_service.complete_registration(token)

        assert await count_users(session_factory) == 0

    async def test_expired_token_creates_nothing(
        self, auth_service, token_service, session_factory, registration_data
    ):
        token = token_service.generate_token(registration_data, 0)

        with pytest.raises(InvalidTokenError):
            await auth_service.complete_registration(token)

        assert await count_users(session_factory) == 0

    async def test_session_token_is_not_a_registration_token(
        self, auth_service, token_service, session_factory
    ):
        token = token_service.generate_token({"id": "x", "role": "y", "store": "z"}, "1h")

        with pytest.raises(InvalidTokenError):
            await auth_service.complete_registration(token)

        assert await count_users(session_factory) == 0

    async def test_link_used_twice_is_duplicate(
        self, auth_service, email_service, session_factory, registration_data
    ):
        await register(auth_service, email_service, registration_data)

        with pytest.raises(DuplicateResourceError):
            await auth_service.complete_registration(email_service.last_token)

        assert await count_users(session_factory) == 1

    async def test_account_created_meanwhile_is_duplicate(
        self, auth_service, email_service, session_factory, registration_data, reference_data
    ):
        await auth_service.initiate_registration(registration_data)

        store, role = reference_data
        async with session_factory() as session:
            session.add(User(
                username="alice",
                email="other@x.com",
                phone="+15559990000",
                firstname="Other",
                lastname="Alice",
                password=auth_service.hash_password("whatever"),
                store_id=store.id,
                role_id=role.id,
            ))
            await session.commit()

        with pytest.raises(DuplicateResourceError):
            await auth_service.complete_registration(email_service.last_token)

        assert await count_users(session_factory) == 1

    @pytest.mark.parametrize("removed", ["store", "role"])
    async def test_reference_removed_meanwhile_not_found(
        self, auth_service, email_service, session_factory, registration_data, reference_data, removed
    ):
        await auth_service.initiate_registration(registration_data)

        store, role = reference_data
        async with session_factory() as session:
            await session.delete(store if removed == "store" else role)
            await session.commit()

        with pytest.raises(NotFoundError, match=f"{removed} not found"):
            await auth_service.complete_registration(email_service.last_token)

        assert await count_users(session_factory) == 0


class TestSignIn:

    @pytest.mark.parametrize("name", ["bob", "bob@x.com", "+15557654321", "+1 555 765 4321"])
    async def test_any_identifier_signs_in(
        self, auth_service, token_service, session_factory, existing_user, name
    ):
        result = await auth_service.sign_in(name, "hunter22")

        assert result["user"].id == existing_user.id
        assert set(result["token"]) == {"access", "refresh"}
        assert token_service.verify_token(result["token"]["access"])["id"] == str(existing_user.id)

        stored = await load_user(session_factory, "bob")
        assert stored.online is True
        assert stored.last_login is not None

    async def test_unknown_name_not_found(self, auth_service, existing_user):
        with pytest.raises(NotFoundError):
            await auth_service.sign_in("nobody", "hunter22")

    async def test_wrong_password_leaves_account_offline(
        self, auth_service, session_factory, existing_user
    ):
        with pytest.raises(InvalidCredentialsError):
            await auth_service.sign_in("bob", "wrong-password")

        stored = await load_user(session_factory, "bob")
        assert stored.online is False
        assert stored.last_login is None

    async def test_registered_account_can_sign_in(
        self, auth_service, email_service, registration_data
    ):
        await register(auth_service, email_service, registration_data)

        result = await auth_service.sign_in("a@x.com", "secret1")

        assert result["user"].username == "alice"


class TestUnimplementedOperations:

    @pytest.mark.parametrize(
        "operation,args",
        [
            ("sign_out", ("user-id",)),
            ("forgot_password", ("a@x.com",)),
            ("reset_password", ("token", "newpass")),
            ("change_password", ("user-id", "old", "new")),
            ("verify_otp", ("alice", "123456")),
            ("resend_otp", ("alice",)),
            ("enable_two_factor", ("user-id",)),
            ("disable_two_factor", ("user-id",)),
            ("verify_two_factor", ("user-id", "123456")),
            ("refresh_tokens", ("token",)),
        ],
    )
    async def test_raises_not_implemented(self, auth_service, operation, args):
        with pytest.raises(NotImplementedFeatureError):
            await getattr(auth_service, operation)(*args)
