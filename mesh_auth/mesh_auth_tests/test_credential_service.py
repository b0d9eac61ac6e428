"""
Unit tests for the credential workflow.
"""
import httpx
import pytest
from unittest.mock import Mock, patch
from sqlalchemy import text

from mesh_auth.mesh_auth.auth_service.exceptions import (
    BadRequestError,
    InternalServiceError,
    InvalidCredentialsError,
    RegistrationFailedError,
    ServiceTimeoutError,
    StoreError,
    StoreTimeoutError,
    UserNotFoundError,
)
from mesh_auth.mesh_auth.auth_service.schemas import UserOut
from mesh_auth.mesh_auth.auth_service.service import CredentialService
from mesh_auth.mesh_auth.auth_service.store import UserStore
from mesh_auth.mesh_auth.auth_service.utils.activity_notifier import ActivityNotifier

from .conftest import LOGGER_URL, LoggerServiceStub


@pytest.fixture
def notifier():
    return Mock(spec=ActivityNotifier)


@pytest.fixture
def service(store, notifier):
    return CredentialService(store, notifier)


@pytest.fixture
def registered(service):
    return service.register("a@x.com", "secret", "A", "B", True)


def test_register_returns_stored_user(service):
    user = service.register("a@x.com", "secret", "A", "B", True)
    assert user.id == 1
    assert user.email == "a@x.com"
    assert user.first_name == "A"
    assert user.last_name == "B"
    assert user.active is True
    assert user.password_hash != "secret"


def test_authenticate_success_dispatches_notification(service, notifier, registered):
    user = service.authenticate("a@x.com", "secret")
    assert user.id == registered.id
    notifier.dispatch.assert_called_once_with("authentication", "a@x.com logged in")


def test_authenticate_ignores_email_case(service, registered):
    assert service.authenticate("A@X.COM", "secret").id == registered.id


def test_wrong_password_and_unknown_email_are_indistinguishable(service, notifier, registered):
    with pytest.raises(InvalidCredentialsError) as wrong_password:
        service.authenticate("a@x.com", "wrong")
    with pytest.raises(InvalidCredentialsError) as unknown_email:
        service.authenticate("nobody@x.com", "secret")

    assert wrong_password.value.message == unknown_email.value.message
    assert wrong_password.value.status_code == unknown_email.value.status_code == 400
    notifier.dispatch.assert_not_called()


def test_unknown_email_costs_a_hash_verification(service, registered):
    with patch("mesh_auth.mesh_auth.auth_service.service.dummy_verify") as dummy:
        with pytest.raises(InvalidCredentialsError):
            service.authenticate("nobody@x.com", "secret")
    dummy.assert_called_once_with()


def test_known_email_skips_dummy_verification(service, registered):
    with patch("mesh_auth.mesh_auth.auth_service.service.dummy_verify") as dummy:
        service.authenticate("a@x.com", "secret")
        with pytest.raises(InvalidCredentialsError):
            service.authenticate("a@x.com", "wrong")
    dummy.assert_not_called()


@pytest.mark.parametrize("email,password", [("", "secret"), ("a@x.com", ""), (None, "secret"), ("  ", "secret")])
def test_authenticate_requires_fields(service, email, password):
    with pytest.raises(BadRequestError):
        service.authenticate(email, password)


@pytest.mark.parametrize("error", [StoreTimeoutError("get_by_email", 3), StoreError("boom")])
def test_lookup_failure_is_invalid_credentials(notifier, error):
    store = Mock(spec=UserStore)
    store.get_by_email.side_effect = error
    service = CredentialService(store, notifier)

    with patch("mesh_auth.mesh_auth.auth_service.service.dummy_verify") as dummy:
        with pytest.raises(InvalidCredentialsError):
            service.authenticate("a@x.com", "secret")
    dummy.assert_called_once_with()
    notifier.dispatch.assert_not_called()


def test_malformed_hash_is_invalid_credentials(service, engine, registered):
    with engine.begin() as conn:
        conn.execute(text("UPDATE users SET password = 'corrupt' WHERE id = :id"), {"id": registered.id})

    with pytest.raises(InvalidCredentialsError):
        service.authenticate("a@x.com", "secret")


def test_notifier_failure_does_not_fail_authentication(store, registered):
    notifier = ActivityNotifier(LOGGER_URL, transport=httpx.MockTransport(LoggerServiceStub(fail=True)))
    service = CredentialService(store, notifier)
    try:
        assert service.authenticate("a@x.com", "secret").email == "a@x.com"
    finally:
        notifier.close()


def test_authenticate_without_notifier(store, registered):
    assert CredentialService(store).authenticate("a@x.com", "secret").id == registered.id


def test_authenticate_does_not_modify_user(service, store, registered):
    before = UserOut.model_validate(store.get_one(registered.id))
    service.authenticate("a@x.com", "secret")
    after = store.get_one(registered.id)
    assert UserOut.model_validate(after) == before
    assert after.password_hash == registered.password_hash


def test_register_duplicate_email_fails(service, registered):
    with pytest.raises(RegistrationFailedError):
        service.register("a@x.com", "other", "C", "D", True)


@pytest.mark.parametrize("email,password", [("", "secret"), ("a@x.com", "")])
def test_register_requires_fields(service, email, password):
    with pytest.raises(BadRequestError):
        service.register(email, password)


def test_register_timeout(notifier):
    store = Mock(spec=UserStore)
    store.insert.side_effect = StoreTimeoutError("insert", 3)

    with pytest.raises(ServiceTimeoutError):
        CredentialService(store, notifier).register("a@x.com", "secret")
    store.get_one.assert_not_called()


def test_register_store_failure_is_internal(notifier):
    store = Mock(spec=UserStore)
    store.insert.side_effect = StoreError("insert failed")

    with pytest.raises(InternalServiceError) as exc_info:
        CredentialService(store, notifier).register("a@x.com", "secret")
    assert exc_info.value.status_code == 500
    assert "insert failed" not in exc_info.value.message


def test_register_missing_read_back_is_internal(notifier):
    store = Mock(spec=UserStore)
    store.insert.return_value = 7
    store.get_one.side_effect = UserNotFoundError(7)

    with pytest.raises(InternalServiceError):
        CredentialService(store, notifier).register("a@x.com", "secret")
    store.get_one.assert_called_once_with(7)


def test_register_read_back_timeout(notifier):
    store = Mock(spec=UserStore)
    store.insert.return_value = 7
    store.get_one.side_effect = StoreTimeoutError("get_one", 3)

    with pytest.raises(ServiceTimeoutError) as exc_info:
        CredentialService(store, notifier).register("a@x.com", "secret")
    assert exc_info.value.status_code == 500
    store.get_one.assert_called_once_with(7)


def test_register_passes_plaintext_to_store_only(notifier):
    store = Mock(spec=UserStore)
    store.insert.return_value = 1
    CredentialService(store, notifier).register("a@x.com", "secret", "A", "B", False)

    store.insert.assert_called_once_with(
        email="a@x.com", password="secret", first_name="A", last_name="B", active=False
    )
