import pytest

from app.core import crypto
from app.core.errors import DecryptionError, NotFoundError, ValidationError
from app.repositories.secret_repository import SecretRepository
from app.services.secret_manager import SecretManager


@pytest.fixture
def app_id(make_app):
    return make_app().id


@pytest.fixture
def secrets(db, encryption_key):
    return SecretManager(db, encryption_key)


def test_set_encrypts_at_rest(db, secrets, app_id, encryption_key):
    secrets.set(app_id, "DB_PASSWORD", "hunter2")

    stored = SecretRepository(db).get_by_key(app_id, "DB_PASSWORD")
    assert stored.value_encrypted != b"hunter2"
    assert crypto.decrypt(stored.value_encrypted, encryption_key) == b"hunter2"


def test_set_upserts_by_key(db, secrets, app_id):
    first = secrets.set(app_id, "TOKEN", "one")
    second = secrets.set(app_id, "TOKEN", "two")

    assert first.id == second.id
    assert len(SecretRepository(db).list_for_app(app_id)) == 1
    assert secrets.bundle(app_id) == {"TOKEN": "two"}


def test_keys_are_case_sensitive(secrets, app_id):
    secrets.set(app_id, "token", "lower")
    secrets.set(app_id, "TOKEN", "upper")

    assert secrets.bundle(app_id) == {"token": "lower", "TOKEN": "upper"}


def test_list_never_exposes_values(secrets, app_id):
    secrets.set(app_id, "API_KEY", "abc123")

    listed = secrets.list(app_id)

    assert [entry["key"] for entry in listed] == ["API_KEY"]
    assert set(listed[0]) == {"key", "created_at", "updated_at"}
    assert "abc123" not in repr(listed)


@pytest.mark.parametrize("key,value", [("", "value"), ("KEY", "")])
def test_key_and_value_are_required(secrets, app_id, key, value):
    with pytest.raises(ValidationError):
        secrets.set(app_id, key, value)


def test_unknown_application(secrets):
    with pytest.raises(NotFoundError):
        secrets.set("missing", "KEY", "value")
    with pytest.raises(NotFoundError):
        secrets.list("missing")


def test_delete(secrets, app_id):
    secrets.set(app_id, "KEY", "value")
    secrets.delete(app_id, "KEY")

    assert secrets.list(app_id) == []
    with pytest.raises(NotFoundError):
        secrets.delete(app_id, "KEY")


def test_bundle_with_wrong_key_fails(db, secrets, app_id):
    secrets.set(app_id, "KEY", "value")

    with pytest.raises(DecryptionError):
        SecretManager(db, crypto.generate_key()).bundle(app_id)
