import pytest

from hacienda.core.exceptions import AuthError, AuthErrorCode
from hacienda.domain.models.auth import IdType
from hacienda.infrastructure.auth.credentials import build_username, load_credentials


@pytest.mark.parametrize(
    "id_type, id_number, expected",
    [
        (IdType.PERSONA_FISICA, "112345678", "cpf-01-112345678"),
        (IdType.PERSONA_JURIDICA, "3101234567", "cpj-02-3101234567"),
        ("03", "155812345678", "cpf-03-155812345678"),
        ("04", "1234567890", "cpf-04-1234567890"),
    ],
)
def test_build_username(id_type, id_number, expected):
    assert build_username(id_type, id_number) == expected


def test_load_credentials_success():
    credentials = load_credentials("02", "3101234567", "s3cret")
    assert credentials.username == "cpj-02-3101234567"
    assert credentials.password == "s3cret"


def test_password_is_hidden_from_repr():
    credentials = load_credentials("01", "112345678", "s3cret")
    assert "s3cret" not in repr(credentials)


@pytest.mark.parametrize(
    "id_type, id_number, password, message",
    [
        ("05", "3101234567", "pw", "Invalid identification type"),
        ("02", "31012ABC67", "pw", "must contain only digits"),
        ("02", "12345678", "pw", "between 9 and 12 digits"),
        ("02", "1234567890123", "pw", "between 9 and 12 digits"),
        ("02", "3101234567", "", "Password is required"),
    ],
)
def test_load_credentials_rejects_invalid_fields(id_type, id_number, password, message):
    with pytest.raises(AuthError, match=message) as exc_info:
        load_credentials(id_type, id_number, password)
    assert exc_info.value.auth_code == AuthErrorCode.INVALID_CREDENTIALS


def test_load_credentials_reports_every_problem():
    with pytest.raises(AuthError) as exc_info:
        load_credentials("99", "", None)
    message = str(exc_info.value)
    assert "Invalid identification type" in message
    assert "only digits" in message
    assert "Password is required" in message
