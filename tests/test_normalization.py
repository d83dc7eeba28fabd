import pytest
from pydantic import ValidationError

from brokerdesk.schemas.client import ClientIntake
from brokerdesk.utils.normalization import normalize_email, normalize_name, normalize_phone


def test_normalize_phone_strips_punctuation():
    assert normalize_phone("(11) 98765-4321") == "11987654321"
    assert normalize_phone("+55 11 98765-4321") == "+5511987654321"


@pytest.mark.parametrize("value", ["123", "1" * 16, "abc"])
def test_normalize_phone_rejects_bad_lengths(value):
    with pytest.raises(ValueError):
        normalize_phone(value)


def test_normalize_phone_empty():
    assert normalize_phone(None) is None
    assert normalize_phone("   ") is None


def test_normalize_name_and_email():
    assert normalize_name("  Ana   Maria  ") == "Ana Maria"
    assert normalize_name("   ") is None
    assert normalize_email("  Ana@Example.COM ") == "ana@example.com"


def test_intake_schema_normalizes_contact_fields():
    data = ClientIntake(name=" Ana  Souza ", email="ANA@EXAMPLE.COM", phone="(11) 98765-4321")

    assert data.name == "Ana Souza"
    assert data.email == "ana@example.com"
    assert data.phone == "11987654321"
    assert data.origin == "site"


def test_intake_schema_rejects_blank_name_and_bad_phone():
    with pytest.raises(ValidationError):
        ClientIntake(name="   ")
    with pytest.raises(ValidationError):
        ClientIntake(name="Ana", phone="12")
