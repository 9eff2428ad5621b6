from datetime import date

import pytest

from dancehub.shared.validators import (
    calculate_age,
    is_digits,
    is_valid_iban,
    is_valid_routing_number,
    is_valid_ssn_last_4,
    normalize_iban,
    postal_code_error,
    validate_date_string,
    validate_time_string,
)


@pytest.mark.parametrize(
    "iban, expected",
    [
        ("EE382200221020145685", True),
        ("US123", False),
        ("eb38 2200 2210 2014 5685", True),
        ("", False),
        ("1234567890123456", False),
    ],
)
def test_iban_shape(iban, expected):
    assert is_valid_iban(iban) is expected


def test_iban_checksum_is_not_enforced():
    # Bad check digits, correct shape
    assert is_valid_iban("EE002200221020145685")


def test_normalize_iban():
    assert normalize_iban(" eb38 2200\t2210 ") == "EB3822002210"


@pytest.mark.parametrize(
    "routing, expected",
    [("021000021", True), ("123456789", False), ("02100002", False), ("02100002a", False), ("０２１０００００２１", False), (None, False)],
)
def test_routing_number_checksum(routing, expected):
    assert is_valid_routing_number(routing) is expected


@pytest.mark.parametrize("value, expected", [("1234", True), ("１２３４", False), ("12a4", False), ("", False)])
def test_digits_are_ascii_only(value, expected):
    assert is_digits(value) is expected
    assert is_valid_ssn_last_4(value) is expected


def test_age_is_exact_on_birthday():
    today = date(2024, 6, 1)
    assert calculate_age(1, 6, 2006, today) == 18
    assert calculate_age(2, 6, 2006, today) == 17


def test_age_rejects_impossible_dates():
    with pytest.raises(ValueError):
        calculate_age(31, 2, 2000, date(2024, 6, 1))


def test_postal_codes_by_country():
    assert postal_code_error("94105", "US") is None
    assert postal_code_error("94105-1234", "US") is None
    assert postal_code_error("9410", "US").startswith("Invalid US ZIP")
    assert postal_code_error("K1A 0A6", "CA") is None
    assert postal_code_error("SW1A 1AA", "GB") is None
    assert postal_code_error("10115", "DE") is None
    assert postal_code_error("1", "DE") == "Postal code must be between 3 and 10 characters"


def test_time_strings_are_zero_padded():
    assert validate_time_string("9:30") == "09:30"
    with pytest.raises(ValueError):
        validate_time_string("24:00")


def test_date_strings():
    assert validate_date_string("2024-06-01") == "2024-06-01"
    with pytest.raises(ValueError):
        validate_date_string("2024-02-30")
    with pytest.raises(ValueError):
        validate_date_string("06/01/2024")
