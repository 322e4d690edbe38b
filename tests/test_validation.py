"""Address and contact validator tests."""

import pytest

from conftest import valid_address
from storefront.checkout.validation import (
    GENERIC_ADDRESS_MESSAGE,
    AddressValidationResult,
    describe_address_problem,
    is_address_valid,
    validate_email,
    validate_shipping_address,
)


class TestValidateShippingAddress:

    def test_complete_address_is_valid(self):
        result = validate_shipping_address(valid_address())
        assert result.valid
        assert result.missing == []
        assert result.errors == []

    def test_missing_postal_code(self):
        result = validate_shipping_address(valid_address(postal_code=None))
        assert not result.valid
        assert "Postal Code" in result.missing

    def test_full_name_length_boundary(self):
        assert validate_shipping_address(valid_address(full_name="Jo")).valid
        result = validate_shipping_address(valid_address(full_name="J"))
        assert not result.valid
        assert result.errors == ["Full Name must be at least 2 characters"]

    def test_whitespace_only_counts_as_missing(self):
        result = validate_shipping_address(valid_address(city="   "))
        assert result.missing == ["City"]

    def test_short_street(self):
        result = validate_shipping_address(valid_address(street_address="1 A"))
        assert "Street Address must be at least 5 characters" in result.errors

    def test_phone_optional_unless_required(self):
        address = valid_address(phone_number=None)
        assert validate_shipping_address(address).valid
        result = validate_shipping_address(address, require_phone=True)
        assert result.missing == ["Phone Number"]

    @pytest.mark.parametrize("phone", ["12345", "call me maybe", "+1 555 123 4567 ext 99999"])
    def test_bad_phone_rejected_even_when_optional(self, phone):
        result = validate_shipping_address(valid_address(phone_number=phone))
        assert not result.valid
        assert len(result.errors) == 1

    def test_camel_case_dict(self):
        address = {
            "fullName": "Jane Doe",
            "streetAddress": "350 Fifth Avenue",
            "city": "New York",
            "stateProvince": "NY",
            "postalCode": "10118",
            "country": "US",
        }
        assert validate_shipping_address(address).valid

    @pytest.mark.parametrize("address", [None, {}, {"full_name": 42}, "not an address"])
    def test_garbage_never_raises(self, address):
        result = validate_shipping_address(address)
        assert not result.valid
        assert result.missing

    @pytest.mark.parametrize("address, require_phone", [
        (valid_address(), False),
        (valid_address(phone_number=None), True),
        (valid_address(country=""), False),
        (valid_address(phone_number="abc"), False),
    ])
    def test_boolean_form_agrees(self, address, require_phone):
        detailed = validate_shipping_address(address, require_phone)
        assert is_address_valid(address, require_phone) is detailed.valid


class TestValidateEmail:

    @pytest.mark.parametrize("email", ["jane@example.com", " a.b+c@mail.co.uk "])
    def test_valid(self, email):
        assert validate_email(email)

    @pytest.mark.parametrize("email", [None, "", "jane", "jane@example", "ja ne@example.com", "@example.com", 123])
    def test_invalid(self, email):
        assert not validate_email(email)


class TestDescribeAddressProblem:

    def test_first_error_wins(self):
        result = AddressValidationResult(valid=False, missing=["City"], errors=["Full Name must be at least 2 characters"])
        assert describe_address_problem(result) == "Full Name must be at least 2 characters"

    def test_lists_missing_fields(self):
        result = AddressValidationResult(valid=False, missing=["City", "Country"])
        assert describe_address_problem(result) == "Missing required fields: City, Country"

    def test_generic_fallback(self):
        assert describe_address_problem(AddressValidationResult(valid=False)) == GENERIC_ADDRESS_MESSAGE
