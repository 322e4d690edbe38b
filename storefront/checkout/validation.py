"""
Address & Contact Validator

One rule set for shipping addresses. ``validate_shipping_address`` returns
the detailed result; ``is_address_valid`` is derived from it, so the two can
never disagree.

None of these functions raise: missing fields, ``None`` values, non-string
values and plain dicts all produce a structured negative result.
"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

PHONE_PATTERN = re.compile(r"[\d\s\-+()]{8,20}")
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

GENERIC_ADDRESS_MESSAGE = "Please fill in all required shipping address fields."

# (attribute, camelCase key, label, minimum length)
_ADDRESS_RULES = (
    ("full_name", "fullName", "Full Name", 2),
    ("street_address", "streetAddress", "Street Address", 5),
    ("city", "city", "City", 2),
    ("state_province", "stateProvince", "State/Province", 2),
    ("postal_code", "postalCode", "Postal Code", 3),
    ("country", "country", "Country", 1),
)


@dataclass
class AddressValidationResult:
    """Outcome of validating a shipping address."""
    valid: bool
    missing: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"valid": self.valid, "missing": list(self.missing), "errors": list(self.errors)}


def _read(address: Any, attr: str, camel: str) -> str:
    """Trimmed string value of a field, '' when absent or not a string."""
    if address is None:
        return ""
    if isinstance(address, dict):
        value = address.get(attr, address.get(camel))
    else:
        value = getattr(address, attr, None)
    if not isinstance(value, str):
        return ""
    return value.strip()


def validate_shipping_address(address: Any, require_phone: bool = False) -> AddressValidationResult:
    """
    Validate a shipping address.

    Every field but the phone must be present and meet its minimum length.
    The phone is mandatory only with ``require_phone`` but is checked
    against the phone pattern whenever it is given.
    """
    missing: List[str] = []
    errors: List[str] = []

    for attr, camel, label, min_length in _ADDRESS_RULES:
        value = _read(address, attr, camel)
        if not value:
            missing.append(label)
        elif len(value) < min_length:
            errors.append(f"{label} must be at least {min_length} characters")

    phone = _read(address, "phone_number", "phoneNumber")
    if require_phone and not phone:
        missing.append("Phone Number")
    elif phone and not PHONE_PATTERN.fullmatch(phone):
        errors.append("Phone Number must be 8-20 digits (spaces, dashes, parentheses allowed)")

    return AddressValidationResult(
        valid=not missing and not errors,
        missing=missing,
        errors=errors,
    )


def is_address_valid(address: Any, require_phone: bool = False) -> bool:
    return validate_shipping_address(address, require_phone).valid


def validate_email(email: Optional[str]) -> bool:
    """Loose ``local@domain.tld`` shape check (not RFC 5322)."""
    if not isinstance(email, str) or not email.strip():
        return False
    return EMAIL_PATTERN.fullmatch(email.strip()) is not None


def describe_address_problem(result: AddressValidationResult) -> str:
    """The message shown to the shopper for a failed address."""
    if result.errors:
        return result.errors[0]
    if result.missing:
        return f"Missing required fields: {', '.join(result.missing)}"
    return GENERIC_ADDRESS_MESSAGE
