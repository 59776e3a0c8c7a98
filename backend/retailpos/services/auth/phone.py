"""Phone number normalisation."""

import phonenumbers


def normalize_phone(value: str) -> str:
    """
    Return ``value`` in E.164 form, e.g. "+15551234567".

    Raises:
        ValueError: if the number cannot be parsed or has an impossible length
    """
    try:
        number = phonenumbers.parse(value, None)
    except phonenumbers.NumberParseException as e:
        raise ValueError(f"Invalid phone number: {value}") from e

    if not phonenumbers.is_possible_number(number):
        raise ValueError(f"Invalid phone number: {value}")

    return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)


def try_normalize_phone(value: str) -> str | None:
    """Like normalize_phone, but None for anything that is not a phone number."""
    try:
        return normalize_phone(value)
    except ValueError:
        return None
