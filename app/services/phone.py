"""Phone number checks and country dial codes.

Length bounds are a coarse per-country heuristic, not E.164 validation: numbers that
pass here can still be unreachable, and some valid numbers in countries without an
explicit entry are only held to the default 7-15 digit range.
"""
import re

DEFAULT_PHONE_LENGTH = (7, 15)

# Dial code -> (min, max) national digits
PHONE_LENGTHS: dict[str, tuple[int, int]] = {
    "+1": (10, 10),     # US / Canada
    "+33": (9, 9),      # France
    "+34": (9, 9),      # Spain
    "+39": (9, 9),      # Italy
    "+44": (10, 10),    # UK
    "+49": (10, 10),    # Germany
    "+55": (10, 11),    # Brazil
    "+351": (9, 9),     # Portugal
}

# ISO 3166 alpha-2 -> dial code, used to pre-fill the phone country code from geolocation
DIAL_CODES: dict[str, str] = {
    "US": "+1",
    "CA": "+1",
    "FR": "+33",
    "ES": "+34",
    "IT": "+39",
    "GB": "+44",
    "DE": "+49",
    "BR": "+55",
    "PT": "+351",
    "AO": "+244",
    "MZ": "+258",
    "CV": "+238",
    "NL": "+31",
    "BE": "+32",
    "CH": "+41",
    "IE": "+353",
    "MX": "+52",
    "AR": "+54",
    "IN": "+91",
    "CN": "+86",
    "JP": "+81",
    "AU": "+61",
    "ZA": "+27",
    "AE": "+971",
}

_SEPARATORS = re.compile(r"[\s\-()]")


def normalize_phone(value: str | None) -> str:
    return _SEPARATORS.sub("", (value or "").strip())


def validate_phone(phone: str | None, country_code: str | None) -> str | None:
    """Return an error message, or None when the number is acceptable for the dial code."""
    digits = normalize_phone(phone)
    if not digits:
        return "Please enter a phone number"
    if not digits.isdigit():
        return "Phone number can only contain digits"
    min_len, max_len = PHONE_LENGTHS.get((country_code or "").strip(), DEFAULT_PHONE_LENGTH)
    # The global ceiling applies whatever the country table says
    max_len = min(max_len, DEFAULT_PHONE_LENGTH[1])
    if len(digits) < min_len:
        return f"Phone number is too short (at least {min_len} digits)"
    if len(digits) > max_len:
        return f"Phone number is too long (at most {max_len} digits)"
    return None


def dial_code_for_country(country_code: str | None) -> str | None:
    return DIAL_CODES.get((country_code or "").strip().upper())
