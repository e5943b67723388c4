import re

_SEPARATORS = re.compile(r"[\s\-().]")
_NON_DIGITS = re.compile(r"\D")

COUNTRY_CODE = "91"


def normalize_phone(raw):
    """Reduce a phone number to its national 10-digit form.

    "+91 98765-43210", "098765 43210" and "9876543210" all become
    "9876543210". Anything that does not look like an Indian number is
    returned as bare digits.
    """
    if raw is None:
        return ""
    digits = _NON_DIGITS.sub("", str(raw))
    if len(digits) == 12 and digits.startswith(COUNTRY_CODE):
        return digits[2:]
    if len(digits) == 11 and digits.startswith("0"):
        return digits[1:]
    return digits


def phone_variants(raw):
    """Every form a stored phone might take for the same number."""
    if raw is None:
        return []
    raw = str(raw).strip()
    if not raw:
        return []
    stripped = _SEPARATORS.sub("", raw)
    candidates = [raw, stripped, stripped.lstrip("+"), stripped.lstrip("0")]
    bare = stripped.lstrip("+")
    if bare.startswith(COUNTRY_CODE) and len(bare) > 10:
        candidates.append(bare[len(COUNTRY_CODE):])
    candidates.append(normalize_phone(raw))

    # keep order, drop blanks and repeats
    seen = []
    for value in candidates:
        if value and value not in seen:
            seen.append(value)
    return seen
