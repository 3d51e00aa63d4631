"""UK vehicle registration mark (VRM) normalization.

Every cache key and provider request uses the normalized form: all
whitespace removed, uppercased. ``"ab12 cde"``, ``"AB12CDE"`` and
``" AB12CDE "`` all resolve to ``"AB12CDE"``.
"""

import re

from autodata.errors import InvalidRegistrationIdentifier

_WHITESPACE = re.compile(r"\s+")

# Current (2001+), prefix (1983-2001), suffix (1963-1983) and dateless marks
_VRM_PATTERNS = (
    re.compile(r"^[A-Z]{2}\d{2}[A-Z]{3}$"),
    re.compile(r"^[A-Z]\d{1,3}[A-Z]{3}$"),
    re.compile(r"^[A-Z]{3}\d{1,3}[A-Z]$"),
    re.compile(r"^[A-Z]{1,3}\d{1,4}$"),
    re.compile(r"^\d{1,4}[A-Z]{1,3}$"),
)


def normalize_registration(raw: str) -> str:
    """Strip all whitespace and uppercase a registration mark."""
    return _WHITESPACE.sub("", raw).upper()


def is_valid_registration(raw: object) -> bool:
    """Check whether ``raw`` normalizes to a recognised UK format."""
    if not isinstance(raw, str):
        return False
    cleaned = normalize_registration(raw)
    return any(pattern.match(cleaned) for pattern in _VRM_PATTERNS)


def validate_registration(raw: object) -> str:
    """Normalize and validate a registration mark.

    Args:
        raw: Caller-supplied registration (any casing/spacing)

    Returns:
        Normalized registration

    Raises:
        InvalidRegistrationIdentifier: If ``raw`` is not a string or does
            not match any UK registration format
    """
    if not is_valid_registration(raw):
        raise InvalidRegistrationIdentifier(raw)
    return normalize_registration(raw)  # type: ignore[arg-type]
