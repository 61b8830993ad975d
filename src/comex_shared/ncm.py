"""
ncm.py — NCM code normalization.

Spreadsheets and user input carry NCM codes in several shapes:
  "8471.30.12", "84713012", 84713012 (numeric cell), "2709001" (lost
  leading zero). Everything is reduced to the 8-digit string form the
  Comex Stat API uses.

Usage:
    from comex_shared.ncm import normalize_ncm, format_ncm

    normalize_ncm("8471.30.12")  # "84713012"
    format_ncm("84713012")       # "8471.30.12"
"""

from __future__ import annotations

import re

from comex_shared.constants import NCM_LENGTH

_NON_DIGIT_RE = re.compile(r"\D")
# Numeric spreadsheet cells rendered as text: "84713012.0"
_FLOAT_TEXT_RE = re.compile(r"^(\d+)\.0+$")


def normalize_ncm(raw: str | int | float | None) -> str | None:
    """Return the 8-digit NCM string for raw, or None if it has no digits."""
    if raw is None:
        return None
    if isinstance(raw, float):
        if raw != raw:  # NaN
            return None
        raw = int(raw)
    text = _FLOAT_TEXT_RE.sub(r"\1", str(raw).strip())
    digits = _NON_DIGIT_RE.sub("", text)
    if not digits or len(digits) > NCM_LENGTH:
        return None
    return digits.zfill(NCM_LENGTH)


def format_ncm(code: str) -> str:
    """Dotted display form: 84713012 → 8471.30.12."""
    code = normalize_ncm(code) or code
    if len(code) != NCM_LENGTH:
        return code
    return f"{code[:4]}.{code[4:6]}.{code[6:]}"


def is_valid_ncm(raw: str | None) -> bool:
    """True when raw is exactly eight digits (no punctuation)."""
    return bool(raw) and raw.isdigit() and len(raw) == NCM_LENGTH
