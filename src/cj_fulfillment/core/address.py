"""
Address normalization rules for supplier orders.

CJ requires an ISO-2 destination country code and a 13-digit numeric
"consignee ID" on every order. The shop stores free-form country names, so
both values are derived here.
"""

import re
from typing import Optional


COUNTRY_CODE_MAP = {
    # South Africa
    "south africa": "ZA",
    "sa": "ZA",
    "za": "ZA",
    "rsa": "ZA",
    # United States
    "united states": "US",
    "united states of america": "US",
    "usa": "US",
    "us": "US",
    "america": "US",
    # United Kingdom
    "united kingdom": "GB",
    "uk": "GB",
    "gb": "GB",
    "great britain": "GB",
    "england": "GB",
    "canada": "CA",
    "australia": "AU",
    "germany": "DE",
    "france": "FR",
    "netherlands": "NL",
    "nigeria": "NG",
    "kenya": "KE",
    "ghana": "GH",
    "zimbabwe": "ZW",
    "botswana": "BW",
    "namibia": "NA",
    "mozambique": "MZ",
}

CONSIGNEE_ID_LENGTH = 13


def normalize_country_code(raw: Optional[str], default: str = "ZA") -> str:
    """
    Return ``raw`` upper-cased when it is a 2-letter code, else ``default``.

    This is the strict rule applied when building the supplier payload.
    """
    code = str(raw or "").strip().upper()
    return code if len(code) == 2 else default


def resolve_country_code(raw: Optional[str], default: str = "ZA") -> str:
    """
    Map a stored country name or alias to an ISO-2 code.

    Known names/aliases are looked up case-insensitively; any other 2-letter
    value is accepted as a code; everything else falls back to ``default``.
    """
    text = str(raw or "").strip()
    code = COUNTRY_CODE_MAP.get(text.lower())
    if code:
        return code
    if len(text) == 2 and text.isalpha():
        return text.upper()
    return default


def derive_consignee_id(phone: Optional[str]) -> str:
    """
    Derive the supplier's 13-digit consignee ID from a phone number.

    Digits only: exactly 13 are used as-is, longer values are truncated to
    the first 13, shorter values are left-padded with zeros.
    """
    digits = re.sub(r"[^0-9]", "", phone or "")
    if len(digits) >= CONSIGNEE_ID_LENGTH:
        return digits[:CONSIGNEE_ID_LENGTH]
    return digits.rjust(CONSIGNEE_ID_LENGTH, "0")
