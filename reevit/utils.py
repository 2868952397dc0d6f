"""Formatting and validation helpers shared by checkout UIs."""

from __future__ import annotations

import re
import secrets
import string
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from reevit.types import MobileMoneyNetwork, ReevitTheme

_BASE36 = string.digits + string.ascii_lowercase


class _CurrencyFormat(NamedTuple):
    symbol: str
    symbol_after: bool
    decimal_sep: str
    group_sep: str


# Display conventions of each currency's home locale
_CURRENCY_FORMATS: dict[str, _CurrencyFormat] = {
    "GHS": _CurrencyFormat("GH₵", False, ".", ","),
    "NGN": _CurrencyFormat("₦", False, ".", ","),
    "KES": _CurrencyFormat("Ksh\u00a0", False, ".", ","),
    "USD": _CurrencyFormat("$", False, ".", ","),
    "EUR": _CurrencyFormat("\u00a0€", True, ",", "."),
    "GBP": _CurrencyFormat("£", False, ".", ","),
}

_PHONE_PATTERNS: dict[str, re.Pattern[str]] = {
    "GH": re.compile(r"^(?:233|0)?[235][0-9]{8}$"),
    "NG": re.compile(r"^(?:234|0)?[789][01][0-9]{8}$"),
    "KE": re.compile(r"^(?:254|0)?[17][0-9]{8}$"),
}

_NETWORK_PREFIXES: dict[MobileMoneyNetwork, tuple[str, ...]] = {
    MobileMoneyNetwork.MTN: ("24", "25", "53", "54", "55", "59"),
    MobileMoneyNetwork.TELECEL: ("20", "50"),
    MobileMoneyNetwork.AIRTELTIGO: ("26", "27", "56", "57"),
}

_CURRENCY_TO_COUNTRY = {
    "GHS": "GH",
    "NGN": "NG",
    "KES": "KE",
    "UGX": "UG",
    "TZS": "TZ",
    "ZAR": "ZA",
    "XOF": "CI",
    "XAF": "CM",
    "USD": "US",
    "EUR": "DE",
    "GBP": "GB",
}


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value)


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    chars = []
    while number:
        number, rem = divmod(number, 36)
        chars.append(_BASE36[rem])
    return "".join(reversed(chars))


def format_amount(amount: int, currency: str) -> str:
    """Format an amount in the smallest currency unit for display.

    Example:
        format_amount(150000, "GHS")  # "GH₵1,500.00"
    """
    major = (Decimal(amount) / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    fmt = _CURRENCY_FORMATS.get(currency.upper())
    if fmt is None:
        return f"{currency} {major:.2f}"

    sign = "-" if major < 0 else ""
    integral, fraction = f"{abs(major):,.2f}".split(".")
    number = integral.replace(",", fmt.group_sep) + fmt.decimal_sep + fraction
    if fmt.symbol_after:
        return f"{sign}{number}{fmt.symbol}"
    return f"{sign}{fmt.symbol}{number}"


def generate_reference(prefix: str = "reevit") -> str:
    """Generate a unique payment reference: ``<prefix>_<time36>_<random6>``."""
    timestamp = _to_base36(int(time.time() * 1000))
    random_part = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{prefix}_{timestamp}_{random_part}"


def validate_phone(phone: str, country: str = "GH") -> bool:
    """Validate a mobile money phone number for a country.

    Unknown countries only require at least 10 digits.
    """
    digits = _digits(phone)
    pattern = _PHONE_PATTERNS.get(country.upper())
    if pattern is None:
        return len(digits) >= 10
    return pattern.match(digits) is not None


def format_phone(phone: str, country: str = "GH") -> str:
    """Format a Ghanaian number as ``0XX XXX XXXX``; others are returned as-is."""
    digits = _digits(phone)
    if country.upper() == "GH":
        if digits.startswith("233") and len(digits) == 12:
            local = "0" + digits[3:]
            return f"{local[:3]} {local[3:6]} {local[6:]}"
        if len(digits) == 10 and digits.startswith("0"):
            return f"{digits[:3]} {digits[3:6]} {digits[6:]}"
    return phone


def detect_network(phone: str) -> MobileMoneyNetwork | None:
    """Detect the Ghanaian mobile money network from a phone number."""
    digits = _digits(phone)
    if digits.startswith("233"):
        prefix = digits[3:5]
    elif digits.startswith("0"):
        prefix = digits[1:3]
    else:
        prefix = digits[:2]

    for network, prefixes in _NETWORK_PREFIXES.items():
        if prefix in prefixes:
            return network
    return None


def detect_country_from_currency(currency: str) -> str:
    """Map a currency code to its country code, defaulting to GH."""
    return _CURRENCY_TO_COUNTRY.get(currency.upper(), "GH")


def _contrasting_color(color: str) -> str | None:
    hex_color = color.strip()
    if not hex_color.startswith("#"):
        return None
    if len(hex_color) == 4:
        hex_color = "#" + "".join(ch * 2 for ch in hex_color[1:])
    if len(hex_color) != 7:
        return None
    try:
        r, g, b = (int(hex_color[i : i + 2], 16) for i in (1, 3, 5))
    except ValueError:
        return None

    brightness = (r * 299 + g * 587 + b * 114) / 1000
    return "#0b1120" if brightness >= 140 else "#ffffff"


def create_theme_variables(theme: ReevitTheme) -> dict[str, str]:
    """Map a theme to CSS custom properties."""
    variables: dict[str, str] = {}

    if theme.primary_color:
        variables["--reevit-primary"] = theme.primary_color
        foreground = theme.primary_foreground_color or _contrasting_color(theme.primary_color)
        if foreground:
            variables["--reevit-primary-foreground"] = foreground
    if theme.background_color:
        variables["--reevit-background"] = theme.background_color
    if theme.surface_color:
        variables["--reevit-surface"] = theme.surface_color
    if theme.text_color:
        variables["--reevit-text"] = theme.text_color
    if theme.muted_text_color:
        variables["--reevit-text-secondary"] = theme.muted_text_color
    if theme.border_radius:
        variables["--reevit-radius"] = theme.border_radius
        variables["--reevit-radius-sm"] = theme.border_radius
        variables["--reevit-radius-lg"] = theme.border_radius
    if theme.font_family:
        variables["--reevit-font"] = theme.font_family

    return variables


def cn(*classes: str | bool | None) -> str:
    """Join truthy class names with spaces."""
    return " ".join(c for c in classes if c and isinstance(c, str))
