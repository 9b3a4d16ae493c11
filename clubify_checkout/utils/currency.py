"""
Montants et formatage monétaire.
- Les montants sont des Decimal, arrondis explicitement (ROUND_HALF_EVEN)
- 2 décimales par défaut, 0 pour CLP et COP
- Table fixe de formatage par code ISO (symbole, séparateurs)
"""
from decimal import Decimal, ROUND_HALF_EVEN, InvalidOperation
from typing import Any, Dict

from clubify_checkout.errors import ValidationError

# code -> (préfixe, décimales, séparateur décimal, séparateur de milliers)
CURRENCY_FORMATS: Dict[str, tuple] = {
    "BRL": ("R$ ", 2, ",", "."),
    "USD": ("$", 2, ".", ","),
    "EUR": ("€", 2, ",", "."),
    "ARS": ("AR$ ", 2, ",", "."),
    "CLP": ("CL$ ", 0, ",", "."),
    "PEN": ("S/ ", 2, ".", ","),
    "COP": ("CO$ ", 0, ",", "."),
    "MXN": ("MX$ ", 2, ".", ","),
}

SUPPORTED_CURRENCIES = tuple(CURRENCY_FORMATS.keys())
DEFAULT_CURRENCY = "BRL"
ZERO = Decimal("0")

def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise ValidationError(f"Montant invalide: {value!r}")
    try:
        # str() évite les artefacts binaires des float (0.1 -> 0.1000000000000000055...)
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Montant invalide: {value!r}") from e

def currency_decimals(currency: str) -> int:
    fmt = CURRENCY_FORMATS.get((currency or "").upper())
    if fmt is None:
        raise ValidationError(f"Devise non supportée: {currency}")
    return fmt[1]

def quantize_amount(amount: Any, currency: str = DEFAULT_CURRENCY) -> Decimal:
    """Arrondi bancaire à la précision de la devise."""
    decimals = currency_decimals(currency)
    exp = Decimal(1).scaleb(-decimals)
    return to_decimal(amount).quantize(exp, rounding=ROUND_HALF_EVEN)

def _group_thousands(digits: str, sep: str) -> str:
    parts = []
    while len(digits) > 3:
        parts.insert(0, digits[-3:])
        digits = digits[:-3]
    parts.insert(0, digits)
    return sep.join(parts)

def format_currency(amount: Any, currency: str = DEFAULT_CURRENCY) -> str:
    """
    Formate un montant selon la table CURRENCY_FORMATS.
    - BRL 1234.56 -> "R$ 1.234,56" ; USD -> "$1,234.56" ; CLP 1234.5 -> "CL$ 1.234"
    """
    code = (currency or "").upper()
    if code not in CURRENCY_FORMATS:
        raise ValidationError(f"Devise non supportée: {currency}")
    prefix, decimals, dec_sep, thousands_sep = CURRENCY_FORMATS[code]
    value = quantize_amount(amount, code)
    sign = "-" if value < 0 else ""
    text = f"{abs(value):.{decimals}f}"
    int_part, _, frac_part = text.partition(".")
    out = _group_thousands(int_part, thousands_sep)
    if decimals:
        out += dec_sep + frac_part
    return f"{sign}{prefix}{out}"
