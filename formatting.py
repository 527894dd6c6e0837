from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from models import CurrencyCode


CURRENCY_SYMBOLS = {
    CurrencyCode.eur: "€",
    CurrencyCode.usd: "$",
    CurrencyCode.gbp: "£",
    CurrencyCode.mxn: "$",
    CurrencyCode.ars: "$",
    CurrencyCode.cop: "$",
    CurrencyCode.clp: "$",
    CurrencyCode.pen: "S/",
}

# (thousands, decimal) separators; looked up by full locale, then language.
LOCALE_SEPARATORS = {
    "en": (",", "."),
    "es-MX": (",", "."),
    "es-US": (",", "."),
    "es-PE": (",", "."),
    "fr": (" ", ","),
}
DEFAULT_SEPARATORS = (".", ",")


def _separators(locale: str) -> tuple[str, str]:
    if locale in LOCALE_SEPARATORS:
        return LOCALE_SEPARATORS[locale]
    language = locale.split("-", 1)[0].lower()
    return LOCALE_SEPARATORS.get(language, DEFAULT_SEPARATORS)


def format_number(
    value: Decimal, *, locale: str = "es-ES", places: int = 2
) -> str:
    thousands, decimal = _separators(locale)
    quantum = Decimal(1).scaleb(-places)
    rounded = abs(value).quantize(quantum, rounding=ROUND_HALF_UP)
    text = f"{rounded:,.{places}f}"
    text = text.replace(",", "\0").replace(".", decimal).replace("\0", thousands)
    return f"-{text}" if value < 0 and rounded != 0 else text


def format_currency(
    cents: int,
    currency: str = CurrencyCode.eur,
    locale: str = "es-ES",
    show_decimals: bool = True,
) -> str:
    code = CurrencyCode(currency)
    symbol = CURRENCY_SYMBOLS[code]
    amount = Decimal(cents) / Decimal(100)
    number = format_number(amount, locale=locale, places=2 if show_decimals else 0)
    _, decimal = _separators(locale)
    if decimal == ",":
        return f"{number} {symbol}"
    if number.startswith("-"):
        return f"-{symbol}{number[1:]}"
    return f"{symbol}{number}"


def format_percent(
    value: Optional[Decimal], *, locale: str = "es-ES", signed: bool = True
) -> str:
    if value is None:
        return "n/a"
    text = format_number(Decimal(value), locale=locale, places=1)
    if signed and value > 0:
        text = f"+{text}"
    return f"{text}%"
