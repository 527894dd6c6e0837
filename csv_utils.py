import csv
import re
from decimal import Decimal, InvalidOperation
from io import StringIO
from typing import Sequence

from models import Operation


_CURRENCY_SYMBOLS = ("€", "$", "£")


def sanitize_csv_value(value: str) -> str:
    """
    Sanitize CSV values to prevent formula injection by prefixing dangerous patterns with tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    formula_triggers = ("=", "+", "-", "@", "\t", "\r")

    if value.startswith(formula_triggers):
        return "\t" + value

    dangerous_patterns = [
        r"^cmd\s*",
        r"^powershell\s*",
        r"^bash\s*",
        r"^sh\s*",
        r"^\.",
        r"^http[s]?://",
    ]

    for pattern in dangerous_patterns:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def _normalize_separators(clean: str) -> str:
    # "1.234,56" and "1,234.56": the rightmost separator is the decimal one.
    if "," in clean and "." in clean:
        decimal = "," if clean.rfind(",") > clean.rfind(".") else "."
        thousands = "." if decimal == "," else ","
        return clean.replace(thousands, "").replace(decimal, ".")

    separator = "," if "," in clean else "."
    count = clean.count(separator)
    if count == 0:
        return clean
    # A lone separator followed by exactly three digits groups thousands.
    integer, _, fraction = clean.rpartition(separator)
    groups_thousands = len(fraction) == 3 and fraction.isdigit()
    if count > 1 or (groups_thousands and integer.lstrip("-") not in ("", "0")):
        return clean.replace(separator, "")
    return clean.replace(separator, ".")


def parse_amount(value: str, *, allow_negative: bool = False) -> int:
    clean = value.strip()
    for symbol in _CURRENCY_SYMBOLS:
        clean = clean.replace(symbol, "")
    clean = clean.replace(" ", "").replace("\u00a0", "")
    clean = _normalize_separators(clean)
    try:
        amount = Decimal(clean)
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    cents = int((amount * 100).quantize(Decimal("1")))
    if cents < 0 and not allow_negative:
        raise ValueError("Amount must be positive")
    return cents


def export_operations(operations: Sequence[Operation]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(
        ["Date", "Type", "Amount", "Concept", "Category", "Segment", "Description"]
    )
    for op in operations:
        category = op.category
        writer.writerow(
            [
                op.operation_date.isoformat(),
                op.type.value,
                f"{op.amount_cents / 100:.2f}",
                sanitize_csv_value(op.concept),
                sanitize_csv_value(category.name if category else ""),
                category.segment.value if category and category.segment else "",
                sanitize_csv_value(op.description or ""),
            ]
        )
    return output.getvalue()
