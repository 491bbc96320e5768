"""Amounts in words, Indian numbering system (crore, lakh, thousand)."""

from decimal import ROUND_HALF_UP, Decimal

ONES = ["", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine"]
TEENS = [
    "Ten",
    "Eleven",
    "Twelve",
    "Thirteen",
    "Fourteen",
    "Fifteen",
    "Sixteen",
    "Seventeen",
    "Eighteen",
    "Nineteen",
]
TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]

CRORE = 10_000_000
LAKH = 100_000
THOUSAND = 1_000


def _below_hundred(n: int) -> str:
    if n < 10:
        return ONES[n]
    if n < 20:
        return TEENS[n - 10]
    tens, ones = divmod(n, 10)
    return TENS[tens] + (f" {ONES[ones]}" if ones else "")


def _below_thousand(n: int) -> str:
    hundreds, rest = divmod(n, 100)
    if not hundreds:
        return _below_hundred(rest)
    words = f"{ONES[hundreds]} Hundred"
    if rest:
        words += f" and {_below_hundred(rest)}"
    return words


def integer_to_words(n: int) -> str:
    """Spell a non-negative integer, e.g. 150000 -> "One Lakh Fifty Thousand"."""
    if n < 0:
        raise ValueError(f"negative amounts are not supported: {n}")
    if n == 0:
        return "Zero"

    crore, n = divmod(n, CRORE)
    lakh, n = divmod(n, LAKH)
    thousand, remainder = divmod(n, THOUSAND)

    parts: list[str] = []
    if crore:
        # 1000 crore and above reads as "<n> Crore" with n spelled recursively
        parts.append(f"{integer_to_words(crore)} Crore")
    if lakh:
        parts.append(f"{_below_hundred(lakh)} Lakh")
    if thousand:
        parts.append(f"{_below_hundred(thousand)} Thousand")
    if remainder:
        parts.append(_below_thousand(remainder))
    return " ".join(parts)


def amount_to_words(amount: Decimal | int | float | str) -> str:
    """Spell a rupee amount with paise.

    >>> amount_to_words(Decimal("150000.50"))
    'One Lakh Fifty Thousand and Fifty Paise'
    """
    value = Decimal(str(amount))
    if not value.is_finite():
        raise ValueError(f"not a finite amount: {amount!r}")
    if value < 0:
        raise ValueError(f"negative amounts are not supported: {amount}")

    total_paise = int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    rupees, paise = divmod(total_paise, 100)

    if not paise:
        return integer_to_words(rupees)

    paise_words = f"{_below_hundred(paise)} Paise"
    if not rupees:
        return paise_words
    return f"{integer_to_words(rupees)} and {paise_words}"
