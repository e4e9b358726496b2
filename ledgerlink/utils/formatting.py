from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


def format_indian_currency(amount: Decimal, signed: bool = False) -> str:
    """
    Rupee amount grouped the Indian way (lakh/crore): 1234567.5 -> "₹ 12,34,567.50".

    Balances are shown as magnitudes next to a label ("You Owe", "Advance"),
    so the sign is dropped unless `signed` is set.
    """
    if amount is None:
        return "₹ 0.00"
    amount = Decimal(amount)
    try:
        amount = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        pass  # beyond the context precision; the .2f format below still rounds
    negative = amount < 0
    amount_str = f"{abs(amount):.2f}"
    integer_part, decimal_part = amount_str.split(".")

    if len(integer_part) > 3:
        last_three = integer_part[-3:]
        remaining = integer_part[:-3]
        formatted_remaining = ""
        while len(remaining) > 2:
            formatted_remaining = "," + remaining[-2:] + formatted_remaining
            remaining = remaining[:-2]
        integer_part = f"{remaining}{formatted_remaining},{last_three}"

    sign = "-" if negative and signed else ""
    return f"₹ {sign}{integer_part}.{decimal_part}"
