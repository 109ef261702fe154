ZERO_DECIMAL_CURRENCIES = {"COP", "CLP", "PYG"}


def format_amount(amount: int | float, decimals: int = 2) -> str:
    rendered = f"{round(float(amount), decimals):,.{decimals}f}"
    # es-CO grouping: "." for thousands, "," for decimals.
    rendered = rendered.translate(str.maketrans(",.", ".,"))
    if decimals and rendered.endswith("," + "0" * decimals):
        return rendered[: -(decimals + 1)]
    return rendered


def format_money(amount: int | float, currency: str) -> str:
    if currency in ZERO_DECIMAL_CURRENCIES:
        return f"${format_amount(amount, decimals=0)} {currency}"
    return f"{format_amount(amount)} {currency}"
