"""Retail price of a printed journal."""

# Roughly 2x vendor cost, rounded to .99
RETAIL_PRICES = {
    "weekly": 1299,
    "monthly": 1799,
    "quarterly": 2499,
    "yearly": 3999,
}


def retail_price_cents(frequency: str, cost_cents: int) -> int:
    fixed = RETAIL_PRICES.get(frequency)
    if fixed:
        return fixed
    doubled = cost_cents * 2
    return -(-doubled // 100) * 100 - 1
