def format_money(cents, currency) -> str:
    return f"{(currency or 'usd').upper()} {(cents or 0) / 100:.2f}"
