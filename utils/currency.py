from decimal import Decimal, ROUND_HALF_UP


def round_cents(amount) -> float:
    """Round half-up to two decimals, e.g. 2.675 -> 2.68."""
    if amount is None:
        return 0.0
    q = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(q)


def tax_amount(base_amount: float, rate: float) -> float:
    """Amount of a percentage tax (VAT or IRPF withholding) over a base."""
    return round_cents(Decimal(str(base_amount or 0)) * Decimal(str(rate or 0)) / 100)


def document_totals(base_amount: float, vat_rate: float, withholding_rate: float) -> dict:
    """Return {vat_amount, withholding_amount, total} for an invoice or expense."""
    vat = tax_amount(base_amount, vat_rate)
    withholding = tax_amount(base_amount, withholding_rate)
    total = round_cents(
        Decimal(str(base_amount or 0)) + Decimal(str(vat)) - Decimal(str(withholding))
    )
    return {"vat_amount": vat, "withholding_amount": withholding, "total": total}


def format_currency(amount: float, symbol: str = "€") -> str:
    """Format a float as a Spanish currency string, e.g. '1.234,56 €'."""
    text = f"{amount:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{text} {symbol}"
