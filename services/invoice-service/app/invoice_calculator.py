from decimal import Decimal, ROUND_FLOOR
from typing import Iterable, Optional

from . import schemas


class InvoiceCalculator:
    """Handles invoice calculations - subtotal, tax on taxable items, flat discount"""

    _HALF = Decimal("0.5")
    _CENTS = Decimal("100")

    def calculate_financials(
        self,
        line_items: Iterable[schemas.LineItem],
        tax_rate: Optional[float] = 0,
        discount_amount: Optional[float] = 0,
    ) -> schemas.InvoiceFinancials:
        """Derive subtotal, tax and total from line items.

        Tax applies only to items whose ``taxable`` flag is not False. The
        discount is a flat amount and is not floored at zero, so a discount
        larger than subtotal plus tax yields a negative total.
        """
        tax_rate = tax_rate or 0
        discount_amount = discount_amount or 0

        subtotal = 0.0
        taxable_amount = 0.0
        for line_item in line_items:
            line_total = line_item.quantity * line_item.unit_price
            subtotal += line_total
            if line_item.taxable is not False:
                taxable_amount += line_total

        tax_amount = (taxable_amount * tax_rate) / 100
        total_amount = subtotal + tax_amount - discount_amount

        return schemas.InvoiceFinancials(
            subtotal=self.round_currency(subtotal),
            tax_amount=self.round_currency(tax_amount),
            tax_rate=tax_rate,
            discount_amount=discount_amount,
            total_amount=self.round_currency(total_amount),
        )

    def calculate_line_total(self, quantity: float, unit_price: float) -> float:
        """Calculate total for a single line item (quantity * unit_price)"""
        return self.round_currency(quantity * unit_price)

    def calculate_balance_due(self, total_amount: float, paid_amount: Optional[float]) -> float:
        return self.round_currency(total_amount - (paid_amount or 0))

    def round_currency(self, amount: float) -> float:
        """Round to 2 decimal places, halves towards +infinity (round(x*100)/100)."""
        cents = Decimal(amount * 100)
        rounded = (cents + self._HALF).to_integral_value(rounding=ROUND_FLOOR)
        return float(rounded) / 100


_calculator = InvoiceCalculator()


def calculate_invoice_financials(
    line_items: Iterable[schemas.LineItem],
    tax_rate: Optional[float] = 0,
    discount_amount: Optional[float] = 0,
) -> schemas.InvoiceFinancials:
    return _calculator.calculate_financials(line_items, tax_rate, discount_amount)


def calculate_line_item_total(quantity: float, unit_price: float) -> float:
    return _calculator.calculate_line_total(quantity, unit_price)


def round_currency(amount: float) -> float:
    return _calculator.round_currency(amount)
