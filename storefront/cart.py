"""
Client-side cart staging.

Quantities are capped at the last stock figure seen for each product. The
cap is a hint only; checkout re-validates everything against live stock and
the cart reconciles itself against the CheckoutResult it gets back.
"""

from dataclasses import dataclass
from decimal import Decimal


@dataclass
class StagedLine:
    product_id: str
    name: str
    unit_price: Decimal
    known_stock: int
    quantity: int = 1


class Cart:
    def __init__(self):
        self._lines = {}

    @property
    def lines(self):
        return list(self._lines.values())

    def add(self, product):
        """Add one unit of `product` (a dict as returned by the products API)."""
        product_id = product['product_id']
        line = self._lines.get(product_id)
        if line is not None:
            line.known_stock = product['stock']
            line.quantity = min(line.quantity, line.known_stock)
            if line.known_stock < 1:
                self.remove(product_id)
                return None
            if line.quantity < line.known_stock:
                line.quantity += 1
            return line
        if product['stock'] < 1:
            return None
        line = StagedLine(
            product_id=product_id,
            name=product['name'],
            unit_price=Decimal(str(product['price'])),
            known_stock=product['stock'],
        )
        self._lines[product_id] = line
        return line

    def update_quantity(self, product_id, quantity):
        if quantity < 1 or product_id not in self._lines:
            return
        line = self._lines[product_id]
        line.quantity = min(quantity, line.known_stock)

    def remove(self, product_id):
        self._lines.pop(product_id, None)

    def clear(self):
        self._lines.clear()

    def sync_stock(self, unavailable_ids):
        for product_id in unavailable_ids:
            self._lines.pop(product_id, None)

    @property
    def total(self):
        return sum((line.unit_price * line.quantity for line in self._lines.values()), Decimal('0'))

    @property
    def count(self):
        return sum(line.quantity for line in self._lines.values())

    def to_payload(self):
        return [
            {'product_id': line.product_id, 'quantity': line.quantity, 'unit_price': str(line.unit_price)}
            for line in self._lines.values()
        ]

    def reconcile(self, result):
        """Apply a checkout result (dict or CheckoutResult): clear on success, drop failed lines otherwise."""
        if isinstance(result, dict):
            success = result.get('success')
            failed = result.get('failed_product_ids') or []
        else:
            success = result.success
            failed = result.failed_product_ids
        if success:
            self.clear()
        else:
            self.sync_stock(failed)
