"""
Checkout Service
Validates a cart against live stock and commits it all-or-nothing:
either every line's stock is decremented and one COMPLETED order is
written, or nothing changes and the blocking product ids are reported.
"""

import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from storefront.errors import NotFoundError, StockConflict, ValidationError
from storefront.extensions import db
from storefront.models.order import Order
from storefront.services import simulate_latency
from storefront.services.catalog_service import parse_price, reserve_stock, store_transaction

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Payment successful! Order placed."
CONFLICT_MESSAGE = "Some items are no longer available in the requested quantity."


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    unit_price: Decimal


@dataclass
class CheckoutResult:
    success: bool
    message: str
    order_id: Optional[str] = None
    failed_product_ids: List[str] = field(default_factory=list)
    # product_id -> "deleted" | "insufficient_stock"
    failure_reasons: Dict[str, str] = field(default_factory=dict)

    def to_dict(self):
        data = {'success': self.success, 'message': self.message}
        if self.order_id is not None:
            data['order_id'] = self.order_id
        if not self.success:
            data['failed_product_ids'] = self.failed_product_ids
            data['failure_reasons'] = self.failure_reasons
        return data


def parse_lines(payload):
    """Build CartLines from request JSON: [{product_id, quantity, unit_price}, ...]."""
    if not isinstance(payload, list) or not payload:
        raise ValidationError("Cart must contain at least one line")

    lines = []
    for raw in payload:
        if not isinstance(raw, dict):
            raise ValidationError("Each cart line must be an object")
        product_id = raw.get('product_id')
        if not product_id or not isinstance(product_id, str):
            raise ValidationError("Cart line is missing product_id")
        quantity = raw.get('quantity')
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(f"Invalid quantity for {product_id}: {quantity!r}")
        lines.append(CartLine(product_id, quantity, parse_price(raw.get('unit_price'))))
    return lines


def _requested_quantities(lines):
    totals = OrderedDict()
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


def order_total(lines):
    total = sum((line.unit_price * line.quantity for line in lines), Decimal('0'))
    return total.quantize(Decimal('0.01'))


def checkout(user_id, lines):
    """
    Place an order for `lines` on behalf of `user_id`.

    Phase 1 re-reads the products under the store lock and checks every
    line; phase 2 either applies all staged decrements together with the
    new order, or aborts with the full set of failing product ids. Both
    phases run in one critical section, so an overlapping checkout sees
    this one's result before it validates.
    """
    if not lines:
        raise ValidationError("Cart must contain at least one line")
    for line in lines:
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity < 1:
            raise ValidationError(f"Invalid quantity for {line.product_id}: {line.quantity!r}")
        if line.unit_price < 0:
            raise ValidationError(f"Invalid price for {line.product_id}: {line.unit_price}")

    simulate_latency('checkout')
    try:
        with store_transaction() as session:
            products = reserve_stock(_requested_quantities(lines))

            order = Order(
                order_id=f"ord_{uuid.uuid4().hex[:16]}",
                user_id=user_id,
                lines=[
                    {
                        'product_id': line.product_id,
                        'name': products[line.product_id].name,
                        'unit_price': str(line.unit_price),
                        'quantity': line.quantity,
                    }
                    for line in lines
                ],
                total_amount=order_total(lines),
                status='COMPLETED',
            )
            session.add(order)
            order_id = order.order_id
            total = order.total_amount
    except StockConflict as conflict:
        logger.warning("Checkout rejected for %s: %s", user_id, conflict.failures)
        return CheckoutResult(
            success=False,
            message=CONFLICT_MESSAGE,
            failed_product_ids=sorted(conflict.failures),
            failure_reasons=conflict.failures,
        )

    logger.info("Order %s placed by %s: %d lines, total=%s", order_id, user_id, len(lines), total)
    return CheckoutResult(success=True, message=SUCCESS_MESSAGE, order_id=order_id)


def list_orders(user_id):
    return db.session.execute(
        db.select(Order).filter_by(user_id=user_id).order_by(Order.created_at.desc())
    ).scalars().all()


def get_order(order_id, user_id=None):
    order = db.session.get(Order, order_id)
    if order is None or (user_id is not None and order.user_id != user_id):
        raise NotFoundError(f"Order {order_id} not found")
    return order
