"""
Catalog Service
Owns products and their stock counters. Every mutation runs inside
store_transaction(), which is also what checkout uses to commit orders.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import date
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from storefront.errors import StockConflict, StorageError, StoreTimeout, ValidationError
from storefront.extensions import db, store_lock
from storefront.models.product import Product
from storefront.models.store_meta import StoreMeta

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = 'Uncategorized'
PLACEHOLDER_IMAGE_URL = 'https://picsum.photos/400/400?random={product_id}'
CATALOG_SEEDED_KEY = 'catalog_seeded'

SEED_PRODUCTS = [
    {
        'product_id': 'p1',
        'name': 'Wireless Noise Cancelling Headphones',
        'description': 'Premium sound quality with active noise cancellation and 30h battery life.',
        'price': '299.99',
        'stock': 15,
        'category': 'Electronics',
    },
    {
        'product_id': 'p2',
        'name': 'Ergonomic Office Chair',
        'description': 'Lumbar support and breathable mesh for long working hours.',
        'price': '199.50',
        'stock': 5,
        'category': 'Furniture',
    },
    {
        'product_id': 'p3',
        'name': 'Organic Green Tea (50 bags)',
        'description': 'Sourced from high-altitude gardens. Rich in antioxidants.',
        'price': '12.99',
        'stock': 100,
        'category': 'Grocery',
        'expiry_date': '2025-12-31',
    },
    {
        'product_id': 'p4',
        'name': 'Smart Fitness Watch',
        'description': 'Track your heart rate, steps, and sleep. Waterproof.',
        'price': '89.00',
        'stock': 2,
        'category': 'Electronics',
    },
]

_local = threading.local()


@contextmanager
def store_transaction():
    """
    Run the enclosed block as one serialized unit of work on the store.

    The outermost block takes the process-wide store lock, expires the
    session so nothing stale is read, and commits on exit. Nested blocks
    join the outer one. Any exception rolls everything back; database
    faults surface as StorageError.
    """
    depth = getattr(_local, 'depth', 0)
    if depth:
        _local.depth = depth + 1
        try:
            yield db.session
        finally:
            _local.depth = depth
        return

    timeout = current_app.config.get('STORE_LOCK_TIMEOUT')
    if not store_lock.acquire(timeout=-1 if timeout is None else timeout):
        raise StoreTimeout(f"Store busy: lock not acquired within {timeout}s")

    _local.depth = 1
    try:
        db.session.expire_all()
        try:
            yield db.session
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Store transaction failed: %s", e)
            raise StorageError(str(e)) from e
        except Exception:
            db.session.rollback()
            raise
    finally:
        _local.depth = 0
        store_lock.release()


def parse_price(value):
    if value is None or isinstance(value, bool):
        raise ValidationError("price is required")
    try:
        price = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid price: {value!r}")
    if not price.is_finite():
        raise ValidationError(f"Invalid price: {value!r}")
    if price < 0:
        raise ValidationError("price must be >= 0")
    return price.quantize(Decimal('0.01'))


def parse_stock(value):
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValidationError(f"Invalid stock: {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"Invalid stock: {value!r}")
    try:
        stock = int(value)
    except ValueError:
        raise ValidationError(f"Invalid stock: {value!r}")
    if stock < 0:
        raise ValidationError("stock must be >= 0")
    return stock


def _parse_expiry(value):
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid expiry_date: {value!r}")


def list_products(category=None):
    query = db.select(Product).order_by(Product.created_at, Product.product_id)
    if category:
        query = query.filter_by(category=category)
    query = query.execution_options(populate_existing=True)
    return db.session.execute(query).scalars().all()


def get_product(product_id):
    return db.session.get(Product, product_id, populate_existing=True)


def _text(spec, field):
    value = spec.get(field)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip()


def create_product(spec):
    if not isinstance(spec, dict):
        raise ValidationError("Product data must be an object")
    name = _text(spec, 'name')
    if not name:
        raise ValidationError("name is required")
    description = _text(spec, 'description')
    category = _text(spec, 'category')
    image_url = _text(spec, 'image_url')
    price = parse_price(spec.get('price'))
    stock = parse_stock(spec.get('stock', 0))
    expiry_date = _parse_expiry(spec.get('expiry_date'))

    product_id = f"p{uuid.uuid4().hex[:12]}"
    product = Product(
        product_id=product_id,
        name=name,
        description=description,
        price=price,
        stock=stock,
        category=category or DEFAULT_CATEGORY,
        image_url=image_url or PLACEHOLDER_IMAGE_URL.format(product_id=product_id),
        expiry_date=expiry_date,
    )
    with store_transaction() as session:
        session.add(product)

    logger.info("Product created: %s (%s) price=%s stock=%s", product_id, name, price, stock)
    return product


def set_price(product_id, new_price):
    """
    Update the unit price. Returns False when the product does not exist,
    whatever `new_price` is; a bad price for an existing product raises
    ValidationError.
    """
    with store_transaction() as session:
        product = session.get(Product, product_id, with_for_update=True)
        if not product:
            return False
        price = parse_price(new_price)
        product.price = price

    logger.info("Price updated: %s -> %s", product_id, price)
    return True


def restock(product_id, stock):
    """Reset the stock counter to an absolute figure. Returns False when the product does not exist."""
    with store_transaction() as session:
        product = session.get(Product, product_id, with_for_update=True)
        if not product:
            return False
        stock = parse_stock(stock)
        product.stock = stock

    logger.info("Stock reset: %s -> %s", product_id, stock)
    return True


def delete_product(product_id):
    with store_transaction() as session:
        product = session.get(Product, product_id, with_for_update=True)
        if not product:
            return False
        session.delete(product)

    logger.info("Product deleted: %s", product_id)
    return True


def reserve_stock(decrements):
    """
    Decrement stock for every product in `decrements` (product_id -> quantity),
    or for none of them.

    Raises StockConflict carrying {product_id: "deleted" | "insufficient_stock"}
    when any product is missing or short. Returns the locked products on
    success; the decrements commit with the enclosing store transaction.
    """
    for product_id, quantity in decrements.items():
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(f"Invalid quantity for {product_id}: {quantity!r}")

    with store_transaction() as session:
        # Lock rows in id order to keep lock acquisition consistent
        ids = sorted(decrements)
        rows = session.execute(
            db.select(Product).where(Product.product_id.in_(ids)).order_by(Product.product_id).with_for_update()
        ).scalars().all()
        products = {p.product_id: p for p in rows}

        failures = {}
        staged = {}
        for product_id in ids:
            product = products.get(product_id)
            if product is None:
                failures[product_id] = 'deleted'
            elif product.stock < decrements[product_id]:
                failures[product_id] = 'insufficient_stock'
            else:
                staged[product_id] = product.stock - decrements[product_id]

        if failures:
            raise StockConflict(failures)

        for product_id, new_stock in staged.items():
            products[product_id].stock = new_stock
        return products


def seed_catalog():
    """
    Load the demo catalog into a store that has never been seeded. Returns the
    number of products added. A store that already holds products, or was
    seeded once and later emptied, is left alone.
    """
    with store_transaction() as session:
        if session.get(StoreMeta, CATALOG_SEEDED_KEY):
            return 0
        session.add(StoreMeta(key=CATALOG_SEEDED_KEY, value='true'))
        if session.execute(db.select(Product.product_id).limit(1)).first():
            return 0
        for spec in SEED_PRODUCTS:
            session.add(Product(
                product_id=spec['product_id'],
                name=spec['name'],
                description=spec['description'],
                price=Decimal(spec['price']),
                stock=spec['stock'],
                category=spec['category'],
                image_url=PLACEHOLDER_IMAGE_URL.format(product_id=spec['product_id']),
                expiry_date=_parse_expiry(spec.get('expiry_date')),
            ))

    logger.info("Seeded catalog with %d products", len(SEED_PRODUCTS))
    return len(SEED_PRODUCTS)
