"""Tests for the checkout transaction engine."""
import os
import shutil
import tempfile
import threading
from decimal import Decimal
from unittest import mock

from sqlalchemy.exc import SQLAlchemyError

from storefront.errors import NotFoundError, StorageError, ValidationError
from storefront.extensions import db
from storefront.models.order import Order
from storefront.services.catalog_service import delete_product, get_product, seed_catalog
from storefront.services.checkout_service import (
    CONFLICT_MESSAGE,
    CartLine,
    checkout,
    get_order,
    list_orders,
    order_total,
    parse_lines,
)
from tests.base import StorefrontTestCase


def line(product_id, quantity, unit_price='10.00'):
    return CartLine(product_id, quantity, Decimal(unit_price))


def order_count():
    return db.session.execute(db.select(db.func.count()).select_from(Order)).scalar()


class TestCheckout(StorefrontTestCase):

    def setUp(self):
        super().setUp()
        seed_catalog()

    def test_scenario_low_stock_watch(self):
        result = checkout('u_1', [line('p4', 3, '89.00')])

        self.assertFalse(result.success)
        self.assertEqual(result.failed_product_ids, ['p4'])
        self.assertEqual(result.failure_reasons, {'p4': 'insufficient_stock'})
        self.assertEqual(result.message, CONFLICT_MESSAGE)
        self.assertEqual(get_product('p4').stock, 2)

        result = checkout('u_1', [line('p4', 2, '89.00')])

        self.assertTrue(result.success)
        self.assertEqual(get_product('p4').stock, 0)
        order = get_order(result.order_id)
        self.assertEqual(order.total_amount, Decimal('178.00'))
        self.assertEqual(order.status, 'COMPLETED')

    def test_exact_decrement_and_single_order(self):
        lines = [line('p1', 2, '299.99'), line('p3', 10, '12.99')]

        result = checkout('u_1', lines)

        self.assertTrue(result.success)
        self.assertEqual(get_product('p1').stock, 13)
        self.assertEqual(get_product('p3').stock, 90)
        self.assertEqual(order_count(), 1)
        order = get_order(result.order_id)
        self.assertEqual(order.total_amount, Decimal('729.88'))
        self.assertEqual(order.user_id, 'u_1')
        self.assertEqual([l['product_id'] for l in order.lines], ['p1', 'p3'])
        self.assertEqual(order.lines[0]['name'], 'Wireless Noise Cancelling Headphones')

    def test_one_unavailable_line_blocks_the_whole_cart(self):
        lines = [line('p1', 1), line('p2', 1), line('p3', 1), line('p4', 5)]

        result = checkout('u_1', lines)

        self.assertFalse(result.success)
        self.assertEqual(result.failed_product_ids, ['p4'])
        stocks = {pid: get_product(pid).stock for pid in ('p1', 'p2', 'p3', 'p4')}
        self.assertEqual(stocks, {'p1': 15, 'p2': 5, 'p3': 100, 'p4': 2})
        self.assertEqual(order_count(), 0)

    def test_deleted_mid_flight(self):
        delete_product('p2')

        result = checkout('u_1', [line('p1', 1), line('p2', 1)])

        self.assertFalse(result.success)
        self.assertEqual(result.failed_product_ids, ['p2'])
        self.assertEqual(result.failure_reasons, {'p2': 'deleted'})
        self.assertEqual(get_product('p1').stock, 15)
        self.assertEqual(order_count(), 0)

    def test_reports_every_failing_line_regardless_of_order(self):
        delete_product('p2')
        lines = [line('p4', 3), line('p1', 1), line('p2', 1)]

        forward = checkout('u_1', lines)
        backward = checkout('u_1', list(reversed(lines)))

        self.assertEqual(forward.failed_product_ids, ['p2', 'p4'])
        self.assertEqual(backward.failed_product_ids, forward.failed_product_ids)
        self.assertEqual(backward.failure_reasons, forward.failure_reasons)

    def test_repeated_lines_for_one_product_are_summed(self):
        result = checkout('u_1', [line('p4', 1), line('p4', 2)])

        self.assertFalse(result.success)
        self.assertEqual(result.failed_product_ids, ['p4'])
        self.assertEqual(get_product('p4').stock, 2)

    def test_repeated_submissions_create_separate_orders(self):
        first = checkout('u_1', [line('p3', 1)])
        second = checkout('u_1', [line('p3', 1)])

        self.assertTrue(first.success and second.success)
        self.assertNotEqual(first.order_id, second.order_id)
        self.assertEqual(get_product('p3').stock, 98)
        self.assertEqual(len(list_orders('u_1')), 2)

    def test_total_uses_price_snapshot(self):
        result = checkout('u_1', [line('p3', 2, '10.00')])
        self.assertEqual(get_order(result.order_id).total_amount, Decimal('20.00'))

    def test_empty_cart_is_rejected(self):
        with self.assertRaises(ValidationError):
            checkout('u_1', [])

    def test_storage_fault_leaves_no_partial_effect(self):
        with mock.patch.object(db.session, 'commit', side_effect=SQLAlchemyError('write failed')):
            with self.assertRaises(StorageError):
                checkout('u_1', [line('p1', 1)])

        self.assertEqual(get_product('p1').stock, 15)
        self.assertEqual(order_count(), 0)

    def test_get_order_scoped_to_user(self):
        result = checkout('u_1', [line('p3', 1)])

        self.assertEqual(get_order(result.order_id, user_id='u_1').order_id, result.order_id)
        with self.assertRaises(NotFoundError):
            get_order(result.order_id, user_id='u_2')
        with self.assertRaises(NotFoundError):
            get_order('ord_missing')

    def test_result_to_dict(self):
        failed = checkout('u_1', [line('p4', 3)]).to_dict()
        self.assertEqual(failed['failed_product_ids'], ['p4'])
        self.assertNotIn('order_id', failed)

        placed = checkout('u_1', [line('p4', 1)]).to_dict()
        self.assertTrue(placed['success'])
        self.assertNotIn('failed_product_ids', placed)


class TestParseLines(StorefrontTestCase):

    def test_parses_lines(self):
        lines = parse_lines([{'product_id': 'p1', 'quantity': 2, 'unit_price': 299.99}])
        self.assertEqual(lines, [CartLine('p1', 2, Decimal('299.99'))])

    def test_rejects_malformed_carts(self):
        for payload in (
            None,
            [],
            {'product_id': 'p1'},
            [{'quantity': 1, 'unit_price': 1}],
            [{'product_id': 'p1', 'quantity': 0, 'unit_price': 1}],
            [{'product_id': 'p1', 'quantity': 1.5, 'unit_price': 1}],
            [{'product_id': 'p1', 'quantity': True, 'unit_price': 1}],
            [{'product_id': 'p1', 'quantity': 1, 'unit_price': -1}],
            [{'product_id': 'p1', 'quantity': 1}],
        ):
            with self.subTest(payload=payload):
                with self.assertRaises(ValidationError):
                    parse_lines(payload)

    def test_order_total_rounds_to_cents(self):
        self.assertEqual(order_total([line('p1', 3, '0.333')]), Decimal('1.00'))


class TestConcurrentCheckout(StorefrontTestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.config = {
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///' + os.path.join(self.tmpdir, 'store.db'),
            'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'check_same_thread': False}},
        }
        super().setUp()

    def tearDown(self):
        super().tearDown()
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _run_concurrently(self, carts):
        barrier = threading.Barrier(len(carts))
        results = [None] * len(carts)

        def worker(index, user_id, lines):
            with self.app.app_context():
                barrier.wait()
                results[index] = checkout(user_id, lines)

        threads = [
            threading.Thread(target=worker, args=(i, f'u_{i}', lines))
            for i, lines in enumerate(carts)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)
        return results

    def test_last_unit_goes_to_exactly_one_buyer(self):
        product_id = self.add_product(name='Last One', price='50.00', stock=1)

        results = self._run_concurrently([[line(product_id, 1)], [line(product_id, 1)]])

        winners = [r for r in results if r.success]
        losers = [r for r in results if not r.success]
        self.assertEqual(len(winners), 1)
        self.assertEqual(len(losers), 1)
        self.assertEqual(losers[0].failed_product_ids, [product_id])
        self.assertEqual(get_product(product_id).stock, 0)
        self.assertEqual(order_count(), 1)

    def test_stock_never_oversold(self):
        product_id = self.add_product(name='Limited', price='5.00', stock=5)

        results = self._run_concurrently([[line(product_id, 2)] for _ in range(6)])

        self.assertEqual(sum(1 for r in results if r.success), 2)
        self.assertEqual(get_product(product_id).stock, 1)


class TestCheckoutRejectsBadLines(StorefrontTestCase):

    def setUp(self):
        super().setUp()
        seed_catalog()

    def test_zero_or_negative_quantity_changes_nothing(self):
        for quantity in (0, -1, -5):
            with self.subTest(quantity=quantity):
                with self.assertRaises(ValidationError):
                    checkout('u_1', [line('p1', 1), line('p4', quantity, '89.00')])

        self.assertEqual(get_product('p4').stock, 2)
        self.assertEqual(get_product('p1').stock, 15)
        self.assertEqual(order_count(), 0)

    def test_negative_price_snapshot_is_rejected(self):
        with self.assertRaises(ValidationError):
            checkout('u_1', [line('p3', 1, '-12.99')])
        self.assertEqual(get_product('p3').stock, 100)
        self.assertEqual(order_count(), 0)
