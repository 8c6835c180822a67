import unittest
from datetime import datetime, timedelta, timezone
from unittest import mock

from storefront.services.otp_service import (
    InsecureDemoChannel,
    LogOnlyChannel,
    OtpSessionManager,
    make_channel,
)


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


class TestOtpSessionManager(unittest.TestCase):

    def setUp(self):
        self.manager = OtpSessionManager()

    def test_code_is_four_digits(self):
        for _ in range(50):
            code = self.manager.issue('5550001111')
            self.assertEqual(len(code), 4)
            self.assertTrue(1000 <= int(code) <= 9999)

    def test_code_range_bounds(self):
        with mock.patch('storefront.services.otp_service.secrets.randbelow', return_value=0):
            self.assertEqual(self.manager.issue('1'), '1000')
        with mock.patch('storefront.services.otp_service.secrets.randbelow', return_value=8999):
            self.assertEqual(self.manager.issue('1'), '9999')

    def test_single_use(self):
        code = self.manager.issue('5550001111')
        self.assertTrue(self.manager.verify('5550001111', code))
        self.assertFalse(self.manager.verify('5550001111', code))

    def test_reissue_replaces_previous_code(self):
        with mock.patch('storefront.services.otp_service.secrets.randbelow', side_effect=[1234, 4321]):
            first = self.manager.issue('5550001111')
            second = self.manager.issue('5550001111')

        self.assertFalse(self.manager.verify('5550001111', first))
        self.assertTrue(self.manager.verify('5550001111', second))

    def test_mismatch_keeps_code_for_retry(self):
        code = self.manager.issue('5550001111')
        wrong = '0000' if code != '0000' else '1111'

        self.assertFalse(self.manager.verify('5550001111', wrong))
        self.assertTrue(self.manager.verify('5550001111', code))

    def test_submitted_code_is_trimmed(self):
        code = self.manager.issue('5550001111')
        self.assertTrue(self.manager.verify('5550001111', f'  {code}\n'))

    def test_code_is_bound_to_its_phone_number(self):
        code = self.manager.issue('5550001111')
        self.assertFalse(self.manager.verify('5550002222', code))
        self.assertTrue(self.manager.verify('5550001111', code))

    def test_missing_code_fails(self):
        self.assertFalse(self.manager.verify('5550001111', '1234'))
        self.manager.issue('5550001111')
        self.assertFalse(self.manager.verify('5550001111', None))

    def test_no_expiry_by_default(self):
        clock = FakeClock()
        manager = OtpSessionManager(clock=clock)
        code = manager.issue('5550001111')
        clock.now += timedelta(days=30)
        self.assertTrue(manager.verify('5550001111', code))

    def test_ttl_expiry(self):
        clock = FakeClock()
        manager = OtpSessionManager(ttl=timedelta(minutes=5), clock=clock)

        code = manager.issue('5550001111')
        clock.now += timedelta(minutes=4)
        self.assertIsNotNone(manager.pending('5550001111'))

        clock.now += timedelta(minutes=2)
        self.assertFalse(manager.verify('5550001111', code))
        self.assertIsNone(manager.pending('5550001111'))


class TestDeliveryChannels(unittest.TestCase):

    def test_demo_channel_surfaces_code(self):
        self.assertEqual(InsecureDemoChannel().deliver('1', '4321'), '4321')

    def test_log_channel_hides_code(self):
        with self.assertLogs('storefront.services.otp_service', level='INFO'):
            self.assertIsNone(LogOnlyChannel().deliver('1', '4321'))

    def test_make_channel(self):
        self.assertIsInstance(make_channel('demo'), InsecureDemoChannel)
        self.assertIsInstance(make_channel('log'), LogOnlyChannel)
        with self.assertRaises(ValueError):
            make_channel('sms')
