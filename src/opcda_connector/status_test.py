import unittest

from hamcrest import assert_that, is_

from opcda_connector.status import ConnectionStatus, StatusIndicator, status_indicator


class StatusIndicatorTest(unittest.TestCase):

    def test_scalar_hints(self):
        for value in (3, 2.5, "on", False):
            assert_that(status_indicator(ConnectionStatus.online, value).hint, is_(value))

    def test_non_scalar_hints_dropped(self):
        for value in ([1], {'a': 1}, None, (1, 2)):
            assert_that(status_indicator(ConnectionStatus.online, value), is_(StatusIndicator('online')))

    def test_every_status_is_kept(self):
        for status in ConnectionStatus.all:
            assert_that(status_indicator(status).status, is_(status))

    def test_unknown_status(self):
        assert_that(status_indicator('exploded', 1), is_(StatusIndicator(ConnectionStatus.unknown, 1)))


if __name__ == '__main__':  # pragma no cover
    unittest.main()
