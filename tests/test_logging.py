"""Unit tests for app.core.logging.setup_logging."""

import logging
import time
import unittest

from app.core.logging import setup_logging


class TestSetupLogging(unittest.TestCase):
    def setUp(self) -> None:
        root = logging.getLogger()
        self._saved = (root.handlers[:], root.level)

    def tearDown(self) -> None:
        root = logging.getLogger()
        root.handlers[:], level = self._saved
        root.setLevel(level)

    def test_level_from_name(self) -> None:
        setup_logging("warning")
        self.assertEqual(logging.getLogger().level, logging.WARNING)

    def test_timestamps_are_utc(self) -> None:
        setup_logging("INFO")
        formatter = logging.getLogger().handlers[0].formatter
        self.assertIs(formatter.converter, time.gmtime)
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello %s", ("there",), None)
        record.created = 0.0
        line = formatter.format(record)
        self.assertEqual(line, "1970-01-01T00:00:00Z INFO x hello there")


if __name__ == "__main__":
    unittest.main()
