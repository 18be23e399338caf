"""
Tests for the logging manager.
"""
import logging
import logging.handlers
import tempfile
import unittest
from pathlib import Path

from inventory_reconciler.logging_setup import Logger


class TestLogger(unittest.TestCase):
    def setUp(self):
        """Set up test fixtures."""
        self.tmp = tempfile.TemporaryDirectory()
        self.manager = Logger()
        self._saved_dir = self.manager._log_dir
        self.manager._log_dir = Path(self.tmp.name)

        root_logger = logging.getLogger()
        self._saved_handlers = root_logger.handlers[:]
        self._saved_level = root_logger.level

    def tearDown(self):
        """Tear down test fixtures."""
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()
        for handler in self._saved_handlers:
            root_logger.addHandler(handler)
        root_logger.setLevel(self._saved_level)

        for name in ('reconciler_test',):
            named = Logger._loggers.pop(name, None)
            if named is not None:
                for handler in named.handlers[:]:
                    named.removeHandler(handler)
                    handler.close()

        self.manager._log_dir = self._saved_dir
        self.tmp.cleanup()

    def test_root_logger_writes_reconciler_log(self):
        self.manager.configure_root_logger(logging.DEBUG)

        root_logger = logging.getLogger()
        self.assertEqual(root_logger.level, logging.DEBUG)
        files = [
            Path(handler.baseFilename).name for handler in root_logger.handlers
            if isinstance(handler, logging.handlers.RotatingFileHandler)
        ]
        self.assertEqual(files, ['reconciler.log'])

    def test_named_logger_is_cached_and_does_not_propagate(self):
        first = self.manager.get_logger('reconciler_test')
        second = self.manager.get_logger('reconciler_test')

        self.assertIs(first, second)
        self.assertFalse(first.propagate)
        self.assertTrue((Path(self.tmp.name) / 'reconciler_test.log').exists())

    def test_batch_log_bracket(self):
        log_info = self.manager.batch_start_log('inventory_job', {'since': 'yesterday'})
        self.assertEqual(log_info['process_name'], 'inventory_job')
        self.manager.batch_end_log(log_info, success=False, result_info={'errors': 1})


if __name__ == '__main__':
    unittest.main()
