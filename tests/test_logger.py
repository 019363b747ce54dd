import logging
import os
import unittest
from unittest.mock import patch

from config import TestingConfig
from ledger_app import create_app


class LoggingConfigTestCase(unittest.TestCase):

    def tearDown(self):
        # Back to the default level for the remaining tests
        create_app('testing')

    def test_level_and_file_come_from_config(self):
        with patch.object(TestingConfig, 'LOG_LEVEL', 'WARNING'), \
                patch.object(TestingConfig, 'LOG_FILE', 'fee_ledger_test.log'):
            create_app('testing')

        root = logging.getLogger()
        self.assertEqual(root.level, logging.WARNING)
        file_handlers = [handler for handler in root.handlers if isinstance(handler, logging.FileHandler)]
        self.assertEqual(len(file_handlers), 1)
        self.assertEqual(os.path.basename(file_handlers[0].baseFilename), 'fee_ledger_test.log')
