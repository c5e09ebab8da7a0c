"""Tests for configuration management."""

import json
import os
import tempfile
import unittest

import yaml

from anapay_sync.exceptions import ConfigurationError
from anapay_sync.models.core import SyncConfig
from anapay_sync.utils.config_manager import ConfigManager


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager"""

    def setUp(self):
        """Set up test fixtures"""
        self.temp_dir = tempfile.mkdtemp()
        self.config_file = os.path.join(self.temp_dir, 'test_config.json')

    def tearDown(self):
        """Clean up test fixtures"""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_json(self, data):
        with open(self.config_file, 'w') as f:
            json.dump(data, f)

    def test_defaults_without_file(self):
        """Test loading defaults when no file and no environment is present"""
        cwd = os.getcwd()
        os.chdir(self.temp_dir)
        try:
            config = ConfigManager(environ={}).load_config()
        finally:
            os.chdir(cwd)

        self.assertIsInstance(config, SyncConfig)
        self.assertEqual(config.num_transactions, 100)
        self.assertEqual(config.page_size, 999)
        self.assertEqual(config.repeat_threshold, 10)
        self.assertEqual(config.dedup_strategy, "reference")
        self.assertEqual(config.account_name, "ANA Pay")

    def test_missing_explicit_file(self):
        manager = ConfigManager(config_path=os.path.join(self.temp_dir, 'missing.json'), environ={})
        with self.assertRaises(ConfigurationError):
            manager.load_config()

    def test_json_file_loading(self):
        self._write_json({
            "anapay_username": "wallet",
            "num_transactions": 250,
            "dedup_strategy": "memo",
        })

        config = ConfigManager(config_path=self.config_file, environ={}).load_config()

        self.assertEqual(config.anapay_username, "wallet")
        self.assertEqual(config.num_transactions, 250)
        self.assertEqual(config.dedup_strategy, "memo")

    def test_yaml_file_loading(self):
        yaml_file = os.path.join(self.temp_dir, 'config.yml')
        with open(yaml_file, 'w') as f:
            yaml.dump({'pocketsmith_token': 'abc', 'account_name': 'Wallet'}, f)

        config = ConfigManager(config_path=yaml_file, environ={}).load_config()

        self.assertEqual(config.pocketsmith_token, 'abc')
        self.assertEqual(config.account_name, 'Wallet')

    def test_precedence(self):
        """Test file < environment < overrides"""
        self._write_json({"anapay_username": "from-file", "pocketsmith_token": "file-token"})
        environ = {'ANAPAY_USERNAME': 'from-env', 'NUM_TRANSACTIONS': '50'}

        config = ConfigManager(config_path=self.config_file, environ=environ).load_config(
            overrides={'anapay_username': 'from-cli', 'pocketsmith_token': None}
        )

        self.assertEqual(config.anapay_username, 'from-cli')
        self.assertEqual(config.pocketsmith_token, 'file-token')
        self.assertEqual(config.num_transactions, 50)

    def test_invalid_environment_integer(self):
        manager = ConfigManager(config_path=None, environ={'NUM_TRANSACTIONS': 'many'})
        with self.assertRaises(ConfigurationError):
            manager.load_config()

    def test_config_validation(self):
        """Test that invalid values are rejected"""
        invalid_configs = [
            {"num_transactions": 0},
            {"num_transactions": "100"},
            {"repeat_threshold": True},
            {"dedup_strategy": "fuzzy"},
            {"anapay_username": 123},
        ]

        for data in invalid_configs:
            self._write_json(data)
            manager = ConfigManager(config_path=self.config_file, environ={})
            with self.assertRaises(ConfigurationError, msg=str(data)):
                manager.load_config()

    def test_non_dict_file(self):
        self._write_json(["not", "a", "dict"])
        with self.assertRaises(ConfigurationError):
            ConfigManager(config_path=self.config_file, environ={}).load_config()

    def test_validate_credentials(self):
        manager = ConfigManager(environ={})
        manager.validate_credentials(SyncConfig(anapay_username='u', anapay_password='p',
                                                pocketsmith_token='t'))

        with self.assertRaises(ConfigurationError) as ctx:
            manager.validate_credentials(SyncConfig(anapay_username='u', pocketsmith_token='t'))
        self.assertEqual(ctx.exception.field, 'anapay_password')

    def test_config_template_generation(self):
        """Test configuration template generation"""
        for name in ('template.json', 'nested/template.yml'):
            template_file = os.path.join(self.temp_dir, name)
            ConfigManager(environ={}).save_config_template(template_file)

            self.assertTrue(os.path.exists(template_file))
            config = ConfigManager(config_path=template_file, environ={}).load_config()
            self.assertEqual(config.num_transactions, 100)
            self.assertEqual(config.pocketsmith_token, "")

    def test_config_caching(self):
        """Test configuration caching"""
        self._write_json({"account_name": "cached"})
        manager = ConfigManager(config_path=self.config_file, environ={})

        config1 = manager.load_config()
        self.assertEqual(config1.account_name, "cached")

        self._write_json({"account_name": "modified"})

        config2 = manager.load_config()
        self.assertEqual(config2.account_name, "cached")

        config3 = manager.load_config(force_reload=True)
        self.assertEqual(config3.account_name, "modified")


if __name__ == '__main__':
    unittest.main()
