"""Tests for the command-line interface."""

import os
from decimal import Decimal
from unittest.mock import MagicMock, patch

import yaml
from click.testing import CliRunner

from anapay_sync.cli import cli
from anapay_sync.exceptions import AuthenticationError
from anapay_sync.models.core import RunReport


CREDENTIALS = ['--username', 'wallet', '--password', 'device', '--token', 'token']


class TestSyncCommand:
    """Test cases for the sync command"""

    def setup_method(self):
        self.runner = CliRunner()

    def invoke(self, args, env=None):
        with self.runner.isolated_filesystem():
            return self.runner.invoke(cli, args, obj={}, env=env or {
                'ANAPAY_USERNAME': '', 'ANAPAY_PASSWORD': '', 'POCKETSMITH_TOKEN': '',
                'SENTRY_DSN': '', 'NUM_TRANSACTIONS': '',
            })

    def test_missing_credentials_exit_non_zero(self):
        result = self.invoke(['sync'])
        assert result.exit_code == 1
        assert "Anapay username is required" in result.output

    @patch('anapay_sync.cli.build_reconciler')
    def test_successful_sync(self, build_reconciler):
        build_reconciler.return_value.run.return_value = RunReport(
            fetched=2, created=2, wallet_balance=Decimal('4000'),
            ledger_balance=Decimal('5000'), balance_corrected=True
        )

        result = self.invoke(['sync', *CREDENTIALS, '--num-transactions', '20'])

        assert result.exit_code == 0, result.output
        assert "Created: 2" in result.output
        assert "Starting balance reset to 4000" in result.output
        config = build_reconciler.call_args.args[0]
        assert config.num_transactions == 20
        assert config.anapay_username == 'wallet'

    @patch('anapay_sync.cli.build_reconciler')
    def test_fatal_error_exits_non_zero(self, build_reconciler):
        build_reconciler.return_value.run.side_effect = AuthenticationError("Wallet login failed")

        result = self.invoke(['sync', *CREDENTIALS])

        assert result.exit_code == 1
        assert "Sync aborted: Wallet login failed" in result.output

    @patch('anapay_sync.cli.build_reconciler')
    def test_report_written(self, build_reconciler):
        build_reconciler.return_value.run.return_value = RunReport()

        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, ['sync', *CREDENTIALS, '--report', 'report.json'],
                                        obj={}, env={'SENTRY_DSN': ''})
            assert result.exit_code == 0, result.output
            assert os.path.exists('report.json')

    def test_invalid_dedup_strategy(self):
        result = self.invoke(['sync', *CREDENTIALS, '--dedup-strategy', 'fuzzy'])
        assert result.exit_code == 2


class TestInitConfigCommand:

    def test_generates_yaml_template(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ['init-config', 'settings', '--format', 'yaml'], obj={})

            assert result.exit_code == 0, result.output
            with open('settings.yml') as f:
                template = yaml.safe_load(f)
            assert template['num_transactions'] == 100
            assert template['dedup_strategy'] == 'reference'
