"""Command-line interface for the ANA Pay to PocketSmith synchronizer."""

import sys
import logging
from typing import Optional

import click

from .clients.anapay import AnaPayClient
from .clients.pocketsmith import PocketSmithClient
from .exceptions import SyncAbort
from .models.core import RunReport, SyncConfig
from .utils.config_manager import ConfigManager, DEDUP_STRATEGIES
from .utils.error_handler import ErrorHandler, handle_fatal_error
from .utils.reconciler import Reconciler
from .utils import telemetry


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_reconciler(config: SyncConfig, error_handler: ErrorHandler) -> Reconciler:
    """Wire the HTTP clients into a reconciler"""
    wallet = AnaPayClient(timeout=config.request_timeout)
    ledger = PocketSmithClient(config.pocketsmith_token, timeout=config.request_timeout)
    return Reconciler(wallet, ledger, config, error_handler=error_handler)


def print_summary(report: RunReport) -> None:
    click.echo(f"✓ Sync completed")
    click.echo(f"  Transactions fetched: {report.fetched}")
    click.echo(f"  Created: {report.created}")
    click.echo(f"  Already existing: {report.already_existing}")
    click.echo(f"  Skipped: {report.skipped}")
    click.echo(f"  Failed: {report.failed}")
    if report.early_exit:
        click.echo("  Stopped early after repeated existing transactions")
    if report.wallet_balance is not None:
        click.echo(f"  Wallet balance: {report.wallet_balance}")
        click.echo(f"  Ledger balance: {report.ledger_balance}")
    if report.balance_corrected:
        click.echo(f"  Starting balance reset to {report.wallet_balance}")


@click.group()
@click.option('--config', '-c', help='Path to configuration file')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, config, verbose):
    """Synchronize ANA Pay transactions and balance into PocketSmith"""

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj['config_manager'] = ConfigManager(config)


@cli.command()
@click.option('--username', help='Anapay username (ANAPAY_USERNAME)')
@click.option('--password', help='Anapay password (ANAPAY_PASSWORD)')
@click.option('--token', help='Pocketsmith API token (POCKETSMITH_TOKEN)')
@click.option('--num-transactions', type=int, help='Number of transactions to parse (default 100)')
@click.option('--dedup-strategy', type=click.Choice(DEDUP_STRATEGIES),
              help='How existing ledger entries are matched')
@click.option('--report', '-r', help='Save error report to specified file')
@click.pass_context
def sync(ctx, username, password, token, num_transactions, dedup_strategy, report):
    """Fetch wallet transactions and create the missing ledger entries"""

    config_manager = ctx.obj['config_manager']

    try:
        config = config_manager.load_config(overrides={
            'anapay_username': username,
            'anapay_password': password,
            'pocketsmith_token': token,
            'num_transactions': num_transactions,
            'dedup_strategy': dedup_strategy,
        })
        config_manager.validate_credentials(config)
    except SyncAbort as e:
        click.echo(f"Error: {e}")
        sys.exit(1)

    telemetry.init_sentry(config.sentry_dsn)
    error_handler = ErrorHandler(log_directory=config.log_directory)

    exit_code = 0
    try:
        result = build_reconciler(config, error_handler).run()
        print_summary(result)
    except SyncAbort as e:
        handle_fatal_error(error_handler, e)
        click.echo(f"✗ Sync aborted: {e}")
        exit_code = 1
    finally:
        if report:
            error_handler.generate_error_report(report)
        telemetry.flush()

    if exit_code:
        sys.exit(exit_code)


@cli.command('init-config')
@click.argument('output_path', default='anapay_sync.yml')
@click.option('--format', 'fmt', type=click.Choice(['json', 'yaml']), default=None,
              help='Configuration file format (defaults to the file extension)')
@click.pass_context
def init_config(ctx, output_path, fmt):
    """Generate a configuration file template"""

    if fmt == 'yaml' and not output_path.endswith(('.yml', '.yaml')):
        output_path += '.yml'
    elif fmt == 'json' and not output_path.endswith('.json'):
        output_path += '.json'

    try:
        ctx.obj['config_manager'].save_config_template(output_path)
    except OSError as e:
        click.echo(f"✗ Error generating config template: {e}")
        sys.exit(1)

    click.echo(f"✓ Configuration template generated: {output_path}")
    click.echo("  Fill in the credentials or set them through environment variables")


def main(argv: Optional[list] = None):
    cli(args=argv, obj={})


if __name__ == '__main__':
    main()
