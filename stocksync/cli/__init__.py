# stocksync/cli/__init__.py
import click

from stocksync.cli.create_tables import create_tables
from stocksync.cli.link_product import link_product
from stocksync.cli.reconcile import reconcile
from stocksync.cli.webhooks import check_webhooks, ensure_webhooks


@click.group()
def cli():
    """Stock sync admin commands"""


cli.add_command(create_tables)
cli.add_command(link_product)
cli.add_command(reconcile)
cli.add_command(check_webhooks)
cli.add_command(ensure_webhooks)
