import logging
import time

import click
from flask import current_app
from flask.cli import AppGroup, with_appcontext

from errors import NotFound
from models import db
from services import identity, views
from services.realtime import feed

logger = logging.getLogger(__name__)

feed_cli = AppGroup('feed', help='Change feed maintenance.')
shares_cli = AppGroup('shares', help='Inspect task shares.')


@click.command('init-db')
@click.option('--drop', is_flag=True, help='Drop all tables first.')
@with_appcontext
def init_db(drop):
    """Create the database tables."""
    if drop:
        click.echo('Dropping all tables...')
        db.drop_all()
    db.create_all()
    click.echo('Database initialized.')


@feed_cli.command('prune')
@click.option('--keep', type=int, default=None, help='Events to keep (default: FEED_RETENTION).')
def prune(keep):
    if keep is None:
        keep = current_app.config['FEED_RETENTION']
    removed = feed.prune(keep)
    click.echo(f'Pruned {removed} change events.')


def _print_invitations(reconciler):
    click.echo(f'{len(reconciler)} pending invitation(s)')
    for item in reconciler.items:
        click.echo(f"  #{item['id']} \"{item['task_title']}\" from {item['owner_email']} "
                   f"({item['permission_label']})")


@shares_cli.command('watch')
@click.argument('email')
@click.option('--once', is_flag=True, help='Print the current invitations and exit.')
@click.option('--interval', type=float, default=2.0, show_default=True)
def watch(email, once, interval):
    """Follow a user's pending invitations as they change."""
    try:
        user = identity.resolve(email)
    except NotFound as e:
        raise click.ClickException(e.message)

    reconciler = views.watch_pending_invitations(user.id)
    logger.info('Watching pending invitations of user %s', user.id)
    try:
        _print_invitations(reconciler)
        while not once:
            time.sleep(interval)
            # Each poll must see rows committed by other processes
            db.session.rollback()
            if reconciler.sync():
                _print_invitations(reconciler)
    except KeyboardInterrupt:
        pass
    finally:
        reconciler.close()


def register_commands(app):
    app.cli.add_command(init_db)
    app.cli.add_command(feed_cli)
    app.cli.add_command(shares_cli)
