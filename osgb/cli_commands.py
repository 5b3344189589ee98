"""
Flask CLI commands for database setup and catalog maintenance.

Commands:
- flask init-db: Create all tables
- flask seed-catalog --file services.json: Load catalog services from JSON
"""

import json

import click

from osgb.database import create_all, get_session
from osgb.exceptions import OsgbError
from osgb.services.catalog_service import seed_tests


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table of the proposal desk."""
        create_all()
        click.echo(click.style('✅ Tablolar oluşturuldu.', fg='green', bold=True))

    @app.cli.command('seed-catalog')
    @click.option('--file', 'path', required=True, type=click.Path(exists=True, dir_okay=False),
                  help='JSON file with a list of {name, category, price, cost, description}')
    def seed_catalog_command(path):
        """Insert catalog services that are not present yet (matched by name)."""
        with open(path, encoding='utf-8') as fh:
            try:
                rows = json.load(fh)
            except json.JSONDecodeError as e:
                raise click.ClickException(f'Geçersiz JSON: {e}')

        if not isinstance(rows, list):
            raise click.ClickException('Dosya bir hizmet listesi içermelidir.')

        try:
            inserted = seed_tests(get_session(), rows)
        except OsgbError as e:
            click.echo(click.style(f'❌ Katalog yüklenemedi: {e.message}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style(f'\n✅ {inserted} hizmet eklendi.', fg='green', bold=True))
        skipped = len(rows) - inserted
        if skipped:
            click.echo(f'   {skipped} kayıt atlandı (mevcut ya da adsız).')
