from presensi.app import create_app, db

import json

import click
from flask.cli import FlaskGroup
from flask_migrate import Migrate

from presensi.services.participants import import_participants_from_sheet
from presensi.services.sheet_sync import (
    get_sync_queue,
    sync_participants_sheet,
)
from presensi.shared.sheets import SheetsError


migrate = Migrate()


def create_presensi_app():
    app = create_app()
    migrate.init_app(app, db)
    return app


cli = FlaskGroup(create_app=create_presensi_app)


@cli.command("sync_sheets")
@click.option(
    "--skip-participants",
    is_flag=True,
    help="Only rewrite the attendance tab",
)
def sync_sheets(skip_participants: bool):
    """Rewrite the spreadsheet tabs from the database."""
    summary = {}
    if not skip_participants:
        try:
            summary["participants"] = sync_participants_sheet()
        except SheetsError as exc:
            summary["participants"] = {"ok": False, "reason": str(exc)}
    summary["attendance"] = get_sync_queue().enqueue().result()
    click.echo(json.dumps(summary, indent=2))
    if not all(part.get("ok") for part in summary.values()):
        raise SystemExit(1)


@cli.command("import_participants")
def import_participants():
    """Create or fill in participants from the participants tab."""
    result = import_participants_from_sheet()
    click.echo(json.dumps(result))
    if not result.get("ok"):
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
