"""recurledger CLI entry point."""

from __future__ import annotations

from pathlib import Path

import click

from recurledger.__version__ import __version__
from recurledger.cli.category import category
from recurledger.cli.common import get_client
from recurledger.cli.entry import entry
from recurledger.cli.rule import rule
from recurledger.cli.sync import sync


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="recurledger")
@click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    help="Path to the recurledger database.",
)
@click.option("--owner", default=None, help="Owner whose data is used.")
@click.pass_context
def main(ctx: click.Context, db_path: Path | None, owner: str | None) -> None:
    """recurledger CLI entry point."""
    ctx.obj = {
        "db_path": db_path,
        "owner": owner,
    }


@main.command("init")
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create the database schema."""
    with get_client(ctx) as client:
        client.initialize_schema()
    click.echo("Database initialized")


main.add_command(category)
main.add_command(rule)
main.add_command(sync)
main.add_command(entry)


if __name__ == "__main__":
    main()
