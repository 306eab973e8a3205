"""CLI entrypoint: Typer app definition and command registration"""

from typing import Annotated

import typer

from mdsite.cli.commands import build_cmd, check_cmd, init_cmd, tags_cmd
from mdsite.log import configure_logging


app = typer.Typer(name="mdsite", no_args_is_help=True, help="Markdown static site build and publish pipeline")


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    log_json: Annotated[bool, typer.Option("--log-json", help="Log as JSON lines")] = False,
    ):
    configure_logging(verbose=verbose, log_json=log_json)


app.command(name="build")(build_cmd)
app.command(name="check")(check_cmd)
app.command(name="tags")(tags_cmd)
app.command(name="init")(init_cmd)
