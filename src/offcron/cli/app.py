"""Main CLI application."""

import typer

from offcron.cli.commands import config, jobs, run, runner, serve, trigger

app = typer.Typer(
    name="offcron",
    help="offcron - out-of-band job runner",
    no_args_is_help=True,
)

serve.register(app)
run.register(app)
trigger.register(app)
jobs.register(app)
runner.register(app)
config.register(app)


if __name__ == "__main__":
    app()
