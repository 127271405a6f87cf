"""deploywatch CLI - live terminal view of ARM deployments."""

import typer

from deploywatch_core.cli.deploy import deploy, watch

app = typer.Typer(
    name="deploywatch",
    help="Start or watch a deployment and render its progress as a live tree",
    no_args_is_help=True,
)

app.command("deploy")(deploy)
app.command("watch")(watch)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
