import typer

from .commands import apply, providers, transform

app = typer.Typer(help="Mini-app factory CLI", no_args_is_help=True)

app.command(name="transform", help="Transform a project with an AI request")(
    transform.transform
)
app.command(name="apply", help="Apply saved tool calls to a project")(apply.apply)
app.command(name="providers", help="Show providers and the fallback chain")(
    providers.providers
)


def main():
    app()


if __name__ == "__main__":
    main()
