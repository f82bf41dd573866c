import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from declient.client import get_compiled_api
from declient.codegen import Codegen
from declient.codegen.generator import load_api
from declient.config import get_config
from declient.exceptions import DeclientError

console = Console()
app = typer.Typer(
    name='declient',
    help='Compile declarative HTTP API classes and generate client modules',
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option('--verbose', '-v', help='Show debug logging')
    ] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(message)s',
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command()
def generate(
    config: Annotated[
        str | None,
        typer.Option(
            '--config', '-c', help='Path to configuration file (YAML or JSON)'
        ),
    ] = None,
) -> None:
    """Generate client modules from configuration.

    If no config file is specified, will look for default config files
    in the current directory, pyproject.toml or environment variables.

    Examples:
        declient generate
        declient generate --config my-config.yaml
        declient generate -c config.json
    """
    try:
        codegen_config = get_config(config)

        for document_config in codegen_config.documents:
            with Progress(
                SpinnerColumn(),
                TextColumn('[progress.description]{task.description}'),
                console=console,
            ) as progress:
                task = progress.add_task(
                    f'Generating code for {document_config.api} in {document_config.output}...',
                    total=None,
                )

                path = Codegen(document_config).generate()

                progress.update(
                    task, description=f'Code generation completed for {document_config.api}!'
                )
            console.print('[dim]Generated files:[/dim]')
            console.print(f'  - {path}')

    except (DeclientError, FileNotFoundError, ValueError) as e:
        console.print(f'[red]Error:[/red] {e}')
        raise typer.Exit(1)


@app.command()
def inspect(
    target: Annotated[
        str, typer.Argument(help="API class to inspect, as 'package.module:ClassName'")
    ],
) -> None:
    """Show the compiled request plans of an API class.

    Examples:
        declient inspect myproject.api:GitHub
    """
    try:
        compiled = get_compiled_api(load_api(target))
    except (DeclientError, TypeError) as e:
        console.print(f'[red]Error:[/red] {e}')
        raise typer.Exit(1)

    declaration = compiled.declaration
    table = Table(
        title=f'{declaration.name} ({declaration.mode.value}, {declaration.base_url or "no base URL"})'
    )
    table.add_column('Endpoint', style='cyan')
    table.add_column('Method', style='magenta')
    table.add_column('Path')
    table.add_column('Parameters')
    table.add_column('Returns', style='green')

    for plan in compiled:
        parameters = ', '.join(
            f'{meta.name}: {meta.location}' + ('' if meta.required else '?')
            for meta in plan.metadata.parameters
        )
        returns = plan.response.kind.value
        if plan.response.not_found_as_none:
            returns += ' (404 -> None)'
        table.add_row(plan.name, plan.method, plan.path, parameters or '-', returns)

    console.print(table)


@app.command()
def version() -> None:
    """Show the version of declient."""
    from declient._version import version

    console.print(f'declient version: {version}')


if __name__ == '__main__':
    app()
