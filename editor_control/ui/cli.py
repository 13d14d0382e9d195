# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""editor-control command line interface.

    editor-control serve                    run both servers with the demo host
    editor-control instances                show the editor instance
    editor-control commands --filter FOO    list host commands
    editor-control exec CMD [ARG...] --ws   run a command (args are JSON)
    editor-control devtools toggle --ws     toggle the developer tools
    editor-control devtools exec SCRIPT     run a script in the developer tools
    editor-control watch                    print pushed state until Ctrl+C
"""

import asyncio
import json
import logging
import platform
import uuid
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from editor_control import __version__
from editor_control.client.client import EditorControlClient
from editor_control.client.connection import ConnectionState
from editor_control.config.settings import Settings, load_settings
from editor_control.core.errors import EditorControlError
from editor_control.core.instance import EditorInstance, HostMetadata
from editor_control.host.demo import create_demo_host
from editor_control.service import EditorControlService

T = TypeVar("T")

app = typer.Typer(help="editor-control - drive a running code editor over HTTP and WebSocket")
devtools_app = typer.Typer(help="Developer tools panel")
app.add_typer(devtools_app, name="devtools")

console = Console()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str, log_file: Optional[str] = None) -> None:
    """Configure root logging for the CLI process."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        filename=log_file,
    )


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj["settings"]


def _run(ctx: typer.Context, call: Callable[[EditorControlClient], Awaitable[T]]) -> T:
    """Run ``call`` with a client, turning control-plane errors into exit code 1."""

    async def runner() -> T:
        async with EditorControlClient(_settings(ctx)) as client:
            return await call(client)

    try:
        return asyncio.run(runner())
    except EditorControlError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _print_result(result: Any) -> None:
    if result is None:
        console.print("[dim]null[/dim]")
        return
    try:
        console.print_json(data=result)
    except TypeError:
        console.print(repr(result))


def _instance_table(instance: EditorInstance) -> Table:
    table = Table(title="Editor Instance", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("ID", instance.id)
    table.add_row("Type", instance.type.value)
    table.add_row("Machine", instance.machine_id or "-")
    table.add_row("Session", instance.session_id or "-")
    table.add_row("Workspace", "\n".join(instance.workspace_folders) or "-")
    table.add_row("Started", str(instance.start_time))
    table.add_row("Last heartbeat", str(instance.last_heartbeat))
    return table


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None, "--log-level", "-l", help="DEBUG, INFO, WARN, ERROR or CRITICAL"
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
) -> None:
    """Local control plane for a running code editor."""
    overrides = {"log_level": log_level} if log_level else {}
    try:
        settings = load_settings(config, **overrides)
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(2)

    configure_logging(settings.log_level, settings.log_file)
    ctx.obj = {"settings": settings}


@app.command()
def version() -> None:
    """Show the version."""
    console.print(f"editor-control {__version__}")


@app.command()
def serve(
    ctx: typer.Context,
    app_name: str = typer.Option("Visual Studio Code", help="Editor name reported by the demo host"),
    workspace: Optional[List[str]] = typer.Option(None, "--workspace", "-w", help="Workspace folder"),
) -> None:
    """Run the HTTP and WebSocket servers with an in-process demo host."""
    settings = _settings(ctx)
    metadata = HostMetadata(
        app_name=app_name,
        machine_id=platform.node(),
        session_id=str(uuid.uuid4()),
        workspace_folders=tuple(workspace or ()),
    )

    async def run_service() -> None:
        host = create_demo_host(open_delay=settings.devtools_open_delay)
        async with EditorControlService(settings, host, metadata) as service:
            console.print(
                Panel(
                    f"[bold]Instance[/bold] {service.registry.snapshot().id}\n"
                    f"[bold]HTTP[/bold]     http://{settings.host}:{service.api_server.port}/api\n"
                    f"[bold]WebSocket[/bold] ws://{settings.host}:{service.ws_server.port}/",
                    title="[bold green]editor-control[/bold green]",
                    expand=False,
                )
            )
            console.print("[dim]Press Ctrl+C to stop[/dim]")
            await asyncio.Event().wait()

    try:
        asyncio.run(run_service())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped[/yellow]")
    except OSError as e:
        console.print(f"[red]Failed to start servers:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def instances(ctx: typer.Context) -> None:
    """Show the editor instance behind the API."""
    instance = _run(ctx, lambda client: client.get_instance_info())
    console.print(_instance_table(instance))


@app.command()
def commands(
    ctx: typer.Context,
    filter_text: Optional[str] = typer.Option(None, "--filter", "-f", help="Substring to match"),
) -> None:
    """List the commands the editor exposes."""
    names = _run(ctx, lambda client: client.list_commands())
    if filter_text:
        names = [n for n in names if filter_text.lower() in n.lower()]

    if not names:
        console.print("[yellow]No commands found[/yellow]")
        return
    for name in names:
        console.print(name)
    console.print(f"\n[dim]{len(names)} command(s)[/dim]")


def parse_args(raw_args: Optional[List[str]]) -> List[Any]:
    """Decode command arguments given as JSON values."""
    args = []
    for raw in raw_args or []:
        try:
            args.append(json.loads(raw))
        except json.JSONDecodeError:
            raise typer.BadParameter(f"not valid JSON: {raw}", param_hint="ARGS")
    return args


@app.command("exec")
def exec_command(
    ctx: typer.Context,
    command: str = typer.Argument(..., help="Command name, e.g. editor.action.selectAll"),
    args: Optional[List[str]] = typer.Argument(None, help="Arguments as JSON values"),
    ws: bool = typer.Option(False, "--ws", help="Send over the WebSocket"),
) -> None:
    """Execute an editor command and print its result."""
    parsed = parse_args(args)

    async def call(client: EditorControlClient) -> Any:
        if not ws:
            return await client.execute_command(command, parsed)
        await client.connect()
        return await client.execute_command_ws(command, parsed)

    _print_result(_run(ctx, call))


@devtools_app.command("toggle")
def devtools_toggle(
    ctx: typer.Context,
    ws: bool = typer.Option(False, "--ws", help="Send over the WebSocket"),
) -> None:
    """Open or close the developer tools."""

    async def call(client: EditorControlClient) -> bool:
        if not ws:
            return await client.toggle_devtools()
        await client.connect()
        return await client.toggle_devtools_ws()

    is_open = _run(ctx, call)
    state = "[green]open[/green]" if is_open else "[yellow]closed[/yellow]"
    console.print(f"DevTools {state}")


@devtools_app.command("exec")
def devtools_exec(
    ctx: typer.Context,
    script: str = typer.Argument(..., help="JavaScript to run"),
) -> None:
    """Run a script in the developer tools."""
    message = _run(ctx, lambda client: client.execute_in_devtools(script))
    console.print(message)


@app.command()
def watch(ctx: typer.Context) -> None:
    """Print connection and devtools changes until interrupted."""

    async def call(client: EditorControlClient) -> None:
        client.connection.add_on_state_change(
            lambda state: console.print(f"[dim]connection[/dim] {state.value}")
        )
        client.connection.add_on_max_attempts(
            lambda attempts: console.print(f"[red]Gave up after {attempts} reconnect attempt(s)[/red]")
        )
        client.on_devtools_state_change(
            lambda is_open: console.print(f"[cyan]devtools[/cyan] {'open' if is_open else 'closed'}")
        )
        client.on_instance_info(
            lambda instance: console.print(
                f"[cyan]instance[/cyan] {instance.id} ({instance.type.value})"
            )
        )
        await client.connect()
        if client.connection.state != ConnectionState.CONNECTED:
            console.print("[yellow]WebSocket not connected yet; retrying in the background[/yellow]")
        await asyncio.Event().wait()

    try:
        _run(ctx, call)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped[/yellow]")


if __name__ == "__main__":
    app()
