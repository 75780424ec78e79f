"""CLI commands for figbridge.

`eval`, `render` and `render-batch` go through a running `figbridge daemon`
when one answers on the configured port, and otherwise open one connection,
run, and close it. Every other command connects directly.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, NoReturn

import httpx
import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from figbridge import __logo__, __version__
from figbridge.cdp.discovery import list_pages
from figbridge.cli.shared.http_utils import daemon_exec, daemon_is_running, get_daemon_base_url
from figbridge.cli.shared.logging_utils import configure_console_logging, ensure_rotating_log_file
from figbridge.client import FigmaClient
from figbridge.config.access import get_config
from figbridge.config.loader import get_config_path
from figbridge.render.lowering import compile_markup
from figbridge.utils.exceptions import FigbridgeError, TransportError

app = typer.Typer(
    name="figbridge",
    help=f"{__logo__} figbridge - drive Figma Desktop over the DevTools protocol",
    no_args_is_help=True,
)
canvas_app = typer.Typer(help="Canvas awareness and smart positioning")
app.add_typer(canvas_app, name="canvas")
node_app = typer.Typer(help="Inspect and edit nodes by id")
app.add_typer(node_app, name="node")
selection_app = typer.Typer(help="Read or replace the current selection")
app.add_typer(selection_app, name="selection")
var_app = typer.Typer(help="Local variables and collections")
app.add_typer(var_app, name="var")

console = Console()

# Tests swap in an httpx.MockTransport.
daemon_transport: httpx.BaseTransport | None = None


def _print_result(result: Any) -> None:
    if result is None:
        return
    if isinstance(result, (dict, list)):
        console.print_json(json.dumps(result))
    else:
        console.print(str(result))


def _fail(e: FigbridgeError) -> NoReturn:
    console.print(f"[red]✗ {e.message}[/red]")
    raise typer.Exit(1)


def _with_client(action: Callable[[FigmaClient], Awaitable[Any]], page: str | None = None) -> Any:
    """Connect, run one action, close; FigbridgeError exits with status 1."""

    async def run() -> Any:
        client = FigmaClient(config=get_config())
        await client.connect(page)
        try:
            return await action(client)
        finally:
            await client.close()

    try:
        return asyncio.run(run())
    except FigbridgeError as e:
        _fail(e)


def _execute(
    action: str,
    payload: dict[str, Any],
    direct: Callable[[FigmaClient], Awaitable[Any]],
    *,
    page: str | None = None,
    use_daemon: bool = True,
) -> Any:
    """Run through the daemon when it is up, else over a direct connection."""
    if use_daemon and page is None:
        config = get_config()
        if daemon_is_running(config, transport=daemon_transport):
            try:
                return daemon_exec(config, action, payload, transport=daemon_transport)
            except TransportError as e:
                logger.debug(f"Daemon dropped out, connecting directly: {e}")
            except FigbridgeError as e:
                _fail(e)
    return _with_client(direct, page)


def _check_markup(*markups: str) -> None:
    """Compile locally so bad markup fails before anything connects."""
    try:
        for markup in markups:
            compile_markup(markup)
    except FigbridgeError as e:
        _fail(e)


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} figbridge v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print debug logs to stderr"),
):
    """figbridge - drive Figma Desktop over the DevTools protocol."""
    configure_console_logging(verbose)


@app.command()
def status():
    """Show config, daemon state and whether Figma is reachable on the debug port."""
    config = get_config()
    config_path = get_config_path()
    console.print(f"{__logo__} figbridge Status\n")
    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[dim]defaults[/dim]'}")
    console.print(f"Debug endpoint: {config.debug.listing_url}")
    running = daemon_is_running(config, transport=daemon_transport)
    console.print(
        f"Daemon: {get_daemon_base_url(config)} {'[green]✓ running[/green]' if running else '[dim]not running[/dim]'}"
    )
    try:
        pages = asyncio.run(list_pages(config.debug))
    except FigbridgeError as e:
        console.print(f"Figma: [red]✗ {e.message}[/red]")
        raise typer.Exit(1)
    console.print(f"Figma: [green]✓[/green] {len(pages)} page(s)")


@app.command()
def pages():
    """List open Figma pages."""
    config = get_config()
    try:
        found = asyncio.run(list_pages(config.debug))
    except FigbridgeError as e:
        _fail(e)
    table = Table(title="Figma pages")
    table.add_column("Title")
    table.add_column("URL")
    for page in found:
        table.add_row(page.title, page.url)
    console.print(table)


@app.command("eval")
def eval_command(
    code: str = typer.Argument(None, help="JavaScript to run in the plugin context"),
    file: Path = typer.Option(None, "--file", "-f", help="Run code from file instead of argument"),
    page: str = typer.Option(None, "--page", help="Match page title (connects directly)"),
    no_daemon: bool = typer.Option(False, "--no-daemon", help="Always connect directly"),
):
    """Execute JavaScript in the Figma plugin context."""
    if file is not None:
        if not file.exists():
            console.print(f"[red]✗ File not found: {file}[/red]")
            raise typer.Exit(1)
        code = file.read_text(encoding="utf-8")
    if not code:
        console.print("[red]✗ No code provided. Use: eval \"code\" or eval --file script.js[/red]")
        raise typer.Exit(1)
    result = _execute(
        "eval", {"code": code}, lambda client: client.eval(code), page=page, use_daemon=not no_daemon
    )
    _print_result(result)


@app.command()
def render(
    jsx: str = typer.Argument(..., help='Markup, e.g. \'<Frame name="Card"><Text>Hi</Text></Frame>\''),
    no_smart_position: bool = typer.Option(False, "--no-smart-position", help="Disable auto-positioning"),
    page: str = typer.Option(None, "--page", help="Match page title (connects directly)"),
    no_daemon: bool = typer.Option(False, "--no-daemon", help="Always connect directly"),
):
    """Render Frame/Text markup to the canvas."""
    _check_markup(jsx)
    result = _execute(
        "render",
        {"jsx": jsx},
        lambda client: client.render(jsx, smart_position=not no_smart_position),
        page=page,
        use_daemon=not (no_daemon or no_smart_position),
    ) or {}
    console.print(f"[green]✓ Rendered: {result.get('id')}[/green]")
    if result.get("name"):
        console.print(f"[dim]  name: {result['name']}[/dim]")


@app.command("render-batch")
def render_batch(
    jsx_array: str = typer.Argument(..., help="JSON array of markup strings"),
    gap: float = typer.Option(40, "--gap", "-g", help="Gap between frames"),
    page: str = typer.Option(None, "--page", help="Match page title (connects directly)"),
    no_daemon: bool = typer.Option(False, "--no-daemon", help="Always connect directly"),
):
    """Render several frames side by side."""
    try:
        items = json.loads(jsx_array)
    except json.JSONDecodeError as e:
        console.print(f"[red]✗ Invalid JSON: {e}[/red]")
        raise typer.Exit(1)
    if not isinstance(items, list):
        console.print("[red]✗ Argument must be a JSON array of markup strings[/red]")
        raise typer.Exit(1)
    markups = [str(i) for i in items]
    _check_markup(*markups)
    results = _execute(
        "render-batch",
        {"jsxArray": markups, "gap": gap},
        lambda client: client.render_batch(markups, gap=gap),
        page=page,
        use_daemon=not no_daemon,
    ) or []
    for result in results:
        console.print(f"[green]✓ Rendered: {result.get('id')} ({result.get('name')})[/green]")
    console.print(f"[cyan]{len(results)} frames created[/cyan]")


@app.command()
def arrange(
    gap: float = typer.Option(100, "--gap", "-g", help="Gap between frames"),
    columns: int = typer.Option(None, "--cols", "-c", help="Frames per row (default: one row)"),
    page: str = typer.Option(None, "--page", help="Match page title"),
):
    """Lay out top-level frames and components in a grid."""
    result = _with_client(lambda client: client.arrange_nodes(gap, columns), page)
    console.print(f"[green]✓ Arranged {result.get('arranged', 0)} frames[/green]")


# ---- canvas ----


@canvas_app.command("info")
def canvas_info(page: str = typer.Option(None, "--page", help="Match page title")):
    """Show canvas bounds and element count."""
    _print_result(_with_client(lambda client: client.get_canvas_bounds(), page))


@canvas_app.command("next")
def canvas_next(
    gap: float = typer.Option(None, "--gap", "-g", help="Gap from existing elements"),
    direction: str = typer.Option("right", "--direction", "-d", help="right or below"),
    page: str = typer.Option(None, "--page", help="Match page title"),
):
    """Get the next free position on the canvas."""
    _print_result(_with_client(lambda client: client.next_free_position(gap, direction), page))


@canvas_app.command("page")
def canvas_page(page: str = typer.Option(None, "--page", help="Match page title")):
    """Show the current page name, id and child count."""
    _print_result(_with_client(lambda client: client.get_page_info(), page))


@canvas_app.command("list")
def canvas_list(
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum nodes to list"),
    page: str = typer.Option(None, "--page", help="Match page title"),
):
    """List top-level nodes with their geometry."""
    nodes = _with_client(lambda client: client.list_nodes(limit), page) or []
    table = Table(title="Nodes")
    for column in ("ID", "Type", "Name", "X", "Y", "W", "H"):
        table.add_column(column)
    for n in nodes:
        table.add_row(
            str(n.get("id")), str(n.get("type")), str(n.get("name")),
            str(n.get("x")), str(n.get("y")), str(n.get("width")), str(n.get("height")),
        )
    console.print(table)


# ---- nodes ----


def _node_result(result: Any, node_id: str) -> None:
    if not result or (isinstance(result, dict) and result.get("success") is False):
        console.print(f"[red]✗ Node not found: {node_id}[/red]")
        raise typer.Exit(1)
    _print_result(result)


@node_app.command("get")
def node_get(node_id: str = typer.Argument(..., help="Node id, e.g. 1:23")):
    """Show one node's properties."""
    _node_result(_with_client(lambda client: client.get_node(node_id)), node_id)


@node_app.command("tree")
def node_tree(
    node_id: str = typer.Argument(None, help="Root node id (default: current page)"),
    depth: int = typer.Option(10, "--depth", "-d", help="Maximum depth"),
):
    """Print the node tree as JSON."""
    _node_result(_with_client(lambda client: client.get_node_tree(node_id, depth)), node_id or "page")


@node_app.command("delete")
def node_delete(node_id: str = typer.Argument(...)):
    """Delete a node."""
    _node_result(_with_client(lambda client: client.delete_node(node_id)), node_id)


@node_app.command("duplicate")
def node_duplicate(
    node_id: str = typer.Argument(...),
    offset_x: float = typer.Option(50, "--dx", help="Horizontal offset of the copy"),
    offset_y: float = typer.Option(0, "--dy", help="Vertical offset of the copy"),
):
    """Clone a node next to the original."""
    _node_result(_with_client(lambda client: client.duplicate_node(node_id, offset_x, offset_y)), node_id)


@node_app.command("to-component")
def node_to_component(node_ids: list[str] = typer.Argument(..., help="Frame ids to convert")):
    """Turn frames into components."""
    _print_result(_with_client(lambda client: client.to_component(node_ids)))


@node_app.command("rename")
def node_rename(node_id: str = typer.Argument(...), name: str = typer.Argument(...)):
    """Rename a node."""
    _node_result(_with_client(lambda client: client.rename_node(node_id, name)), node_id)


@node_app.command("move")
def node_move(node_id: str = typer.Argument(...), x: float = typer.Argument(...), y: float = typer.Argument(...)):
    """Move a node to x, y."""
    _node_result(_with_client(lambda client: client.move_node(node_id, x, y)), node_id)


@node_app.command("resize")
def node_resize(
    node_id: str = typer.Argument(...),
    width: float = typer.Argument(...),
    height: float = typer.Argument(...),
):
    """Resize a node."""
    _node_result(_with_client(lambda client: client.resize_node(node_id, width, height)), node_id)


@node_app.command("fill")
def node_fill(node_id: str = typer.Argument(...), color: str = typer.Argument(..., help="Hex color")):
    """Replace a node's fills with one solid color."""
    _node_result(_with_client(lambda client: client.set_fill(node_id, color)), node_id)


@node_app.command("radius")
def node_radius(node_id: str = typer.Argument(...), radius: float = typer.Argument(...)):
    """Set a node's corner radius."""
    _node_result(_with_client(lambda client: client.set_radius(node_id, radius)), node_id)


# ---- selection ----


@selection_app.command("get")
def selection_get():
    """Show the selected nodes."""
    _print_result(_with_client(lambda client: client.get_selection()))


@selection_app.command("set")
def selection_set(node_ids: list[str] = typer.Argument(..., help="Node ids to select")):
    """Select nodes by id (missing ids are skipped)."""
    selected = _with_client(lambda client: client.set_selection(node_ids)) or []
    console.print(f"[green]✓ Selected {len(selected)} node(s)[/green]")


# ---- variables ----


@var_app.command("list")
def var_list(var_type: str = typer.Option(None, "--type", "-t", help="COLOR, FLOAT, STRING or BOOLEAN")):
    """List local variables."""
    variables = _with_client(lambda client: client.get_variables(var_type)) or []
    table = Table(title="Variables")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("ID")
    for v in variables:
        table.add_row(str(v.get("name")), str(v.get("resolvedType")), str(v.get("id")))
    console.print(table)


@var_app.command("collections")
def var_collections():
    """List local variable collections."""
    _print_result(_with_client(lambda client: client.get_collections()))


@app.command()
def daemon(
    host: str = typer.Option(None, "--host", help="Bind host"),
    port: int = typer.Option(None, "--port", "-p", help="Bind port"),
):
    """Run the local daemon that keeps one Figma connection open."""
    import uvicorn

    from figbridge.daemon.server import create_daemon_app

    config = get_config()
    host = host or config.daemon.host
    port = port or config.daemon.port
    log_path = ensure_rotating_log_file("daemon")
    console.print(f"{__logo__} figbridge daemon on http://{host}:{port}/ (GET /health, POST /exec)")
    console.print(f"[dim]Logs: {log_path}[/dim]")
    uvicorn.run(create_daemon_app(config), host=host, port=port, log_level="info")


if __name__ == "__main__":
    app()
