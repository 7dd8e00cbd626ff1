from __future__ import annotations

import json
from pathlib import Path
import random

import typer

from .level.generator import MAX_TIER, generate
from .level.solver import find_solution
from .net.client import ClientConfig, OnlineClient
from .net.debug_log import close_net_debug_log, init_net_debug_log
from .net.protocol import DEFAULT_PORT, LEVEL_COUNT
from .net.server import RelayServer, ServerConfig
from .session import GameSession

app = typer.Typer(add_completion=False)

DEFAULT_BASE_DIR = Path("artifacts") / "runtime"


def _run_play(session: GameSession, *, client: OnlineClient | None, tier: int, fps: int) -> None:
    from .frontend import PlayView, run_view

    run_view(PlayView(session, client=client, tier=tier), fps=fps)


@app.command("level")
def cmd_level(
    tier: int = typer.Option(0, "--tier", min=0, help=f"difficulty tier (clamped to {MAX_TIER})"),
    seed: int = typer.Option(..., "--seed", help="level seed"),
    as_json: bool = typer.Option(False, "--json", help="print the full level as JSON"),
    solve: bool = typer.Option(False, "--solve", help="print a pickup order that reaches the target"),
) -> None:
    """Generate a level and describe it."""
    level = generate(tier, seed)
    if as_json:
        typer.echo(json.dumps(level.to_dict(), ensure_ascii=False, indent=2))
    else:
        typer.echo(f"Tier {level.tier} seed {level.seed} target {level.target} ({len(level.tiles)} tiles)")
        for tile in level.tiles:
            typer.echo(f"{tile.tile_id:02d}  {tile.kind.name.lower():8s}  {tile.label:>2s}  x={tile.x:5.0f} y={tile.y:5.0f}")
    if solve:
        solution = find_solution(level)
        if solution is None:
            typer.echo("no solution found", err=True)
            raise typer.Exit(code=1)
        typer.echo("Solution: " + " ".join(f"{tile.label}#{tile.tile_id}" for tile in solution))


@app.command("serve")
def cmd_serve(
    bind: str = typer.Option("0.0.0.0", "--bind", help="bind address"),
    port: int = typer.Option(DEFAULT_PORT, "--port", min=1, max=65535, help="UDP port"),
    levels: int = typer.Option(LEVEL_COUNT, "--levels", min=1, help="number of level indices a match can draw"),
    base_dir: Path = typer.Option(DEFAULT_BASE_DIR, "--base-dir", help="runtime directory (logs go under logs/net)"),
    debug_log: bool = typer.Option(False, "--debug-log", help="write a net trace log"),
) -> None:
    """Run the two-player room relay."""
    if debug_log:
        path = init_net_debug_log(base_dir=base_dir, role="server", host=bind, port=port)
        typer.echo(f"net trace: {path}")
    server = RelayServer(ServerConfig(bind_host=bind, port=port, level_count=levels))
    try:
        server.open()
    except OSError as exc:
        typer.echo(f"cannot bind {bind}:{port}: {exc}", err=True)
        close_net_debug_log()
        raise typer.Exit(code=1) from exc
    typer.echo(f"numclimb relay listening on {bind}:{server.bound_port}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        typer.echo("shutting down")
    finally:
        server.close()
        close_net_debug_log()


@app.command("play")
def cmd_play(
    tier: int = typer.Option(0, "--tier", min=0, help="starting difficulty tier"),
    fps: int = typer.Option(60, "--fps", min=1, help="target fps"),
) -> None:
    """Play solo in a window."""
    _run_play(GameSession(), client=None, tier=tier, fps=fps)


@app.command("online")
def cmd_online(
    host: str = typer.Option("127.0.0.1", "--host", help="relay server address"),
    port: int = typer.Option(DEFAULT_PORT, "--port", min=1, max=65535, help="relay server UDP port"),
    create: bool = typer.Option(False, "--create", help="create a new room"),
    join: str = typer.Option("", "--join", help="room code to join"),
    fps: int = typer.Option(60, "--fps", min=1, help="target fps"),
    base_dir: Path = typer.Option(DEFAULT_BASE_DIR, "--base-dir", help="runtime directory (logs go under logs/net)"),
    debug_log: bool = typer.Option(False, "--debug-log", help="write a net trace log"),
) -> None:
    """Race an opponent through a relay server."""
    join = join.strip()
    if create == bool(join):
        raise typer.BadParameter("pass exactly one of --create or --join CODE", param_hint="--create/--join")
    if not host.strip():
        raise typer.BadParameter("host address is required", param_hint="--host")

    if debug_log:
        init_net_debug_log(base_dir=base_dir, role="client", host=host, port=port)
    client = OnlineClient(ClientConfig(host=host, port=port), session=GameSession(rng=random.Random()))
    try:
        client.open()
    except OSError as exc:
        typer.echo(f"cannot reach {host}:{port}: {exc}", err=True)
        close_net_debug_log()
        raise typer.Exit(code=1) from exc
    if create:
        client.create_room()
    else:
        client.join_room(join)
    try:
        _run_play(client.session, client=client, tier=0, fps=fps)
    finally:
        close_net_debug_log()


def main(argv: list[str] | None = None) -> None:
    app(prog_name="numclimb", args=argv)


if __name__ == "__main__":
    main()
