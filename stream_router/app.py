"""Typer CLI entrypoint for stream-router."""

from __future__ import annotations

import signal
from dataclasses import dataclass
from pathlib import Path
from threading import Event
from typing import Optional, Sequence

import typer
from confluent_kafka import KafkaException
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, RouteConfig, RouterConfig, example_config
from .dispatcher import ReferenceIngestor, RouteDispatcher, RouteStats, Router
from .engine import MatchStore, PublisherPool, fingerprint
from .errors import ConfigError, FingerprintError, PersistenceError
from .infra import snapshot
from .logging_conf import available_route_logs, configure_logging, global_log_path, route_log_path, tail_log
from .transport import MemorySink, MemorySource

app = typer.Typer(
    help="stream-router: forward Kafka records by allow-list or reference fingerprint.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
snapshot_app = typer.Typer(name="snapshot", help="Inspect match store snapshots.", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Inspect router logs.", no_args_is_help=True)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    config_path: Optional[Path] = None


def build_state(verbose: bool, config_path: Optional[Path] = None) -> AppState:
    repository = ConfigRepository()
    configure_logging(verbose=verbose)
    return AppState(repository=repository, config_path=config_path)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _load_config(state: AppState) -> RouterConfig:
    try:
        return state.repository.load(state.config_path)
    except ConfigError as exc:
        console.print(f"Invalid configuration: {exc}", style="red")
        raise typer.Exit(code=1) from exc


def _find_route(config: RouterConfig, name: str) -> RouteConfig:
    try:
        return config.route(name)
    except KeyError as exc:
        known = ", ".join(route.display_name() for route in config.routes) or "-"
        console.print(f"Unknown route `{name}`. Known routes: {known}", style="red")
        raise typer.Exit(code=1) from exc


def _read_lines(path: Path) -> list[str]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        console.print(f"Cannot read {path}: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    return [line.strip() for line in text.splitlines() if line.strip()]


def _describe_rule(route: RouteConfig) -> str:
    if route.fields:
        return "fields: " + ", ".join(route.fields)
    if route.match_values:
        return f"{route.match_field} in " + ", ".join(route.match_values)
    return "forward all"


def _render_routes_table(routes: Sequence[RouteConfig]) -> Table:
    table = Table(title=f"Routes ({len(routes)})", box=box.SIMPLE_HEAD)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Strategy", style="magenta")
    table.add_column("Sources", overflow="fold")
    table.add_column("References", overflow="fold")
    table.add_column("Destination", style="green", overflow="fold")
    table.add_column("Rule", style="yellow", overflow="fold")
    for route in routes:
        table.add_row(
            route.display_name(),
            route.strategy.value,
            ", ".join(route.source_topics),
            ", ".join(route.reference_topics) or "-",
            route.destination_topic,
            _describe_rule(route),
        )
    return table


def _render_stats_table(stats: Sequence[RouteStats]) -> Table:
    table = Table(title="Route summary", box=box.SIMPLE_HEAD)
    table.add_column("Route", style="cyan", no_wrap=True)
    table.add_column("Role", style="magenta")
    table.add_column("Received", justify="right")
    table.add_column("Forwarded", justify="right", style="green")
    table.add_column("Unmatched", justify="right")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Publish failed", justify="right", style="red")
    table.add_column("References", justify="right")
    table.add_column("Stopped", style="dim")
    for item in stats:
        table.add_row(
            item.route,
            item.role,
            str(item.received),
            str(item.forwarded),
            str(item.unmatched),
            str(item.skipped),
            str(item.publish_failed),
            str(item.references_added),
            item.stop_reason or "-",
        )
    return table


app.add_typer(snapshot_app, name="snapshot")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to the YAML/JSON config file."),
) -> None:
    ctx.obj = build_state(verbose, config)


@app.command("run", help="Start every configured route, or only the ones named with --route.")
def run(
    ctx: typer.Context,
    route: Optional[list[str]] = typer.Option(None, "--route", "-r", help="Route name to run (repeatable)."),
) -> None:
    state = _get_state(ctx)
    config = _load_config(state)
    if not config.routes:
        console.print("No routes configured.", style="yellow")
        raise typer.Exit(code=1)
    for name in route or []:
        _find_route(config, name)

    router = Router(config)

    def _handle_signal(signum, frame) -> None:  # noqa: ARG001
        router.stop()

    previous = {sig: signal.signal(sig, _handle_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        stats = router.run(route)
    except (ConfigError, KafkaException) as exc:
        console.print(f"Router failed to start: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    console.print(_render_stats_table(stats))


@app.command("routes", help="List configured routes and their matching strategy.")
def routes(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    config = _load_config(state)
    if not config.routes:
        console.print("No routes configured.", style="yellow")
        raise typer.Exit(code=0)
    console.print(_render_routes_table(config.routes))


@app.command("init", help="Write an example configuration file.")
def init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    state = _get_state(ctx)
    path = state.repository.locator.config_path(state.config_path)
    if path.exists() and not force:
        console.print(f"{path} already exists; use --force to overwrite.", style="yellow")
        raise typer.Exit(code=1)
    written = state.repository.save(example_config(), state.config_path)
    console.print(f"Example configuration written to {written}", style="green")


@app.command("fingerprint", help="Print the fingerprint of a JSON payload (prefix a file path with @).")
def fingerprint_command(
    payload: str = typer.Argument(..., help="JSON document, or @path to read it from a file."),
    field: list[str] = typer.Option(..., "--field", "-f", help="Field path (repeatable)."),
) -> None:
    if payload.startswith("@"):
        try:
            payload = Path(payload[1:]).read_text(encoding="utf-8")
        except OSError as exc:
            console.print(f"Cannot read {payload[1:]}: {exc}", style="red")
            raise typer.Exit(code=1) from exc
    try:
        result = fingerprint(payload, field)
    except FingerprintError as exc:
        console.print(f"Cannot fingerprint payload: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    typer.echo(result)


@app.command("replay", help="Run one route over JSONL payload files without a broker.")
def replay(
    ctx: typer.Context,
    payloads: Path = typer.Argument(..., help="JSONL file of source payloads."),
    route: str = typer.Option(..., "--route", "-r", help="Route name."),
    reference: Optional[Path] = typer.Option(None, "--reference", help="JSONL file of reference payloads."),
) -> None:
    state = _get_state(ctx)
    config = _load_config(state)
    route_cfg = _find_route(config, route)
    store = MatchStore()
    cancel = Event()
    if reference is not None:
        if not route_cfg.fields:
            console.print(f"Route `{route}` has no fingerprint fields; --reference ignored.", style="yellow")
        else:
            ingest = ReferenceIngestor(route_cfg, MemorySource.from_values(_read_lines(reference)), store, cancel)
            ref_stats = ingest.run()
            console.print(
                f"Loaded {ref_stats.references_added} reference fingerprints "
                f"({ref_stats.skipped} skipped).",
                style="dim",
            )

    publishers = PublisherPool(factory=MemorySink)
    dispatcher = RouteDispatcher(route_cfg, MemorySource.from_values(_read_lines(payloads)), publishers, store, cancel)
    stats = dispatcher.run()
    sink = publishers.get(route_cfg.destination_topic)
    for record in sink.records:
        typer.echo((record.value or b"").decode("utf-8", errors="replace"))
    publishers.close()
    console.print(_render_stats_table([stats]))


@snapshot_app.command("show", help="Show per-route fingerprint counts of a snapshot file.")
def snapshot_show(path: Path = typer.Argument(..., help="Snapshot JSON file.")) -> None:
    try:
        data = snapshot.load(path)
    except PersistenceError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1) from exc
    if not data:
        console.print("Snapshot is empty.", style="dim")
        return
    table = Table(title=f"Snapshot {path.name}", box=box.SIMPLE_HEAD)
    table.add_column("Route", style="cyan")
    table.add_column("Entries", justify="right", style="green")
    for route_name, values in sorted(data.items()):
        table.add_row(route_name, str(len(values)))
    console.print(table)


@log_app.command("list", help="List per-route log files.")
def log_list() -> None:
    logs = list(available_route_logs())
    if not logs:
        console.print("No route logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the last lines of the global or a route log.")
def log_show(
    route: Optional[str] = typer.Option(None, "--route", help="Route name (global log when omitted)."),
    tail: int = typer.Option(100, "--tail", help="Number of lines."),
) -> None:
    path = route_log_path(route) if route else global_log_path()
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log lines yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(lines)} lines", style="cyan")
    console.print("".join(lines), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
