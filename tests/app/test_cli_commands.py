from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from stream_router.app import AppState, app
from stream_router.config import ConfigLocator, ConfigRepository, example_config
from stream_router.dispatcher import RouteStats


class StubRouter:
    instances: list["StubRouter"] = []

    def __init__(self, config) -> None:  # noqa: ANN001
        self.config = config
        self.requested = None
        StubRouter.instances.append(self)

    def run(self, route_names=None):  # noqa: ANN001
        self.requested = route_names
        return [RouteStats(route="orders", role="source", received=3, forwarded=2, unmatched=1, stop_reason="cancelled")]

    def stop(self) -> None:
        pass


def make_state(tmp_path: Path, with_config: bool = True) -> AppState:
    repository = ConfigRepository(ConfigLocator(project_root=tmp_path))
    if with_config:
        repository.save(example_config())
    return AppState(repository=repository)


def _patch_state(monkeypatch, state: AppState) -> None:
    monkeypatch.setattr("stream_router.app.build_state", lambda verbose, config_path=None: state)


@pytest.fixture(autouse=True)
def default_state(monkeypatch, tmp_path) -> None:
    _patch_state(monkeypatch, make_state(tmp_path, with_config=False))


def test_cli_routes_lists_configured_routes(monkeypatch, tmp_path) -> None:
    _patch_state(monkeypatch, make_state(tmp_path))
    result = CliRunner().invoke(app, ["routes"])
    assert result.exit_code == 0, result.stdout
    assert "Routes (2)" in result.stdout
    assert "orders" in result.stdout
    assert "correlated" in result.stdout


def test_cli_routes_reports_missing_config(monkeypatch, tmp_path) -> None:
    _patch_state(monkeypatch, make_state(tmp_path, with_config=False))
    result = CliRunner().invoke(app, ["routes"])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.stdout


def test_cli_init_writes_example_once(monkeypatch, tmp_path) -> None:
    state = make_state(tmp_path, with_config=False)
    _patch_state(monkeypatch, state)
    runner = CliRunner()

    first = runner.invoke(app, ["init"])
    assert first.exit_code == 0, first.stdout
    assert (tmp_path / "config" / "config.yaml").exists()

    second = runner.invoke(app, ["init"])
    assert second.exit_code == 1
    assert "already" in second.stdout

    forced = runner.invoke(app, ["init", "--force"])
    assert forced.exit_code == 0, forced.stdout


def test_cli_run_uses_router(monkeypatch, tmp_path) -> None:
    StubRouter.instances = []
    _patch_state(monkeypatch, make_state(tmp_path))
    monkeypatch.setattr("stream_router.app.Router", StubRouter)

    result = CliRunner().invoke(app, ["run", "--route", "orders"])

    assert result.exit_code == 0, result.stdout
    assert StubRouter.instances[0].requested == ["orders"]
    assert "Route summary" in result.stdout


def test_cli_run_rejects_unknown_route(monkeypatch, tmp_path) -> None:
    StubRouter.instances = []
    _patch_state(monkeypatch, make_state(tmp_path))
    monkeypatch.setattr("stream_router.app.Router", StubRouter)

    result = CliRunner().invoke(app, ["run", "--route", "nope"])

    assert result.exit_code == 1
    assert "Unknown route" in result.stdout
    assert StubRouter.instances == []


def test_cli_fingerprint_prints_canonical_form(tmp_path) -> None:
    payload = tmp_path / "doc.json"
    payload.write_text('{"sub":{"fieldB":"v2"},"fieldA":"v1"}', encoding="utf-8")
    runner = CliRunner()

    inline = runner.invoke(app, ["fingerprint", '{"fieldA":"v1"}', "-f", "fieldA"])
    assert inline.exit_code == 0, inline.stdout
    assert inline.stdout.strip() == '[{"path":"fieldA","value":"v1"}]'

    from_file = runner.invoke(app, ["fingerprint", f"@{payload}", "-f", "sub.fieldB", "-f", "fieldA"])
    assert from_file.exit_code == 0, from_file.stdout
    assert from_file.stdout.strip() == '[{"path":"fieldA","value":"v1"},{"path":"sub.fieldB","value":"v2"}]'


def test_cli_fingerprint_reports_missing_field() -> None:
    result = CliRunner().invoke(app, ["fingerprint", '{"a":1}', "-f", "b"])
    assert result.exit_code == 1
    assert "Cannot fingerprint payload" in result.stdout


def test_cli_replay_correlated_route(monkeypatch, tmp_path) -> None:
    _patch_state(monkeypatch, make_state(tmp_path))
    reference = tmp_path / "reference.jsonl"
    reference.write_text('{"fieldA":"v1","sub":{"fieldB":"v2"}}\n', encoding="utf-8")
    payloads = tmp_path / "payloads.jsonl"
    payloads.write_text(
        '{"fieldA":"v1","sub":{"fieldB":"v2"},"id":1}\n{"fieldA":"x","sub":{"fieldB":"v2"},"id":2}\n',
        encoding="utf-8",
    )

    result = CliRunner().invoke(
        app, ["replay", str(payloads), "--route", "correlated", "--reference", str(reference)]
    )

    assert result.exit_code == 0, result.stdout
    assert '"id":1' in result.stdout
    assert '"id":2' not in result.stdout
    assert "Loaded 1 reference fingerprints" in result.stdout


def test_cli_snapshot_show(tmp_path) -> None:
    path = tmp_path / "store.json"
    path.write_text(json.dumps({"orders": ["a", "b"], "payments": ["c"]}), encoding="utf-8")
    result = CliRunner().invoke(app, ["snapshot", "show", str(path)])
    assert result.exit_code == 0, result.stdout
    assert "orders" in result.stdout
    assert "payments" in result.stdout


def test_cli_snapshot_show_invalid(tmp_path) -> None:
    result = CliRunner().invoke(app, ["snapshot", "show", str(tmp_path / "missing.json")])
    assert result.exit_code == 1


def test_cli_log_show_tails_route_log(monkeypatch, tmp_path) -> None:
    _patch_state(monkeypatch, make_state(tmp_path, with_config=False))
    log_file = tmp_path / "logs" / "routes" / "orders.log"
    log_file.parent.mkdir(parents=True)
    log_file.write_text("line-1\nline-2\nline-3\n", encoding="utf-8")
    runner = CliRunner()

    listing = runner.invoke(app, ["log", "list"])
    assert listing.exit_code == 0, listing.stdout
    assert "orders.log" in listing.stdout

    shown = runner.invoke(app, ["log", "show", "--route", "orders", "--tail", "2"])
    assert shown.exit_code == 0, shown.stdout
    assert "line-3" in shown.stdout
    assert "line-1" not in shown.stdout
