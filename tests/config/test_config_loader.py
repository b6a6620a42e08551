from __future__ import annotations

from pathlib import Path

import pytest

from stream_router.config import ConfigLocator, ConfigRepository, example_config
from stream_router.errors import ConfigError

CONFIG_YAML = """
brokers: kafka-1:9092,kafka-2:9092
group_id: router
commit_interval: 2s
snapshot_path: data/store.json
routes:
  - name: orders
    source_topics: orders.raw
    destination_topic: orders.filtered
    match_values: [123, 456]
  - name: correlated
    source_topics: [payments.raw]
    reference_topics: [payments.reference]
    destination_topic: payments.matched
    fields: [fieldA, sub.fieldB]
"""


def test_config_locator_uses_env(tmp_path: Path) -> None:
    locator = ConfigLocator()
    assert locator.project_root == tmp_path.resolve()
    assert locator.config_path() == tmp_path.resolve() / "config" / "config.yaml"
    locator.ensure_directories()
    assert locator.data_dir.exists() and locator.logs_dir.exists()


def test_load_yaml_config(tmp_path: Path, temp_config_repository: ConfigRepository) -> None:
    path = tmp_path / "config" / "config.yaml"
    path.parent.mkdir(parents=True)
    path.write_text(CONFIG_YAML, encoding="utf-8")

    config = temp_config_repository.load()

    assert config.brokers == ["kafka-1:9092", "kafka-2:9092"]
    assert config.commit_interval == 2.0
    assert config.snapshot_path == (tmp_path / "data" / "store.json").resolve()
    assert [route.display_name() for route in config.routes] == ["orders", "correlated"]
    assert config.routes[0].match_values == ["123", "456"]
    assert config.routes[1].fields == ["fieldA", "sub.fieldB"]


def test_env_overrides_apply(tmp_path: Path, temp_config_repository, monkeypatch) -> None:
    path = tmp_path / "router.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    monkeypatch.setenv("STREAM_ROUTER_BROKERS", "override:9092")
    monkeypatch.setenv("STREAM_ROUTER_GROUP_ID", "other-group")

    config = temp_config_repository.load(path)

    assert config.brokers == ["override:9092"]
    assert config.group_id == "other-group"


def test_missing_config_raises(temp_config_repository) -> None:
    with pytest.raises(ConfigError):
        temp_config_repository.load("missing.yaml")


def test_unsupported_format_raises(tmp_path: Path, temp_config_repository) -> None:
    path = tmp_path / "router.toml"
    path.write_text("brokers = []", encoding="utf-8")
    with pytest.raises(ConfigError):
        temp_config_repository.load(path)


@pytest.mark.parametrize(
    "content",
    ["- just\n- a list\n", "routes: [{source_topics: [a]}]\n", "brokers: [unterminated\n"],
)
def test_invalid_config_raises(tmp_path: Path, temp_config_repository, content: str) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        temp_config_repository.load(path)


def test_save_then_load_example(temp_config_repository: ConfigRepository) -> None:
    path = temp_config_repository.save(example_config())
    assert path.exists()
    loaded = temp_config_repository.load(path)
    assert loaded == example_config()


def test_json_config_is_supported(tmp_path: Path, temp_config_repository) -> None:
    path = tmp_path / "router.json"
    path.write_text(
        '{"brokers": ["b:9092"], "routes": [{"source_topics": ["in"], "destination_topic": "out"}]}',
        encoding="utf-8",
    )
    config = temp_config_repository.load(path)
    assert config.routes[0].display_name() == "in->out"
