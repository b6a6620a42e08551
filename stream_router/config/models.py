"""Pydantic models describing routes and transport settings."""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..engine.fingerprint import MAX_FIELD_DEPTH
from ..engine.matcher import DEFAULT_MATCH_FIELD
from ..transport import KafkaSettings

_DURATION_PATTERN = re.compile(r"^\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>ms|s|m|h)?\s*$", re.IGNORECASE)
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any) -> float:
    """Return seconds from a number or a string such as ``500ms`` or ``2m``."""

    if isinstance(value, bool):
        raise ValueError("Duration must be a number or string like '1s'")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        match = _DURATION_PATTERN.match(value)
        if not match:
            raise ValueError(f"Unsupported duration: {value!r}")
        unit = (match.group("unit") or "s").lower()
        seconds = float(match.group("value")) * _DURATION_UNITS[unit]
    else:
        raise ValueError("Duration must be a number or string like '1s'")
    if seconds < 0:
        raise ValueError("Duration must be non-negative")
    return seconds


def _validate_field_path(path: str) -> str:
    parts = path.split(".")
    if len(parts) > MAX_FIELD_DEPTH:
        raise ValueError(f"Field path {path!r} nests deeper than {MAX_FIELD_DEPTH} levels")
    if any(not part for part in parts):
        raise ValueError(f"Field path {path!r} has an empty segment")
    return path


def _as_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


def slugify(name: str) -> str:
    """Lower-case name with separators replaced, used for group ids and log files."""

    lowered = name.lower()
    for ch in (" ", "/", "\\", "."):
        lowered = lowered.replace(ch, "-")
    return lowered


class MatchStrategy(str, Enum):
    """How a route decides whether to forward a record."""

    ALLOW_LIST = "allow_list"
    FINGERPRINT = "fingerprint"


class RouteConfig(BaseModel):
    """One source-to-destination forwarding unit."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    source_topics: list[str]
    destination_topic: str
    reference_topics: list[str] = Field(default_factory=list)
    fields: list[str] = Field(default_factory=list)
    match_values: list[str] = Field(default_factory=list)
    match_field: str = DEFAULT_MATCH_FIELD

    @field_validator("source_topics", "reference_topics", mode="before")
    @classmethod
    def _coerce_topics(cls, value: Any) -> Any:
        return _as_list(value)

    @field_validator("match_values", mode="before")
    @classmethod
    def _coerce_values(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        return value

    @field_validator("fields")
    @classmethod
    def _check_fields(cls, value: list[str]) -> list[str]:
        return [_validate_field_path(path) for path in value]

    @field_validator("match_field")
    @classmethod
    def _check_match_field(cls, value: str) -> str:
        return _validate_field_path(value)

    @model_validator(mode="after")
    def _validate_route(self) -> "RouteConfig":
        if not self.source_topics:
            raise ValueError("source_topics cannot be empty")
        if not self.destination_topic.strip():
            raise ValueError("destination_topic cannot be empty")
        if self.reference_topics and not self.fields:
            raise ValueError("reference_topics require fields to fingerprint")
        return self

    @property
    def strategy(self) -> MatchStrategy:
        return MatchStrategy.FINGERPRINT if self.fields else MatchStrategy.ALLOW_LIST

    def display_name(self) -> str:
        if self.name.strip():
            return self.name.strip()
        return f"{','.join(self.source_topics)}->{self.destination_topic}"


class RouterConfig(BaseModel):
    """Top-level configuration: transport settings plus the route list."""

    brokers: list[str] = Field(default_factory=lambda: ["localhost:9092"])
    client_id: str = "stream-router"
    group_id: str = "stream-router"
    commit_interval: float = 1.0
    poll_timeout: float = 0.5
    publish_timeout: float = 15.0
    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: str = "PLAIN"
    sasl_username: str | None = None
    sasl_password: str | None = None
    snapshot_path: Path | None = None
    routes: list[RouteConfig] = Field(default_factory=list)

    @field_validator("brokers", mode="before")
    @classmethod
    def _coerce_brokers(cls, value: Any) -> Any:
        return _as_list(value)

    @field_validator("commit_interval", "poll_timeout", "publish_timeout", mode="before")
    @classmethod
    def _coerce_duration(cls, value: Any) -> float:
        return parse_duration(value)

    @field_validator("snapshot_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path | None:
        if value in (None, ""):
            return None
        return Path(value)

    @model_validator(mode="after")
    def _validate_config(self) -> "RouterConfig":
        if not self.brokers:
            raise ValueError("brokers cannot be empty")
        if self.poll_timeout <= 0:
            raise ValueError("poll_timeout must be > 0")
        seen: set[str] = set()
        for route in self.routes:
            name = route.display_name()
            if name in seen:
                raise ValueError(f"Duplicate route name: {name}")
            seen.add(name)
        return self

    def route(self, name: str) -> RouteConfig:
        for route in self.routes:
            if route.display_name() == name:
                return route
        raise KeyError(name)

    def kafka_settings(self) -> KafkaSettings:
        return KafkaSettings(
            bootstrap_servers=",".join(self.brokers),
            client_id=self.client_id,
            group_id=self.group_id,
            commit_interval_ms=int(self.commit_interval * 1000),
            poll_timeout=self.poll_timeout,
            publish_timeout=self.publish_timeout,
            security_protocol=self.security_protocol,
            sasl_mechanism=self.sasl_mechanism,
            sasl_username=self.sasl_username,
            sasl_password=self.sasl_password,
        )

    def consumer_group(self, route: RouteConfig, suffix: str = "") -> str:
        group = f"{self.group_id}-{slugify(route.display_name())}"
        return f"{group}-{suffix}" if suffix else group


__all__ = [
    "MatchStrategy",
    "RouteConfig",
    "RouterConfig",
    "parse_duration",
    "slugify",
]
