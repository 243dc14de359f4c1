"""Server configuration loaded from a TOML file."""

from __future__ import annotations

import logging
import re
import sys
import tomllib
from dataclasses import dataclass, field, fields
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)

CONFIG_RELATIVE = Path("configs") / "config.toml"

_DURATION_UNITS = {
    "ns": timedelta(microseconds=0.001),
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
    "μs": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def _parse_duration(value: Any) -> timedelta:
    """Accept an integer count of nanoseconds or a string such as '1m30s'."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, int):
        return timedelta(microseconds=value / 1000)
    if not isinstance(value, str):
        raise ValueError(f"invalid duration: {value!r}")
    text = value.strip()
    sign = 1
    if text[:1] in "+-" and text:
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration: {value!r}")
    total = timedelta(0)
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"invalid duration: {value!r}")
        total += _DURATION_UNITS[match.group(2)] * float(match.group(1))
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return total * sign


def _toml_name(name: str) -> str:
    """The camelCase key under which a field is stored in the file."""
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _lookup(table: Mapping[str, Any], name: str) -> tuple[str, Any] | None:
    """Find a field's value: exact key first, then ignoring case."""
    key = _toml_name(name)
    if key in table:
        return key, table[key]
    folded = key.lower()
    for candidate, value in table.items():
        if isinstance(candidate, str) and candidate.lower() == folded:
            return candidate, value
    return None


def _convert(name: str, default: Any, value: Any) -> Any:
    if isinstance(default, timedelta):
        return _parse_duration(value)
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name}: expected an integer, got {value!r}")
        return value
    if not isinstance(value, str):
        raise ValueError(f"{name}: expected a string, got {value!r}")
    return value


class _Section:
    @classmethod
    def from_mapping(cls, table: Mapping[str, Any]):
        if not isinstance(table, Mapping):
            raise ValueError(f"{cls.__name__}: expected a table, got {table!r}")
        kwargs = {}
        for f in fields(cls):
            found = _lookup(table, f.name)
            if found is not None:
                key, value = found
                kwargs[f.name] = _convert(key, f.default, value)
        return cls(**kwargs)


@dataclass
class MainConfig(_Section):
    app_name: str = ""
    host: str = ""
    port: int = 0


@dataclass
class MysqlConfig(_Section):
    host: str = ""
    port: int = 0
    user: str = ""
    password: str = ""
    database_name: str = ""


@dataclass
class RedisConfig(_Section):
    host: str = ""
    port: int = 0
    password: str = ""
    db: int = 0


@dataclass
class AuthCodeConfig(_Section):
    access_key_id: str = ""
    access_key_secret: str = ""
    sign_name: str = ""
    template_code: str = ""


@dataclass
class LogConfig(_Section):
    log_path: str = ""


@dataclass
class KafkaConfig(_Section):
    message_mode: str = ""
    host_port: str = ""
    login_topic: str = ""
    logout_topic: str = ""
    chat_topic: str = ""
    partition: int = 0
    timeout: timedelta = timedelta(0)


@dataclass
class StaticSrcConfig(_Section):
    static_avatar_path: str = ""
    static_file_path: str = ""


@dataclass
class Config:
    main_config: MainConfig = field(default_factory=MainConfig)
    mysql_config: MysqlConfig = field(default_factory=MysqlConfig)
    redis_config: RedisConfig = field(default_factory=RedisConfig)
    auth_code_config: AuthCodeConfig = field(default_factory=AuthCodeConfig)
    log_config: LogConfig = field(default_factory=LogConfig)
    kafka_config: KafkaConfig = field(default_factory=KafkaConfig)
    static_src_config: StaticSrcConfig = field(default_factory=StaticSrcConfig)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Config":
        kwargs = {}
        for f in fields(cls):
            found = _lookup(data, f.name)
            if found is not None:
                kwargs[f.name] = f.default_factory.from_mapping(found[1])
        return cls(**kwargs)


def candidate_config_paths(exe_path: str | Path | None) -> list[Path]:
    """Places searched for configs/config.toml, in order."""
    paths = [
        CONFIG_RELATIVE,
        Path("..") / CONFIG_RELATIVE,
        Path("..", "..") / CONFIG_RELATIVE,
        Path("..", "..", "..") / CONFIG_RELATIVE,
    ]
    if exe_path is not None:
        exe_dir = Path(exe_path).parent
        paths += [
            exe_dir / CONFIG_RELATIVE,
            exe_dir / ".." / CONFIG_RELATIVE,
            exe_dir / ".." / ".." / CONFIG_RELATIVE,
        ]
    return paths


def load_config(path: str | Path) -> Config:
    """Read and decode one TOML configuration file."""
    with open(path, "rb") as fh:
        data = tomllib.load(fh)
    return Config.from_mapping(data)


def find_and_load_config(paths: Iterable[str | Path]) -> Config:
    """Load the first existing path that decodes; raise FileNotFoundError if none does."""
    tried = []
    for candidate in paths:
        path = Path(candidate)
        tried.append(str(path))
        if not path.exists():
            continue
        try:
            return load_config(path)
        except (OSError, ValueError) as exc:
            logger.warning("Error decoding config file %s: %s", path, exc)
    raise FileNotFoundError(f"failed to load config file from any location: {tried}")


@lru_cache(maxsize=None)
def get_config() -> Config:
    """The process-wide configuration, loaded on first use."""
    exe = Path(sys.argv[0]).resolve() if sys.argv and sys.argv[0] else None
    return find_and_load_config(candidate_config_paths(exe))