import sys
from datetime import timedelta
from pathlib import Path

import pytest

from wschat.config import (
    Config,
    KafkaConfig,
    candidate_config_paths,
    find_and_load_config,
    get_config,
    load_config,
)

SAMPLE = """
[mainConfig]
appName = "chat"
host = "127.0.0.1"
port = 8000

[mysqlConfig]
host = "localhost"
port = 3306
user = "user"
password = "password"
databaseName = "chat_db"

[redisConfig]
host = "localhost"
port = 6379
password = "password"
db = 2

[kafkaConfig]
messageMode = "channel"
hostPort = "localhost:9092"
chatTopic = "chat_message"
partition = 0
timeout = "1m30s"

[staticSrcConfig]
staticAvatarPath = "./static/avatars"
staticFilePath = "./static/files"
"""


def _write(path: Path, text: str = SAMPLE) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_reads_sections(tmp_path):
    cfg = load_config(_write(tmp_path / "config.toml"))
    assert cfg.main_config.app_name == "chat"
    assert cfg.main_config.port == 8000
    assert cfg.mysql_config.database_name == "chat_db"
    assert cfg.redis_config.db == 2
    assert cfg.kafka_config.message_mode == "channel"
    assert cfg.kafka_config.timeout == timedelta(minutes=1, seconds=30)
    assert cfg.static_src_config.static_file_path == "./static/files"


def test_missing_sections_keep_defaults(tmp_path):
    cfg = load_config(_write(tmp_path / "c.toml", '[mainConfig]\nport = 9\n'))
    assert cfg.main_config.port == 9
    assert cfg.main_config.host == ""
    assert cfg.log_config == Config().log_config


def test_integer_timeout_is_nanoseconds():
    kafka = KafkaConfig.from_mapping({"timeout": 2_000_000_000})
    assert kafka.timeout == timedelta(seconds=2)


@pytest.mark.parametrize("bad", ["soon", "5x", 1.5])
def test_bad_timeout_rejected(bad):
    with pytest.raises(ValueError):
        KafkaConfig.from_mapping({"timeout": bad})


def test_type_mismatch_rejected(tmp_path):
    path = _write(tmp_path / "c.toml", '[mainConfig]\nport = "eighty"\n')
    with pytest.raises(ValueError):
        load_config(path)


def test_candidate_paths_order(tmp_path):
    exe = tmp_path / "bin" / "server"
    paths = candidate_config_paths(exe)
    assert len(paths) == 7
    assert paths[0] == Path("configs") / "config.toml"
    assert paths[4] == tmp_path / "bin" / "configs" / "config.toml"
    assert len(candidate_config_paths(None)) == 4


def test_find_skips_missing_and_broken(tmp_path):
    broken = _write(tmp_path / "a" / "config.toml", "not = [valid")
    good = _write(tmp_path / "b" / "config.toml")
    cfg = find_and_load_config([tmp_path / "missing.toml", broken, good])
    assert cfg.main_config.app_name == "chat"


def test_find_raises_when_nothing_loads(tmp_path):
    broken = _write(tmp_path / "config.toml", "=")
    with pytest.raises(FileNotFoundError):
        find_and_load_config([tmp_path / "nope.toml", broken])


def test_get_config_is_cached(tmp_path, monkeypatch):
    _write(tmp_path / "configs" / "config.toml")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "argv", [str(tmp_path / "server")])
    get_config.cache_clear()
    try:
        first = get_config()
        assert first.main_config.host == "127.0.0.1"
        assert get_config() is first
    finally:
        get_config.cache_clear()