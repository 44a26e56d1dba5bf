from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import yaml


@dataclass(frozen=True)
class Settings:
    # Warehouse
    host: str | None = None
    port: int = 5480
    database: str | None = None
    username: str | None = None
    password: str | None = None

    # Paths
    log_dir: str = "./logs"
    report_dir: str = "./reports"
    pipe_dir: str | None = None

    # Logging
    log_level: str = "INFO"

    # Unload
    encoding: str | None = None
    remote_source: str = "PYTHON"
    poll_interval_seconds: float = 0.1


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    sources_used: list[str]


_ENV_NAMES = {
    "host": "NZ_HOST",
    "port": "NZ_PORT",
    "database": "NZ_DATABASE",
    "username": "NZ_USERNAME",
    "password": "NZ_PASSWORD",
    "log_dir": "NZ_LOG_DIR",
    "report_dir": "NZ_REPORT_DIR",
    "pipe_dir": "NZ_PIPE_DIR",
    "log_level": "NZ_LOG_LEVEL",
    "encoding": "NZ_ENCODING",
    "remote_source": "NZ_REMOTE_SOURCE",
    "poll_interval_seconds": "NZ_POLL_INTERVAL_SECONDS",
}


def _read_yaml_config(path: Path) -> dict:
    if not path.exists():
        return {}
    if not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return {}
        return data


def _env_get(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def _parse_int(name: str, v) -> int:
    try:
        return int(v)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid integer value for {name}: {v}") from exc


def _parse_float(name: str, v) -> float:
    try:
        value = float(v)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid number value for {name}: {v}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive: {v}")
    return value


def loadSettings(
    config_path: str | None,
    cli_overrides: dict,
) -> LoadedSettings:
    """
    Priority: CLI > ENV > config > defaults
    """
    sources: list[str] = []
    defaults = Settings()

    # 1) config file
    cfg: dict = {}
    if config_path:
        cfg = _read_yaml_config(Path(config_path))
        if cfg:
            sources.append("config")

    # 2) env
    env = {key: _env_get(name) for key, name in _ENV_NAMES.items()}
    if any(v is not None for v in env.values()):
        sources.append("env")

    merged = {key: cfg.get(key, getattr(defaults, key)) for key in _ENV_NAMES}
    for key, value in env.items():
        if value is not None:
            merged[key] = value

    # 3) apply CLI overrides (only those explicitly passed)
    if any(v is not None for v in cli_overrides.values()):
        sources.append("cli")

    for k, v in cli_overrides.items():
        if v is None:
            continue
        merged[k] = v

    settings = Settings(
        host=merged["host"],
        port=_parse_int("port", merged["port"]),
        database=merged["database"],
        username=merged["username"],
        password=merged["password"],
        log_dir=str(merged["log_dir"]),
        report_dir=str(merged["report_dir"]),
        pipe_dir=merged["pipe_dir"],
        log_level=str(merged["log_level"]).upper(),
        encoding=merged["encoding"],
        remote_source=str(merged["remote_source"]).upper(),
        poll_interval_seconds=_parse_float("poll_interval_seconds", merged["poll_interval_seconds"]),
    )

    return LoadedSettings(settings=settings, sources_used=sources)
