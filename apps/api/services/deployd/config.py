from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import yaml

from .runner import DEFAULT_BUILD_COMMAND

DEFAULT_LISTEN = "127.0.0.1:9876"

_ENV_KEYS = {
    "project": "DEPLOYD_PROJECT",
    "host": "DEPLOYD_HOST",
    "secret": "DEPLOYD_SECRET",
    "status_file": "DEPLOYD_STATUS_FILE",
    "branch": "DEPLOYD_BRANCH",
}


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class DeploydConfig:
    project_dir: Path
    secret: str
    status_file: Path
    listen: str = DEFAULT_LISTEN
    branch: str = ""
    verbose: bool = False
    build_command: Tuple[str, ...] = DEFAULT_BUILD_COMMAND

    @property
    def branch_ref(self) -> str:
        return f"refs/heads/{self.branch}" if self.branch else ""


def env_bool(raw: Optional[str], default: bool = False) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def parse_listen_address(raw: str) -> Tuple[str, int]:
    """
    "127.0.0.1:9876" -> ("127.0.0.1", 9876)
    "[::1]:9876"     -> ("::1", 9876)
    ":9876"          -> ("0.0.0.0", 9876)
    """
    value = (raw or "").strip()
    host, sep, port_raw = value.rpartition(":")
    if not sep:
        raise ConfigError(f"listen address must be host:port, got {raw!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_raw)
    except ValueError:
        raise ConfigError(f"invalid port in listen address {raw!r}") from None
    if not 0 <= port <= 65535:
        raise ConfigError(f"port out of range in listen address {raw!r}")
    return host or "0.0.0.0", port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deployd",
        description="Run `make deploy` in a project folder on GitHub push webhooks.",
    )
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--project", help="Project folder containing the Makefile")
    parser.add_argument("--host", help="Interface and port to listen on")
    parser.add_argument("--secret", help="Github webhook secret")
    parser.add_argument("--status-file", dest="status_file", help="Status file")
    parser.add_argument(
        "--branch",
        help="Restrict deployd to only trigger on a specific branch change",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=None,
        help="Verbose logging",
    )
    return parser


def load_yaml_config(path: Path) -> Dict[str, Any]:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"failed to read config file {path}: {exc}") from exc
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"config file {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def _build_command(value: Any) -> Tuple[str, ...]:
    if value is None:
        return DEFAULT_BUILD_COMMAND
    if isinstance(value, str):
        raise ConfigError("build_command must be a list of arguments")
    cmd = tuple(str(v) for v in value)
    if not cmd:
        raise ConfigError("build_command must not be empty")
    return cmd


def load_config(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DeploydConfig:
    """
    Precedence (lowest first): YAML file, environment, command line flags.
    """
    env = os.environ if environ is None else environ
    args = build_parser().parse_args(argv)

    config_path = args.config or env.get("DEPLOYD_CONFIG")
    values: Dict[str, Any] = load_yaml_config(Path(config_path)) if config_path else {}

    for key, env_name in _ENV_KEYS.items():
        if env.get(env_name):
            values[key] = env[env_name]
    if "DEPLOYD_VERBOSE" in env:
        values["verbose"] = env_bool(env["DEPLOYD_VERBOSE"])

    for key in ("project", "host", "secret", "status_file", "branch", "verbose"):
        flag_value = getattr(args, key)
        if flag_value is not None:
            values[key] = flag_value

    secret = str(values.get("secret") or "")
    project = str(values.get("project") or "")
    status_file = str(values.get("status_file") or "")
    if not secret:
        raise ConfigError("You have to specify a secret using --secret")
    if not project:
        raise ConfigError("You have to specify a project folder using --project")
    if not status_file:
        raise ConfigError("You have to specify a status file using --status-file")

    listen = str(values.get("host") or DEFAULT_LISTEN)
    parse_listen_address(listen)

    verbose = values.get("verbose", False)
    if isinstance(verbose, str):
        verbose = env_bool(verbose)

    return DeploydConfig(
        project_dir=Path(project),
        secret=secret,
        status_file=Path(status_file),
        listen=listen,
        branch=str(values.get("branch") or "").strip(),
        verbose=bool(verbose),
        build_command=_build_command(values.get("build_command")),
    )
