"""Config loading for blockpaths.

Reads `.blockpaths/config.yaml` (or `~/.blockpaths/config.yaml`).
Raises SystemExit on parse errors, a missing `version` field or invalid values.
If no config file is found, returns default values. Note that the default gate
has no patterns, so create_app() still refuses to start without a config.

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. BLOCKPATHS_CONFIG environment variable (if set)
  3. `.blockpaths/config.yaml` (working directory — for development)
  4. `~/.blockpaths/config.yaml` (home directory — for deployments)

Environment variable overrides:
  BLOCKPATHS_PORT     — overrides proxy.port
  BLOCKPATHS_UPSTREAM — overrides upstream.url
  BLOCKPATHS_CONFIG   — sets an explicit config file path to try first
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Optional

import yaml

from blockpaths.constants import (
    DEFAULT_GATE_NAME,
    DEFAULT_PROXY_HOST,
    DEFAULT_PROXY_PORT,
    DEFAULT_STATUS_CODE,
    MAX_STATUS_CODE,
    MIN_STATUS_CODE,
)
from blockpaths.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# Default config search paths (BLOCKPATHS_CONFIG env var prepended at runtime)
DEFAULT_CONFIG_PATHS = [
    ".blockpaths/config.yaml",
    os.path.expanduser("~/.blockpaths/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class GateConfig:
    """Path gate settings. Immutable; shared by every request.

    regex:                RE2 patterns matched against the escaped request path.
    status_code:          Status written for blocked requests.
    silent_start_up:      Suppress the startup log of patterns + status code.
    allow_local_requests: Let a matched request through when any forwarded
                          client address is private, loopback or link-local.
    """

    regex: tuple[str, ...] = ()
    status_code: int = DEFAULT_STATUS_CODE
    silent_start_up: bool = True
    allow_local_requests: bool = True
    name: str = DEFAULT_GATE_NAME


@dataclass
class UpstreamConfig:
    """Service that allowed requests are forwarded to (None = no proxying)."""

    url: Optional[str] = None


@dataclass
class ProxyConfig:
    """Server binding configuration."""

    host: str = DEFAULT_PROXY_HOST
    port: int = DEFAULT_PROXY_PORT


@dataclass
class Config:
    """Root configuration object populated from .blockpaths/config.yaml."""

    version: int = SUPPORTED_CONFIG_VERSION
    gate: GateConfig = field(default_factory=GateConfig)
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.
        Gate keys use the camelCase names of the Traefik block-paths plugin
        (regex, silentStartUp, allowLocalRequests, statusCode).

        Raises:
            SystemExit(1): On a section that is not a mapping, a non-list regex
                           value, a non-boolean flag, an invalid statusCode or
                           a non-integer proxy.port.
        """
        # ── Gate ──────────────────────────────────────────────────────────────
        gate_raw = _section(raw, "gate")

        regex = gate_raw.get("regex", [])
        if isinstance(regex, str):
            regex = [regex]
        if not isinstance(regex, list):
            _config_error(
                f"Invalid gate.regex: expected a list of patterns, "
                f"got {type(regex).__name__}."
            )

        status_code = gate_raw.get("statusCode", DEFAULT_STATUS_CODE)
        if (
            isinstance(status_code, bool)
            or not isinstance(status_code, int)
            or not MIN_STATUS_CODE <= status_code <= MAX_STATUS_CODE
        ):
            _config_error(
                f"Invalid gate.statusCode: '{status_code}'. "
                f"Expected an integer between {MIN_STATUS_CODE} and {MAX_STATUS_CODE}."
            )

        gate = GateConfig(
            regex=tuple(regex),
            status_code=status_code,
            silent_start_up=_flag(gate_raw, "silentStartUp", True),
            allow_local_requests=_flag(gate_raw, "allowLocalRequests", True),
            name=gate_raw.get("name", DEFAULT_GATE_NAME),
        )

        # ── Upstream ──────────────────────────────────────────────────────────
        upstream_raw = _section(raw, "upstream")
        upstream = UpstreamConfig(url=upstream_raw.get("url"))

        # ── Proxy ─────────────────────────────────────────────────────────────
        proxy_raw = _section(raw, "proxy")
        port = proxy_raw.get("port", DEFAULT_PROXY_PORT)
        if isinstance(port, bool) or not isinstance(port, int):
            _config_error(f"Invalid proxy.port: '{port}'. Expected an integer.")
        proxy = ProxyConfig(
            host=proxy_raw.get("host", DEFAULT_PROXY_HOST),
            port=port,
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            gate=gate,
            upstream=upstream,
            proxy=proxy,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def _config_error(message: str) -> None:
    print(f"CONFIG ERROR: {message}", file=sys.stderr)
    raise SystemExit(1)


def _section(raw: dict, key: str) -> dict:
    """Return the top-level mapping at ``key``; absent or empty means defaults."""
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        _config_error(
            f"Invalid '{key}' section: expected a mapping, got {type(value).__name__}."
        )
    return value


def _flag(section: dict, key: str, default: bool) -> bool:
    # YAML true/false only; a quoted "false" is a string and would be truthy
    value = section.get(key, default)
    if not isinstance(value, bool):
        _config_error(f"Invalid gate.{key}: '{value}'. Expected true or false.")
    return value


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate blockpaths configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes an error to stderr and raises SystemExit(1).

    Env overrides (BLOCKPATHS_PORT, BLOCKPATHS_UPSTREAM) are applied afterwards
    regardless of whether a config file was found.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid gate values, or invalid ``BLOCKPATHS_PORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("BLOCKPATHS_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _config_error(
            f"Failed to parse {found_path}: {exc}\n"
            "blockpaths refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _config_error(f"Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _config_error(
                f"{found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _config_error(
            f"{found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        _config_error(
            f"{found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )

    if version not in SUPPORTED_VERSIONS:
        _config_error(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if config.proxy.host == "0.0.0.0":
        logger.warning(
            "blockpaths is configured to bind on 0.0.0.0 (all interfaces). "
            "Forwarding headers are client-controlled; allowLocalRequests can be "
            "bypassed by any client that can reach the port."
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        rules=len(config.gate.regex),
        upstream=config.upstream.url,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If BLOCKPATHS_PORT is set but not a valid integer.
    """
    env_port = os.environ.get("BLOCKPATHS_PORT")
    if env_port is not None:
        try:
            config.proxy.port = int(env_port)
        except ValueError:
            _config_error(
                f"BLOCKPATHS_PORT environment variable is not a valid integer: '{env_port}'"
            )

    env_upstream = os.environ.get("BLOCKPATHS_UPSTREAM")
    if env_upstream:
        config.upstream.url = env_upstream
