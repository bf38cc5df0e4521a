"""ragsync configuration loader.

Priority (high → low):
  1. CLI flags  (applied by the command, after this module)
  2. Environment variables  (EMBEDDING_VERSION, INGEST_CONCURRENCY, RAGSYNC_DB,
     RAGSYNC_LOG_LEVEL). EMBEDDING_MODEL, EMBEDDING_PROVIDER / LLM_PROVIDER and
     EMBEDDING_SPACE_ID are not copied into the config; the embedding resolver
     reads them as its environment-default tier, below anything set here.
  3. Per-project ragsync.yaml  (working directory)
  4. Global ~/.ragsync/config.yaml  (defaults only, no API keys)
  5. Hardcoded defaults

Provider keys come from the environment; the global file is rejected if it
holds anything that looks like a credential. YAML is read with safe_load only.
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from ragsync.embeddings.spaces import EmbeddingSelection

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".ragsync"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_NAME: str = "ragsync.yaml"

# Fields that suggest an API key are forbidden in global config.
# Does NOT match legitimate config keys like max_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(["embedding", "ingest", "datastore", "logging"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file or env var holds an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding space selection (ragsync.yaml: embedding:).

    Any of ``space_id`` / ``model`` / ``provider`` may be left unset; the
    space is resolved from whatever is given.
    """

    space_id: str | None = None
    provider: str | None = None
    model: str | None = None
    version: str | None = None
    batch_size: int = 96
    timeout: float = 60.0

    def selection(self) -> EmbeddingSelection:
        return EmbeddingSelection(
            provider=self.provider,
            model=self.model,
            embedding_space_id=self.space_id,
            version=self.version,
        )


@dataclass
class IngestCfg:
    """Chunking and concurrency (ragsync.yaml: ingest:).

    ``concurrency`` applies to page syncs, ``url_concurrency`` to URL runs.
    """

    concurrency: int = 2
    url_concurrency: int = 4
    max_tokens: int = 450
    overlap: int = 75
    default_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class DatastoreCfg:
    """SQLite location and retry policy (ragsync.yaml: datastore:)."""

    path: str = ".ragsync.db"
    retry_attempts: int = 4
    retry_base_delay: float = 0.5


@dataclass
class LoggingCfg:
    level: str = "INFO"
    log_dir: str | None = None


@dataclass
class RagsyncConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)
    datastore: DatastoreCfg = field(default_factory=DatastoreCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""
    stack: list[tuple[str, Any]] = [("", data)]
    while stack:
        prefix, node = stack.pop()
        if not isinstance(node, dict):
            continue
        for key, value in node.items():
            dotted = f"{prefix}.{key}" if prefix else str(key)
            if _API_KEY_RE.search(str(key)):
                raise ConfigError(
                    f"Global config '{source}' contains a forbidden key '{dotted}'.\n"
                    "  Provider credentials are read from the environment only.\n"
                    f"  Delete '{dotted}' from {source.name} and export the provider key instead\n"
                    "  (OPENAI_API_KEY, GEMINI_API_KEY)."
                )
            stack.append((dotted, value))


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _read_yaml(path: Path) -> dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level.")
    return raw


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _cfg_from_dict(data: dict[str, Any]) -> RagsyncConfig:
    """Build a *RagsyncConfig* from a merged raw YAML dict."""
    cfg = RagsyncConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            space_id=_optional_str(e.get("space_id")),
            provider=_optional_str(e.get("provider")),
            model=_optional_str(e.get("model")),
            version=_optional_str(e.get("version")),
            batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
            timeout=float(e.get("timeout", cfg.embedding.timeout)),
        )

    if "ingest" in data:
        i = data["ingest"] or {}
        defaults = i.get("default_metadata") or {}
        if not isinstance(defaults, dict):
            raise ConfigError("ingest.default_metadata must be a mapping")
        cfg.ingest = IngestCfg(
            concurrency=max(1, int(i.get("concurrency", cfg.ingest.concurrency))),
            url_concurrency=max(1, int(i.get("url_concurrency", cfg.ingest.url_concurrency))),
            max_tokens=int(i.get("max_tokens", cfg.ingest.max_tokens)),
            overlap=int(i.get("overlap", cfg.ingest.overlap)),
            default_metadata=dict(defaults),
        )

    if "datastore" in data:
        d = data["datastore"] or {}
        cfg.datastore = DatastoreCfg(
            path=str(d.get("path", cfg.datastore.path)),
            retry_attempts=int(d.get("retry_attempts", cfg.datastore.retry_attempts)),
            retry_base_delay=float(d.get("retry_base_delay", cfg.datastore.retry_base_delay)),
        )

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(
            level=str(lg.get("level", cfg.logging.level)),
            log_dir=_optional_str(lg.get("log_dir")),
        )

    return cfg


def _apply_env_overrides(cfg: RagsyncConfig, env: Mapping[str, str]) -> RagsyncConfig:
    """Apply environment variable overrides (layer 2)."""
    if version := _optional_str(env.get("EMBEDDING_VERSION")):
        cfg.embedding.version = version
    if concurrency := _optional_str(env.get("INGEST_CONCURRENCY")):
        try:
            cfg.ingest.concurrency = cfg.ingest.url_concurrency = max(1, int(concurrency))
        except ValueError:
            raise ConfigError(
                f"INGEST_CONCURRENCY must be an integer, got '{concurrency}'"
            ) from None
    if db_path := _optional_str(env.get("RAGSYNC_DB")):
        cfg.datastore.path = db_path
    if level := _optional_str(env.get("RAGSYNC_LOG_LEVEL")):
        cfg.logging.level = level
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> RagsyncConfig:
    """Load and return a merged *RagsyncConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *ragsync.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).
        env: Environment mapping (defaults to ``os.environ``).

    Raises:
        ConfigError: If global config contains API-key-like fields or a value
            cannot be parsed.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    try:
        cfg = _cfg_from_dict(merged)
    except (TypeError, ValueError) as exc:
        if isinstance(exc, ConfigError):
            raise
        raise ConfigError(f"Invalid configuration value: {exc}") from exc

    return _apply_env_overrides(cfg, os.environ if env is None else env)


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.ragsync/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# ragsync global configuration: defaults only.\n"
            "# NEVER store API keys here. Use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "#   export GEMINI_API_KEY=...\n"
            "\n"
            "embedding:\n"
            "  provider: openai\n"
            "\n"
            "ingest:\n"
            "  concurrency: 2\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
