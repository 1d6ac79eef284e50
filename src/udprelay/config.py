"""TOML-based configuration for the relay.

Provides ``load_config`` / ``discover_config`` for loading ``udprelay.toml``
and a small hierarchy of frozen dataclasses for the listener, the sender,
the wire codec and logging.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from udprelay.codec import CodecKind

__all__ = [
    "CONFIG_FILENAME",
    "CodecConfig",
    "ListenerConfig",
    "LoggingConfig",
    "RelayConfig",
    "SenderConfig",
    "discover_config",
    "from_dict",
    "load_config",
]

CONFIG_FILENAME = "udprelay.toml"

_CODEC_KINDS = ("json", "msgpack")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ListenerConfig:
    """Receive-side settings.

    Parameters
    ----------
    host : str
        Address the receive endpoint binds to.
    poll_interval : float
        Seconds a single receive wait may block before the loop re-checks
        its cancellation token.
    error_backoff : float
        Seconds to pause after a transport-level receive error.
    stop_grace : float
        Seconds ``stop()`` waits for the cancelled loop to finish cleanup.
    max_datagram_size : int
        Datagrams longer than this many bytes are dropped.

    Examples
    --------
    >>> ListenerConfig(poll_interval=0.05)
    ListenerConfig(host='127.0.0.1', poll_interval=0.05, ...)
    """

    host: str = "127.0.0.1"
    poll_interval: float = 0.1
    error_backoff: float = 0.1
    stop_grace: float = 0.05
    max_datagram_size: int = 1024

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        if self.error_backoff < 0:
            raise ValueError("error_backoff must be >= 0")
        if self.stop_grace < 0:
            raise ValueError("stop_grace must be >= 0")
        if self.max_datagram_size <= 0:
            raise ValueError("max_datagram_size must be > 0")


@dataclass(frozen=True)
class SenderConfig:
    """Send-side settings.

    Parameters
    ----------
    host : str
        Address the ephemeral endpoint binds to and the target host.
    """

    host: str = "127.0.0.1"


@dataclass(frozen=True)
class CodecConfig:
    kind: CodecKind = "json"

    def __post_init__(self) -> None:
        if self.kind not in _CODEC_KINDS:
            msg = f"codec kind must be one of {', '.join(_CODEC_KINDS)}, got {self.kind!r}"
            raise ValueError(msg)


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level.upper() not in _LOG_LEVELS:
            msg = f"logging level must be one of {', '.join(_LOG_LEVELS)}, got {self.level!r}"
            raise ValueError(msg)


@dataclass(frozen=True)
class RelayConfig:
    """Top-level configuration container.

    Typically created via ``load_config()`` but can be constructed manually.

    Examples
    --------
    >>> config = RelayConfig(listener=ListenerConfig(host="0.0.0.0"))
    >>> config.codec.kind
    'json'
    """

    listener: ListenerConfig = field(default_factory=ListenerConfig)
    sender: SenderConfig = field(default_factory=SenderConfig)
    codec: CodecConfig = field(default_factory=CodecConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def discover_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for ``udprelay.toml``.

    Returns
    -------
    Path | None
        Path to the discovered config file, or ``None`` if not found.
    """
    current = start or Path.cwd()
    current = current.resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(path: Path | None = None) -> RelayConfig:
    """Load a ``RelayConfig`` from a TOML file.

    If *path* is ``None``, auto-discovers ``udprelay.toml`` by walking up
    from the current working directory. Returns the default config if no
    file is found.

    Raises
    ------
    FileNotFoundError
        If an explicit *path* is given but does not exist.
    ValueError
        If a section holds an invalid value.

    Examples
    --------
    >>> config = load_config(Path("udprelay.toml"))
    >>> config.listener.poll_interval
    0.1
    """
    if path is None:
        discovered = discover_config()
        if discovered is None:
            return RelayConfig()
        path = discovered

    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as f:
        raw = tomllib.load(f)

    return from_dict(raw)


def from_dict(raw: dict[str, Any]) -> RelayConfig:
    """Build a ``RelayConfig`` from an already parsed TOML document."""
    try:
        return RelayConfig(
            listener=ListenerConfig(**raw.get("listener", {})),
            sender=SenderConfig(**raw.get("sender", {})),
            codec=CodecConfig(**raw.get("codec", {})),
            logging=LoggingConfig(**raw.get("logging", {})),
        )
    except TypeError as exc:
        msg = f"Invalid configuration: {exc}"
        raise ValueError(msg) from exc
