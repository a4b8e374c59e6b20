"""Application configuration loaded from templated JSON files."""

from __future__ import annotations

import enum
import json
import os
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, ClassVar

from .database import ConfigError, DBConfig

VERSION = "development"
DEFAULT_SOCKET_FILE = "/tmp/solve-server.sock"


class LogLevel(enum.IntEnum):
    """Logging level."""

    UNSET = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4
    OFF = 5

    def to_text(self) -> str:
        """Return the textual name of the level."""
        return _LEVEL_NAMES[self]

    @classmethod
    def parse(cls, text: str) -> LogLevel:
        """Parse a level name."""
        try:
            return _LEVELS_BY_NAME[text]
        except KeyError:
            raise ConfigError(f"unknown level: {text!r}") from None


_LEVEL_NAMES = {
    LogLevel.UNSET: "",
    LogLevel.DEBUG: "debug",
    LogLevel.INFO: "info",
    LogLevel.WARN: "warning",
    LogLevel.ERROR: "error",
    LogLevel.OFF: "off",
}

_LEVELS_BY_NAME = {
    "debug": LogLevel.DEBUG,
    "info": LogLevel.INFO,
    "warning": LogLevel.WARN,
    "warn": LogLevel.WARN,
    "error": LogLevel.ERROR,
    "off": LogLevel.OFF,
}


@dataclass
class Server:
    """API server settings."""

    host: str = ""
    port: int = 0

    def address(self) -> str:
        """Return host:port."""
        return f"{self.host}:{self.port}"


@dataclass
class Security:
    """Password hashing and encryption settings."""

    password_salt: str = ""
    password_key: str = ""


@dataclass
class Safeexec:
    """Location of the sandbox binary."""

    path: str = ""


@dataclass
class Invoker:
    """Invoker settings."""

    workers: int = 0
    safeexec: Safeexec = field(default_factory=Safeexec)


class StorageDriver(str, enum.Enum):
    """Name of a file storage driver."""

    LOCAL = "local"
    S3 = "s3"


@dataclass
class LocalStorageOptions:
    """Files kept in a local directory."""

    files_dir: str = ""
    driver: ClassVar[StorageDriver] = StorageDriver.LOCAL


@dataclass
class S3StorageOptions:
    """Files kept in an S3-compatible bucket."""

    region: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    endpoint: str = ""
    bucket: str = ""
    path_prefix: str = ""
    driver: ClassVar[StorageDriver] = StorageDriver.S3


def _field(data: dict, key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    valid = isinstance(value, kind)
    if kind is int and isinstance(value, bool):
        valid = False
    if not valid:
        raise ConfigError(f"field {key!r} should be of type {kind.__name__}")
    return value


def _object(raw: Any, what: str) -> dict:
    if not isinstance(raw, dict):
        raise ConfigError(f"{what} should be an object")
    return raw


def _strings(raw: dict, cls: type) -> Any:
    names = [name for name in cls.__dataclass_fields__]
    return cls(**{name: _field(raw, name, str, "") for name in names})


@dataclass
class Storage:
    """File storage configuration."""

    options: LocalStorageOptions | S3StorageOptions | None = None

    def to_dict(self) -> dict:
        """Return the JSON-ready form with driver and options."""
        if not isinstance(self.options, (LocalStorageOptions, S3StorageOptions)):
            raise ConfigError(
                f"options of type {type(self.options).__name__} is not supported"
            )
        return {"driver": self.options.driver.value, "options": asdict(self.options)}

    @classmethod
    def from_dict(cls, data: Any) -> Storage:
        """Build a storage configuration from its JSON form."""
        data = _object(data, "storage config")
        driver = _field(data, "driver", str, "")
        if "options" not in data:
            raise ConfigError("storage options are missing")
        raw = data["options"] if data["options"] is not None else {}
        raw = _object(raw, "storage options")
        if driver == StorageDriver.LOCAL.value:
            return cls(options=_strings(raw, LocalStorageOptions))
        if driver == StorageDriver.S3.value:
            return cls(options=_strings(raw, S3StorageOptions))
        raise ConfigError(f"driver {driver!r} is not supported")


def _server(raw: Any) -> Server:
    raw = _object(raw, "server config")
    return Server(host=_field(raw, "host", str, ""), port=_field(raw, "port", int, 0))


def _security(raw: Any) -> Security:
    return _strings(_object(raw, "security config"), Security)


def _invoker(raw: Any) -> Invoker:
    raw = _object(raw, "invoker config")
    safeexec = raw.get("safeexec")
    return Invoker(
        workers=_field(raw, "workers", int, 0),
        safeexec=Safeexec() if safeexec is None else _strings(
            _object(safeexec, "safeexec config"), Safeexec
        ),
    )


def _optional(data: dict, key: str, parse: Callable[[Any], Any]) -> Any:
    value = data.get(key)
    return None if value is None else parse(value)


@dataclass
class Config:
    """Configuration of the API server and the invoker."""

    db: DBConfig = field(default_factory=DBConfig)
    socket_file: str = DEFAULT_SOCKET_FILE
    server: Server | None = None
    invoker: Invoker | None = None
    storage: Storage | None = None
    security: Security | None = None
    log_level: LogLevel = LogLevel.INFO

    def to_dict(self) -> dict:
        """Return the JSON-ready form."""
        result: dict[str, Any] = {
            "db": self.db.to_dict(),
            "socket_file": self.socket_file,
            "server": asdict(self.server) if self.server else None,
            "invoker": asdict(self.invoker) if self.invoker else None,
            "storage": self.storage.to_dict() if self.storage else None,
            "security": asdict(self.security) if self.security else None,
        }
        if self.log_level is not LogLevel.UNSET:
            result["log_level"] = self.log_level.to_text()
        return result

    @classmethod
    def from_dict(cls, data: Any) -> Config:
        """Build a configuration from its JSON form over the defaults."""
        data = _object(data, "config")
        config = cls()
        if "db" in data:
            config.db = DBConfig.from_dict(data["db"])
        config.socket_file = _field(data, "socket_file", str, config.socket_file)
        config.server = _optional(data, "server", _server)
        config.invoker = _optional(data, "invoker", _invoker)
        config.storage = _optional(data, "storage", Storage.from_dict)
        config.security = _optional(data, "security", _security)
        level = data.get("log_level")
        if level is not None:
            if not isinstance(level, str):
                raise ConfigError("field 'log_level' should be of type str")
            config.log_level = LogLevel.parse(level)
        return config


_WHITESPACE = " \t\r\n"

_TOKEN_RE = re.compile(
    r"""
    (?P<pipe>\|)
    | (?P<string>"(?:[^"\\\n]|\\.)*")
    | (?P<raw>`[^`]*`)
    | (?P<number>[+-]?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
    | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    | (?P<field>[.$][A-Za-z0-9_.$]*)
    """,
    re.VERBOSE,
)


def _json(value: Any) -> str:
    try:
        text = json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"json: {err}") from err
    for char, escaped in (
        ("<", "\\u003c"),
        (">", "\\u003e"),
        ("&", "\\u0026"),
        ("\u2028", "\\u2028"),
        ("\u2029", "\\u2029"),
    ):
        text = text.replace(char, escaped)
    return text


def _file(name: Any) -> str:
    if not isinstance(name, str):
        raise ConfigError("file: argument should be a string")
    try:
        return Path(name).read_text(encoding="utf-8").rstrip("\r\n")
    except OSError as err:
        raise ConfigError(f"file: {err}") from err


def _env(name: Any) -> str:
    if not isinstance(name, str):
        raise ConfigError("env: argument should be a string")
    return os.environ.get(name, "")


_FUNCTIONS: dict[str, Callable[[Any], Any]] = {"json": _json, "file": _file, "env": _env}


def _literal(kind: str, text: str) -> Any:
    if kind == "string":
        try:
            return json.loads(text)
        except ValueError as err:
            raise ConfigError(f"invalid string literal {text}") from err
    if kind == "raw":
        return text[1:-1]
    if kind == "number":
        return float(text) if any(c in text for c in ".eE") else int(text)
    if kind == "ident":
        if text in ("true", "false"):
            return text == "true"
        raise ConfigError(f"unexpected {text!r} as argument")
    if text == ".":
        return None
    raise ConfigError(f"can't evaluate {text}: no data")


_NO_VALUE = object()


def _run_command(tokens: list[tuple[str, str]], piped: Any) -> Any:
    kind, text = tokens[0]
    if kind == "ident" and text not in ("true", "false"):
        function = _FUNCTIONS.get(text)
        if function is None:
            raise ConfigError(f'function "{text}" not defined')
        args = [_literal(k, t) for k, t in tokens[1:]]
        if piped is not _NO_VALUE:
            args.append(piped)
        if len(args) != 1:
            raise ConfigError(f"wrong number of args for {text}: want 1 got {len(args)}")
        return function(args[0])
    if len(tokens) > 1 or piped is not _NO_VALUE:
        raise ConfigError(f"can't give argument to non-function {text}")
    return _literal(kind, text)


def _evaluate(tokens: list[tuple[str, str]]) -> Any:
    commands: list[list[tuple[str, str]]] = [[]]
    for token in tokens:
        if token[0] == "pipe":
            commands.append([])
        else:
            commands[-1].append(token)
    if any(not command for command in commands):
        raise ConfigError("missing value for command")
    value: Any = _NO_VALUE
    for command in commands:
        value = _run_command(command, value)
    return value


def _format(value: Any) -> str:
    if value is None:
        return "<no value>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _scan_action(text: str, pos: int) -> tuple[list[tuple[str, str]], int, bool, bool]:
    tokens: list[tuple[str, str]] = []
    is_comment = False
    if text.startswith("/*", pos):
        end = text.find("*/", pos + 2)
        if end < 0:
            raise ConfigError("unclosed comment")
        pos = end + 2
        is_comment = True
    while True:
        while pos < len(text) and text[pos] in _WHITESPACE:
            pos += 1
        if pos >= len(text):
            raise ConfigError("unclosed action")
        if text.startswith("}}", pos):
            return tokens, pos + 2, False, is_comment
        if text.startswith("-}}", pos) and text[pos - 1] in _WHITESPACE:
            return tokens, pos + 3, True, is_comment
        if is_comment:
            raise ConfigError("comment ends before closing delimiter")
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ConfigError(f"unexpected {text[pos]!r} in action")
        tokens.append((match.lastgroup or "", match.group()))
        pos = match.end()


def render_template(text: str) -> str:
    """Render a configuration template with json, file and env functions."""
    output: list[str] = []
    pos = 0
    while True:
        start = text.find("{{", pos)
        if start < 0:
            output.append(text[pos:])
            return "".join(output)
        chunk = text[pos:start]
        action = start + 2
        if (
            text.startswith("-", action)
            and action + 1 < len(text)
            and text[action + 1] in _WHITESPACE
        ):
            chunk = chunk.rstrip(_WHITESPACE)
            action += 1
        output.append(chunk)
        tokens, pos, trim_after, is_comment = _scan_action(text, action)
        if not is_comment:
            output.append(_format(_evaluate(tokens)))
        if trim_after:
            while pos < len(text) and text[pos] in _WHITESPACE:
                pos += 1


def load_from_file(path: str | os.PathLike[str]) -> Config:
    """Load a configuration from a templated JSON file."""
    source = Path(path).read_text(encoding="utf-8")
    rendered = render_template(source)
    try:
        data, _ = json.JSONDecoder().raw_decode(rendered.lstrip())
    except json.JSONDecodeError as err:
        raise ConfigError(f"invalid config: {err}") from err
    return Config.from_dict(data)