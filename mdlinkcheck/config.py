"""Configuration loading for mdlinkcheck (.linkcheck.yml)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Pattern, Sequence

import yaml

from . import __version__

CONFIG_FILENAME = ".linkcheck.yml"

DEFAULT_CACHE_TIMEOUT = 12 * 60 * 60
DEFAULT_USER_AGENT = f"mdlinkcheck-{__version__}"


class ConfigError(RuntimeError):
    """Raised when the configuration cannot be parsed or is invalid."""


class WarningPolicy:
    """How warnings and errors are surfaced in the final report."""

    WARN = "warn"
    ERROR = "error"
    IGNORE = "ignore"

    CHOICES = (WARN, ERROR, IGNORE)


_HEADER_NAME = re.compile(r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")


@dataclass(frozen=True)
class HttpHeader:
    """A ``Name: Value`` header whose value may reference ``$ENV_VARS``."""

    name: str
    value: str

    @classmethod
    def parse(cls, raw: str) -> "HttpHeader":
        if ":" not in raw:
            raise ConfigError(f'Header "{raw}" must look like "Name: Value"')
        name, value = raw.split(":", 1)
        name = name.strip()
        if not _HEADER_NAME.match(name):
            raise ConfigError(f'"{name}" is not a valid HTTP header name')
        return cls(name=name, value=value.strip())

    def __str__(self) -> str:
        return f"{self.name}: {self.value}"


@dataclass
class HeaderRule:
    """Headers sent to every URL matching ``pattern``."""

    pattern: Pattern[str]
    headers: List[HttpHeader] = field(default_factory=list)

    def matches(self, url: str) -> bool:
        return self.pattern.search(url) is not None


@dataclass
class LinkCheckConfig:
    """Represents the settings accepted in .linkcheck.yml."""

    follow_web_links: bool = False
    traverse_parent_directories: bool = False
    exclude: List[Pattern[str]] = field(default_factory=list)
    user_agent: str = DEFAULT_USER_AGENT
    cache_timeout: int = DEFAULT_CACHE_TIMEOUT
    warning_policy: str = WarningPolicy.WARN
    http_headers: List[HeaderRule] = field(default_factory=list)
    request_timeout: float = 30.0
    max_retries: int = 2
    retry_backoff: float = 0.5
    incomplete_link_severity: str = "warning"
    jobs: Optional[int] = None

    def should_skip(self, href: str) -> bool:
        return any(pattern.search(href) for pattern in self.exclude)

    def headers_for(self, url: str) -> List[HttpHeader]:
        headers: List[HttpHeader] = []
        for rule in self.http_headers:
            if rule.matches(url):
                headers.extend(rule.headers)
        return headers


def load_config(config_path: Path) -> LinkCheckConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    if not config_file.exists():
        return LinkCheckConfig()
    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")
    return config_from_mapping(data)


def config_from_mapping(data: Mapping[str, Any]) -> LinkCheckConfig:
    """Build a validated config from kebab-case (or snake_case) keys."""
    values = {str(key).replace("_", "-"): value for key, value in data.items()}
    config = LinkCheckConfig()

    follow = _flag(values, "follow-web-links")
    if follow is not None:
        config.follow_web_links = follow
    traverse = _flag(values, "traverse-parent-directories")
    if traverse is not None:
        config.traverse_parent_directories = traverse

    patterns = _as_str_list(values.get("exclude"))
    if patterns is None:
        raise ConfigError("exclude must be a regex or a list of regexes")
    config.exclude = [_compile(pattern) for pattern in patterns]

    user_agent = _as_str(values.get("user-agent"))
    if user_agent:
        config.user_agent = user_agent

    if "cache-timeout" in values:
        timeout = _as_int(values.get("cache-timeout"))
        if timeout is None or timeout < 0:
            raise ConfigError("cache-timeout must be a non-negative number of seconds")
        config.cache_timeout = timeout

    policy = _as_str(values.get("warning-policy"))
    if policy is not None:
        policy = policy.lower()
        if policy not in WarningPolicy.CHOICES:
            raise ConfigError(
                f'warning-policy must be one of {", ".join(WarningPolicy.CHOICES)}, got "{policy}"'
            )
        config.warning_policy = policy

    config.http_headers = _parse_header_rules(values.get("http-headers"))

    if "request-timeout" in values:
        request_timeout = _as_float(values.get("request-timeout"))
        if request_timeout is None or request_timeout <= 0:
            raise ConfigError("request-timeout must be a positive number of seconds")
        config.request_timeout = request_timeout

    if "max-retries" in values:
        retries = _as_int(values.get("max-retries"))
        if retries is None or retries < 0:
            raise ConfigError("max-retries must be a non-negative integer")
        config.max_retries = retries

    if "retry-backoff" in values:
        backoff = _as_float(values.get("retry-backoff"))
        if backoff is None or backoff < 0:
            raise ConfigError("retry-backoff must be a non-negative number of seconds")
        config.retry_backoff = backoff

    severity = _as_str(values.get("incomplete-link-severity"))
    if severity is not None:
        severity = severity.lower()
        if severity not in {"warning", "error"}:
            raise ConfigError('incomplete-link-severity must be "warning" or "error"')
        config.incomplete_link_severity = severity

    if values.get("jobs") is not None:
        jobs = _as_int(values.get("jobs"))
        if jobs is None or jobs < 1:
            raise ConfigError("jobs must be a positive integer")
        config.jobs = jobs

    return config


def _parse_header_rules(value: Any) -> List[HeaderRule]:
    if value is None:
        return []
    if not isinstance(value, dict):
        raise ConfigError("http-headers must map a URL regex to a list of headers")
    rules: List[HeaderRule] = []
    for pattern, raw_headers in value.items():
        raw_list = _as_str_list(raw_headers)
        if raw_list is None:
            raise ConfigError(f'http-headers for "{pattern}" must be a list of "Name: Value" strings')
        headers = [HttpHeader.parse(raw) for raw in raw_list]
        rules.append(HeaderRule(pattern=_compile(str(pattern)), headers=headers))
    return rules


def _compile(pattern: str) -> Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigError(f'Invalid regex "{pattern}": {exc}') from exc


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _flag(values: Mapping[str, Any], key: str) -> Optional[bool]:
    if values.get(key) is None:
        return None
    flag = _as_bool(values[key])
    if flag is None:
        raise ConfigError(f"{key} must be true or false, got {values[key]!r}")
    return flag


def _as_str_list(value: Any) -> Optional[List[str]]:
    """Return a list of strings, or ``None`` when ``value`` is not one."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence) and all(isinstance(item, str) for item in value):
        return list(value)
    return None


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "HeaderRule",
    "HttpHeader",
    "LinkCheckConfig",
    "WarningPolicy",
    "config_from_mapping",
    "load_config",
]
