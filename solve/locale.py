"""Localization of messages, backed by settings."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Protocol

SUPPORTED_LOCALES = ("en", "ru")

_LOCALIZATION_PREFIX = "localization."

_TAG_RE = re.compile(r"^(?:\*|[A-Za-z]{1,8}(?:-[A-Za-z0-9]{1,8})*)$")
_WEIGHT_RE = re.compile(r"^[qQ]\s*=\s*(0(?:\.\d{0,3})?|1(?:\.0{0,3})?)$")


class _Setting(Protocol):
    key: str
    value: str


class _SettingStore(Protocol):
    def get_by_key(self, key: str) -> _Setting: ...

    def all(self) -> Iterable[_Setting]: ...


def _sprint(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _replace_fields(text: str, fields: dict[str, Any]) -> str:
    for name, value in fields.items():
        text = text.replace("{" + name + "}", _sprint(value))
    return text


def localization_key(name: str, text: str) -> str:
    """Return the setting key under which a translation of text is stored."""
    parts = [_LOCALIZATION_PREFIX, name, "."]
    split = False
    for char in text:
        if char.isalpha():
            if split:
                parts.append("_")
                split = False
            parts.append(char.lower())
        else:
            split = True
    return "".join(parts)


@dataclass(frozen=True)
class StubLocale:
    """Locale that leaves messages untranslated."""

    name: str = ""

    def localize(self, text: str, **kwargs: Any) -> str:
        """Return text with {field} placeholders replaced."""
        return _replace_fields(text, kwargs)

    def get_localizations(self) -> dict[str, str]:
        """Return no localizations."""
        return {}


@dataclass
class SettingLocale:
    """Locale whose translations are kept in settings."""

    name: str
    settings: _SettingStore

    def localize(self, text: str, **kwargs: Any) -> str:
        """Translate text if a translation exists, then fill placeholders."""
        try:
            text = self.settings.get_by_key(localization_key(self.name, text)).value
        except Exception:
            pass
        return _replace_fields(text, kwargs)

    def get_localizations(self) -> dict[str, str]:
        """Return translations of this locale keyed without the common prefix."""
        prefix = f"{_LOCALIZATION_PREFIX}{self.name}."
        return {
            setting.key[len(prefix):]: setting.value
            for setting in self.settings.all()
            if setting.key.startswith(prefix)
        }


def _parse_accept_language(header: str) -> list[str]:
    entries: list[tuple[float, str]] = []
    for raw in header.split(","):
        entry = raw.strip()
        if not entry:
            continue
        tag, _, params = entry.partition(";")
        tag = tag.strip()
        if not _TAG_RE.match(tag):
            raise ValueError(f"invalid language tag {tag!r}")
        weight = 1.0
        if params:
            match = _WEIGHT_RE.match(params.strip())
            if match is None:
                raise ValueError(f"invalid weight {params!r}")
            weight = float(match.group(1))
        if weight > 0:
            entries.append((weight, tag))
    entries.sort(key=lambda item: -item[0])
    return [tag for _, tag in entries]


def select_locale(
    accept_language: str | None, settings: _SettingStore
) -> StubLocale | SettingLocale:
    """Pick the preferred supported locale from an Accept-Language header."""
    try:
        tags = _parse_accept_language(accept_language or "")
    except ValueError:
        return StubLocale()
    for tag in tags:
        name = tag.lower()
        if name in SUPPORTED_LOCALES:
            return SettingLocale(name, settings)
    return StubLocale()