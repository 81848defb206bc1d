"""Sync configuration for Cockpit Graph.

Settings are read from a YAML file whose keys mirror the source plugin's
options (``host``, ``accessToken``, ``typePrefix``, ``l10n``,
``uploadPath``, ``contents``) and parsed into frozen dataclasses.  The
``COCKPIT_HOST`` and ``COCKPIT_ACCESS_TOKEN`` environment variables take
precedence over the file so secrets can stay out of version control.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from cockpit_graph.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TYPE_PREFIX = "Cockpit"
DEFAULT_UPLOAD_PATH = "/storage/uploads"

ASSET_CATEGORIES: tuple[str, ...] = ("image", "video", "audio", "archive", "document", "code")

ENV_HOST = "COCKPIT_HOST"
ENV_ACCESS_TOKEN = "COCKPIT_ACCESS_TOKEN"

class ContentKind(Enum):
    """The three content families exposed by Cockpit."""

    COLLECTION = "collection"
    SINGLETON = "singleton"
    ASSET = "asset"

# Emission order of a pass.
KIND_ORDER: tuple[ContentKind, ...] = (
    ContentKind.COLLECTION,
    ContentKind.SINGLETON,
    ContentKind.ASSET,
)

@dataclass(frozen=True)
class TagFilter:
    """Asset tag allow/deny lists.  An allow-list shadows the deny-list."""

    whitelist: tuple[str, ...] = ()
    blacklist: tuple[str, ...] = ()

@dataclass(frozen=True)
class L10nConfig:
    """Languages to expand every entry into."""

    default: str = ""
    languages: tuple[str, ...] = ()

    @property
    def enabled(self) -> bool:
        return bool(self.languages)

    @property
    def default_language(self) -> str:
        """The configured default, falling back to the first language."""
        if self.default:
            return self.default
        return self.languages[0] if self.languages else ""

@dataclass(frozen=True)
class ContentConfig:
    """One entry of the ``contents`` list."""

    kind: ContentKind
    whitelist: tuple[str, ...] | None = None
    blacklist: tuple[str, ...] = ()
    filetypes: Mapping[str, bool] = field(
        default_factory=lambda: {category: True for category in ASSET_CATEGORIES}
    )
    tags: TagFilter = field(default_factory=TagFilter)

    def select(self, names: list[str]) -> list[str]:
        """Drop blacklisted names, preserving order."""
        return [name for name in names if name not in self.blacklist]

@dataclass(frozen=True)
class SyncConfig:
    """Everything a sync pass needs to know."""

    host: str = ""
    access_token: str = ""
    type_prefix: str = DEFAULT_TYPE_PREFIX
    l10n: L10nConfig = field(default_factory=L10nConfig)
    upload_path: str = DEFAULT_UPLOAD_PATH
    contents: tuple[ContentConfig, ...] = (ContentConfig(kind=ContentKind.COLLECTION),)

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` if the pass cannot start."""
        if not self.host:
            raise ConfigurationError("Missing required option 'host'")
        if not self.access_token:
            raise ConfigurationError("Missing required option 'accessToken'")
        if not self.type_prefix:
            raise ConfigurationError("Option 'typePrefix' must not be empty")
        if len(self.contents_of(ContentKind.ASSET)) > 1:
            raise ConfigurationError("At most one 'asset' entry may be listed in 'contents'")
        if self.l10n.default and self.l10n.languages and self.l10n.default not in self.l10n.languages:
            raise ConfigurationError(
                f"Default language {self.l10n.default!r} is not one of {list(self.l10n.languages)}"
            )

    def contents_of(self, kind: ContentKind) -> list[ContentConfig]:
        return [content for content in self.contents if content.kind is kind]

    @property
    def asset_content(self) -> ContentConfig | None:
        assets = self.contents_of(ContentKind.ASSET)
        return assets[0] if assets else None

def _string_tuple(value: Any, option: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list):
        raise ConfigurationError(f"Option '{option}' must be a list of strings")
    return tuple(str(v) for v in value)

def _parse_content(raw: Any, index: int) -> ContentConfig:
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"contents[{index}] must be a mapping")

    kind_name = str(raw.get("type", "")).lower()
    try:
        kind = ContentKind(kind_name)
    except ValueError as exc:
        raise ConfigurationError(
            f"contents[{index}].type must be one of "
            f"{[k.value for k in ContentKind]}, got {raw.get('type')!r}"
        ) from exc

    whitelist = raw.get("whitelist")
    kwargs: dict[str, Any] = {
        "kind": kind,
        "whitelist": None if whitelist is None else _string_tuple(whitelist, "whitelist"),
        "blacklist": _string_tuple(raw.get("blacklist"), "blacklist"),
    }

    filetypes = raw.get("filetypes")
    if filetypes is not None:
        if not isinstance(filetypes, Mapping):
            raise ConfigurationError(f"contents[{index}].filetypes must be a mapping")
        kwargs["filetypes"] = {str(k): bool(v) for k, v in filetypes.items()}

    tags = raw.get("tags")
    if tags is not None:
        if not isinstance(tags, Mapping):
            raise ConfigurationError(f"contents[{index}].tags must be a mapping")
        kwargs["tags"] = TagFilter(
            whitelist=_string_tuple(tags.get("whitelist"), "tags.whitelist"),
            blacklist=_string_tuple(tags.get("blacklist"), "tags.blacklist"),
        )

    return ContentConfig(**kwargs)

def config_from_mapping(
    raw: Mapping[str, Any],
    environ: Mapping[str, str] | None = None,
) -> SyncConfig:
    """Build a :class:`SyncConfig` from plugin-style options.

    Args:
        raw: Mapping using the plugin option names.
        environ: Environment used for overrides.  Defaults to
            :data:`os.environ`.
    """
    env = os.environ if environ is None else environ

    l10n_raw = raw.get("l10n") or {}
    if not isinstance(l10n_raw, Mapping):
        raise ConfigurationError("Option 'l10n' must be a mapping")
    l10n = L10nConfig(
        default=str(l10n_raw.get("default") or ""),
        languages=_string_tuple(l10n_raw.get("languages"), "l10n.languages"),
    )

    contents_raw = raw.get("contents")
    if contents_raw is None:
        contents: tuple[ContentConfig, ...] = (ContentConfig(kind=ContentKind.COLLECTION),)
    elif isinstance(contents_raw, list):
        contents = tuple(_parse_content(item, i) for i, item in enumerate(contents_raw))
    else:
        raise ConfigurationError("Option 'contents' must be a list")

    return SyncConfig(
        host=str(env.get(ENV_HOST) or raw.get("host") or ""),
        access_token=str(env.get(ENV_ACCESS_TOKEN) or raw.get("accessToken") or ""),
        type_prefix=str(raw.get("typePrefix") or DEFAULT_TYPE_PREFIX),
        l10n=l10n,
        upload_path=str(raw.get("uploadPath") or DEFAULT_UPLOAD_PATH),
        contents=contents,
    )

def load_config(path: Path, environ: Mapping[str, str] | None = None) -> SyncConfig:
    """Read a YAML configuration file and return the parsed settings.

    The result is not validated; :func:`run_sync` validates before any I/O.
    """
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Configuration root in {path} must be a mapping")

    logger.debug("Configuration loaded from %s", path)
    return config_from_mapping(raw, environ)
