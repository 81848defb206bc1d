"""Cockpit Graph configuration: sync options and their YAML loader."""

from cockpit_graph.config.settings import (
    KIND_ORDER,
    ContentConfig,
    ContentKind,
    L10nConfig,
    SyncConfig,
    TagFilter,
    config_from_mapping,
    load_config,
)

__all__ = [
    "KIND_ORDER",
    "ContentConfig",
    "ContentKind",
    "L10nConfig",
    "SyncConfig",
    "TagFilter",
    "config_from_mapping",
    "load_config",
]
