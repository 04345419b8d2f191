"""Provider plugins published through package entry points."""

from __future__ import annotations

import logging
from importlib.metadata import entry_points
from typing import Any

logger = logging.getLogger(__name__)

PROVIDER_GROUP = "infraref.providers"


def discover_providers(group: str = PROVIDER_GROUP) -> dict[str, Any]:
    """Load every entry point in ``group``: {entry point name: provider class or instance}.

    A plugin that fails to import is logged and left out.
    """
    found: dict[str, Any] = {}
    for ep in entry_points(group=group):
        try:
            found[ep.name] = ep.load()
        except Exception as exc:
            logger.warning("Failed to load plugin %s from %s: %s", ep.name, group, exc)
            continue
        logger.debug("Loaded provider plugin %s", ep.name)
    return found
