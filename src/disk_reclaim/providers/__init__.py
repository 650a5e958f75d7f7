"""Content providers with auto-discovery."""

from __future__ import annotations

import importlib
import logging
import pkgutil
import types
from typing import TYPE_CHECKING

from .base import Provider

if TYPE_CHECKING:
    from ..config import ReclaimConfig
    from ..trash import TrashService

logger = logging.getLogger(__name__)

_NON_PROVIDER_MODULES = frozenset({"base"})


def discover_providers(config: ReclaimConfig, trash: TrashService | None = None) -> list[Provider]:
    """Discover and instantiate the providers of every enabled category.

    Scans the providers package for classes with MODULE_ENABLED = True and
    keeps those whose category is listed in ``config.enabled_categories``.
    Providers declaring ``USES_TRASH`` receive ``trash`` when one is given.
    """
    providers: list[Provider] = []
    package = importlib.import_module(__package__ or "disk_reclaim.providers")

    for _finder, module_name, _is_pkg in pkgutil.iter_modules(package.__path__):
        if module_name in _NON_PROVIDER_MODULES:
            continue
        try:
            mod = importlib.import_module(f"{package.__name__}.{module_name}")
        except ImportError:
            logger.warning("Failed to import provider module: %s", module_name)
            continue

        providers.extend(_find_provider_classes(mod, config, trash))
    return sorted(providers, key=lambda provider: provider.id)


def _find_provider_classes(
    mod: types.ModuleType,
    config: ReclaimConfig,
    trash: TrashService | None = None,
) -> list[Provider]:
    """Instantiate all provider classes defined in the given Python module."""
    found: list[Provider] = []
    enabled = {category_id.casefold() for category_id in config.enabled_categories}

    for attr_name in dir(mod):
        attr = getattr(mod, attr_name)
        if not (
            isinstance(attr, type)
            and getattr(attr, "MODULE_ENABLED", False) is True
            and attr.__module__ == mod.__name__
        ):
            continue

        if attr.category.id.casefold() not in enabled:
            logger.debug("Provider category disabled by config: %s", attr.id)
            continue

        try:
            if trash is not None and getattr(attr, "USES_TRASH", False):
                instance = attr(config, trash=trash)
            else:
                instance = attr(config)
        except (TypeError, ValueError):
            logger.warning("Failed to instantiate provider: %s", attr_name, exc_info=True)
            continue

        found.append(instance)
        logger.debug("Loaded provider: %s", instance.id)

    return found
