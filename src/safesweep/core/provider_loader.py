"""Provider discovery and loading."""

from __future__ import annotations

import importlib
import importlib.util
import inspect
import logging
import pkgutil
from pathlib import Path
from types import ModuleType
from typing import Iterable

from safesweep.core.registry import ProviderRegistry
from safesweep.models.provider import CacheDirProvider, ScanProvider
from safesweep.utils import xdg_data_home

log = logging.getLogger(__name__)

_ABSTRACT_BASES = {ScanProvider, CacheDirProvider}

_SYSTEM_PROVIDER_DIR = Path("/usr/share/safesweep/providers")


def user_provider_dir() -> Path:
    return xdg_data_home() / "safesweep" / "providers"


def _find_providers_in_module(module: ModuleType) -> list[type[ScanProvider]]:
    """Find all concrete ScanProvider subclasses defined in a module."""
    found: list[type[ScanProvider]] = []
    for _, obj in inspect.getmembers(module, inspect.isclass):
        if (
            issubclass(obj, ScanProvider)
            and obj not in _ABSTRACT_BASES
            and not inspect.isabstract(obj)
            and obj.__module__ == module.__name__
        ):
            found.append(obj)
    return found


def _load_builtin_providers() -> list[type[ScanProvider]]:
    """Load providers from the safesweep.providers package."""
    import safesweep.providers as providers_pkg

    found: list[type[ScanProvider]] = []
    for _finder, modname, _ispkg in pkgutil.iter_modules(providers_pkg.__path__):
        try:
            module = importlib.import_module(f"safesweep.providers.{modname}")
            found.extend(_find_providers_in_module(module))
        except Exception:
            log.exception("Failed to load built-in provider module: %s", modname)
    return found


def _load_providers_from_directory(directory: Path) -> list[type[ScanProvider]]:
    """Load providers from ``.py`` files and packages in an external directory."""
    if not directory.is_dir():
        return []

    found: list[type[ScanProvider]] = []
    for path in sorted(directory.iterdir()):
        if path.is_dir() and (path / "__init__.py").exists():
            module_file = path / "provider.py"
            if not module_file.exists():
                module_file = path / "__init__.py"
        elif path.suffix == ".py" and path.name != "__init__.py":
            module_file = path
        else:
            continue

        try:
            spec = importlib.util.spec_from_file_location(f"safesweep_ext_{path.stem}", module_file)
            if spec is None or spec.loader is None:
                continue
            module = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(module)
            found.extend(_find_providers_in_module(module))
        except Exception:
            log.exception("Failed to load provider from: %s", module_file)
    return found


def load_providers(
    registry: ProviderRegistry,
    extra_dirs: Iterable[Path] = (),
    *,
    include_builtin: bool = True,
    include_system: bool = True,
) -> None:
    """Discover and register all available providers.

    Searches in order: built-in, system-wide, user-local, then *extra_dirs*
    (usually the ``providers.paths`` setting).
    """
    classes: list[type[ScanProvider]] = []

    if include_builtin:
        classes.extend(_load_builtin_providers())
    if include_system:
        classes.extend(_load_providers_from_directory(_SYSTEM_PROVIDER_DIR))
        classes.extend(_load_providers_from_directory(user_provider_dir()))
    for directory in extra_dirs:
        classes.extend(_load_providers_from_directory(Path(directory)))

    for cls in classes:
        try:
            registry.register(cls())
        except Exception:
            log.exception("Failed to instantiate provider: %s", cls.__name__)

    log.info("Loaded %d providers", len(registry))
