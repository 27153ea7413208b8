"""Builtin plugin loaders registered on the plugin host."""

from __future__ import annotations

import hashlib
import importlib
import re
import sys
from dataclasses import dataclass
from importlib import util as importlib_util
from pathlib import Path
from types import ModuleType
from typing import Any

from minicode.hookspecs import hookimpl
from minicode.plugins.normalize import FILE_URL_PREFIX, file_url_to_path

DEFAULT_FACTORY_ATTRIBUTE = "create_plugin"
MODULE_REFERENCE_PATTERN = re.compile(r"^[A-Za-z_][\w]*(?:\.[A-Za-z_][\w]*)*(?::[A-Za-z_][\w]*)?$")


@dataclass(frozen=True)
class ResolvedFactory:
    """A loader's answer: where the factory came from and what was found there."""

    source: str
    attribute: str
    factory: Any


def split_attribute(reference: str) -> tuple[str, str]:
    target, sep, attribute = reference.rpartition(":")
    if not sep or not attribute.isidentifier():
        return reference, DEFAULT_FACTORY_ATTRIBUTE
    return target, attribute


def looks_like_path(reference: str) -> bool:
    return reference.startswith((FILE_URL_PREFIX, ".", "/", "~")) or reference.endswith(".py")


class ModulePluginLoader:
    """Loads `package.module[:attr]` references with importlib."""

    @hookimpl
    def resolve_plugin_factory(self, reference: str) -> ResolvedFactory | None:
        if looks_like_path(reference) or MODULE_REFERENCE_PATTERN.fullmatch(reference) is None:
            return None
        module_name, attribute = split_attribute(reference)
        module = importlib.import_module(module_name)
        return ResolvedFactory(source=module_name, attribute=attribute, factory=getattr(module, attribute, None))


class PathPluginLoader:
    """Loads plugin files from filesystem paths or `file://` URLs."""

    @hookimpl
    def resolve_plugin_factory(self, reference: str, cwd: Path) -> ResolvedFactory | None:
        if not looks_like_path(reference):
            return None
        if reference.startswith(FILE_URL_PREFIX):
            plugin_file, attribute = file_url_to_path(reference), DEFAULT_FACTORY_ATTRIBUTE
        else:
            raw_path, attribute = split_attribute(reference)
            plugin_file = Path(raw_path).expanduser()
            if not plugin_file.is_absolute():
                plugin_file = Path(cwd) / plugin_file
        plugin_file = plugin_file.resolve()
        if not plugin_file.is_file():
            raise ImportError(f"plugin file not found: {plugin_file}")

        module = _load_module_from_file(module_name=_module_name_for_file(plugin_file), plugin_file=plugin_file)
        return ResolvedFactory(source=str(plugin_file), attribute=attribute, factory=getattr(module, attribute, None))


def _module_name_for_file(plugin_file: Path) -> str:
    digest = hashlib.sha256(str(plugin_file).encode("utf-8")).hexdigest()[:12]
    normalized_name = "".join(ch if ch.isalnum() else "_" for ch in plugin_file.stem.lower())
    return f"minicode_plugin_{normalized_name}_{digest}"


def _load_module_from_file(*, module_name: str, plugin_file: Path) -> ModuleType:
    spec = importlib_util.spec_from_file_location(module_name, plugin_file)
    if spec is None or spec.loader is None:
        raise ImportError(f"failed to build module spec for {plugin_file}")

    module = importlib_util.module_from_spec(spec)
    sys.modules.pop(module_name, None)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module_name, None)
        raise
    return module
