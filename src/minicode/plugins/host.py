"""Pluggy-backed plugin host: reference loaders and model providers."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pluggy
from loguru import logger

from minicode.hookspecs import LOADER_ENTRY_POINT_GROUP, MINICODE_HOOK_NAMESPACE, MinicodeHookSpecs
from minicode.models.echo import EchoProvider
from minicode.plugins.loaders import ModulePluginLoader, PathPluginLoader, ResolvedFactory


class PluginHost:
    """Owns the pluggy manager that resolves plugin references and models.

    Later registrations take precedence, so entry-point loaders run before the
    builtin path and module loaders.
    """

    def __init__(self, *, load_entrypoints: bool = True) -> None:
        self._plugin_manager = pluggy.PluginManager(MINICODE_HOOK_NAMESPACE)
        self._plugin_manager.add_hookspecs(MinicodeHookSpecs)
        self._plugin_manager.register(EchoProvider(), name="provider:echo")
        self._plugin_manager.register(ModulePluginLoader(), name="loader:module")
        self._plugin_manager.register(PathPluginLoader(), name="loader:path")
        if load_entrypoints:
            loaded = self._plugin_manager.load_setuptools_entrypoints(LOADER_ENTRY_POINT_GROUP)
            if loaded:
                logger.info("plugin.host.entrypoints loaded={}", loaded)

    def register(self, plugin: object, *, name: str | None = None) -> None:
        self._plugin_manager.register(plugin, name=name)

    def resolve_factory(self, reference: str, *, cwd: Path) -> ResolvedFactory | None:
        return self._plugin_manager.hook.resolve_plugin_factory(reference=reference, cwd=cwd)

    def provide_model(self, provider: str, model: str, settings: Any) -> Any | None:
        return self._plugin_manager.hook.provide_model(provider=provider, model=model, settings=settings)

    def hook_report(self) -> dict[str, list[str]]:
        """Return hook implementation summary for diagnostics."""

        report: dict[str, list[str]] = {}
        for hook_name in ("resolve_plugin_factory", "provide_model"):
            hook_caller = getattr(self._plugin_manager.hook, hook_name)
            report[hook_name] = [impl.plugin_name for impl in reversed(hook_caller.get_hookimpls())]
        return report
