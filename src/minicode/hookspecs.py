"""Pluggy hook namespace and plugin-host hook specifications."""

from __future__ import annotations

from typing import Any

import pluggy

MINICODE_HOOK_NAMESPACE = "minicode"
LOADER_ENTRY_POINT_GROUP = "minicode.loaders"
hookspec = pluggy.HookspecMarker(MINICODE_HOOK_NAMESPACE)
hookimpl = pluggy.HookimplMarker(MINICODE_HOOK_NAMESPACE)


class MinicodeHookSpecs:
    """Hook contract for plugin-host extensions (loaders and model providers)."""

    @hookspec(firstresult=True)
    def resolve_plugin_factory(self, reference: str, cwd: Any) -> Any | None:
        """Resolve one normalized plugin reference to its factory.

        Relative references resolve against `cwd`.

        Return None when the reference is not handled by this loader. Raise
        `ImportError` when the reference is handled but cannot be imported.
        """

    @hookspec(firstresult=True)
    def provide_model(self, provider: str, model: str, settings: Any) -> Any | None:
        """Return a language model for `provider`/`model`, or None.

        `settings` is the active `minicode.config.Settings` instance.
        """
