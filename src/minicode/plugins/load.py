"""Plugin loading pipeline: normalize, import, factory, validate, setup."""

from __future__ import annotations

import inspect
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from minicode.errors import PluginLoadError
from minicode.plugins.host import PluginHost
from minicode.plugins.normalize import normalize_plugin_reference
from minicode.plugins.schema import PluginContribution, PluginManifest
from minicode.session.repository import format_validation_error


@dataclass(frozen=True)
class PluginSetupContext:
    """Handed to `setup(ctx)`; `logger` is bound to the plugin reference."""

    reference: str
    cwd: Path
    global_config_dir: Path
    sdk_version: str
    logger: Any
    config: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LoadedPlugin:
    reference: str
    normalized_reference: str
    manifest: PluginManifest
    contribution: PluginContribution


async def load_plugins(
    plugins: Mapping[str, Mapping[str, Any] | None],
    *,
    host: PluginHost,
    cwd: Path,
    global_config_dir: Path,
    sdk_version: str,
) -> list[LoadedPlugin]:
    """Load every configured plugin in declaration order.

    Any failure aborts the whole load with a stage-tagged `PluginLoadError`.
    """

    seen_references: set[str] = set()
    seen_ids: dict[str, str] = {}
    loaded: list[LoadedPlugin] = []

    for reference, plugin_config in plugins.items():
        try:
            normalized = normalize_plugin_reference(reference)
        except ValueError as exc:
            raise PluginLoadError(reference, "normalize", str(exc)) from exc
        if normalized in seen_references:
            raise PluginLoadError(reference, "normalize", f"duplicate normalized reference '{normalized}'")
        seen_references.add(normalized)

        factory = _resolve_factory(host, normalized, cwd)
        config = dict(plugin_config or {})
        try:
            result = factory(config)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            raise PluginLoadError(normalized, "factory", str(exc) or "factory execution failed") from exc

        try:
            manifest = PluginManifest.model_validate(result)
        except ValidationError as exc:
            raise PluginLoadError(normalized, "validate", f"invalid plugin contract ({format_validation_error(exc)})") from exc

        if manifest.id in seen_ids:
            raise PluginLoadError(
                normalized,
                "compose",
                f"duplicate plugin id '{manifest.id}' (already loaded from {seen_ids[manifest.id]})",
            )
        seen_ids[manifest.id] = normalized

        context = PluginSetupContext(
            reference=normalized,
            cwd=cwd,
            global_config_dir=global_config_dir,
            sdk_version=sdk_version,
            logger=logger.bind(plugin=normalized),
            config=config,
        )
        contribution = await _run_setup(manifest, context)
        loaded.append(
            LoadedPlugin(
                reference=reference,
                normalized_reference=normalized,
                manifest=manifest,
                contribution=contribution,
            )
        )
        logger.info(
            "plugin.load.done reference={} id={} version={} tools={} actions={}",
            normalized,
            manifest.id,
            manifest.version or "-",
            len(contribution.sdk.tools),
            len(contribution.cli.actions),
        )

    return loaded


def _resolve_factory(host: PluginHost, reference: str, cwd: Path) -> Any:
    try:
        resolved = host.resolve_factory(reference, cwd=cwd)
    except Exception as exc:
        raise PluginLoadError(reference, "import", str(exc) or type(exc).__name__) from exc
    if resolved is None:
        raise PluginLoadError(reference, "import", "no loader accepts this reference")
    if not callable(resolved.factory):
        raise PluginLoadError(reference, "factory", f"`{resolved.attribute}` in {resolved.source} must be a callable")
    return resolved.factory


async def _run_setup(manifest: PluginManifest, context: PluginSetupContext) -> PluginContribution:
    if manifest.setup is None:
        return PluginContribution()
    try:
        result = manifest.setup(context)
        if inspect.isawaitable(result):
            result = await result
    except Exception as exc:
        raise PluginLoadError(context.reference, "setup", str(exc) or "setup execution failed") from exc

    try:
        return PluginContribution.model_validate(result if result is not None else {})
    except ValidationError as exc:
        raise PluginLoadError(
            context.reference, "validate", f"invalid contribution contract ({format_validation_error(exc)})"
        ) from exc
