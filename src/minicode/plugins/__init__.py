"""Plugin host, loading pipeline and contribution composition."""

from minicode.plugins.actions import ActionContext, builtin_cli_actions, run_action
from minicode.plugins.compose import ComposedCliAction, ComposedContributions, compose_contributions
from minicode.plugins.host import PluginHost
from minicode.plugins.load import LoadedPlugin, PluginSetupContext, load_plugins
from minicode.plugins.normalize import normalize_plugin_reference
from minicode.plugins.schema import CliAction, PluginContribution, PluginManifest

__all__ = [
    "ActionContext",
    "CliAction",
    "ComposedCliAction",
    "ComposedContributions",
    "LoadedPlugin",
    "PluginContribution",
    "PluginHost",
    "PluginManifest",
    "PluginSetupContext",
    "builtin_cli_actions",
    "compose_contributions",
    "load_plugins",
    "normalize_plugin_reference",
    "run_action",
]
