"""Builtin language models."""

from minicode.models.echo import ECHO_PROVIDER, EchoModel, EchoProvider

__all__ = ["ECHO_PROVIDER", "EchoModel", "EchoProvider"]
