"""Minicode - an agentic coding-assistant runtime."""

__version__ = "0.1.0"

from minicode.sdk import Minicode, MinicodeSession, RuntimeOverride, create_minicode  # noqa: E402

__all__ = ["Minicode", "MinicodeSession", "RuntimeOverride", "__version__", "create_minicode"]
