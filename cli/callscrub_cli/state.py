"""Process-wide CLI state shared by the app callback and the commands."""

from __future__ import annotations


class State:
    """Global state container for CLI context."""

    config: dict
    verbose: bool = False


state = State()
