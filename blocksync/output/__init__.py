# BlockSync Output Module
# Rich console output

from blocksync.output.console import Console, create_console

__all__ = [
    "Console",
    "create_console",
]
