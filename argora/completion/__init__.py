"""
Argora shell completion.

- Dynamic: the hidden "__complete" command (context -> candidates -> shell format).
- Static: generate_script() renders bash, zsh and fish scripts of a command tree.
"""
from .candidates import *
from .commands import *
from .context import *
from .formatters import *
from .scripts import *
from .tree import *

__all__ = (
    candidates.__all__ +  # type: ignore[name-defined]
    commands.__all__ +  # type: ignore[name-defined]
    context.__all__ +  # type: ignore[name-defined]
    formatters.__all__ +  # type: ignore[name-defined]
    scripts.__all__ +  # type: ignore[name-defined]
    tree.__all__  # type: ignore[name-defined]
)
