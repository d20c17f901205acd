"""
Argora completion scripts: shell selection and generation.
"""
import os

from ..utils import Unset, coalesce
from .bash import render_bash
from .fish import render_fish
from .tree import build_tree
from .zsh import render_zsh

RENDERERS = {
    "bash": render_bash,
    "zsh": render_zsh,
    "fish": render_fish,
}


def supported_shells():
    return list(RENDERERS)


def detect_shell(environ=None, /):
    """
    Shell named by $SHELL ("/usr/bin/zsh" -> "zsh"), or None when unknown.
    """
    environ = os.environ if environ is None else environ
    name = os.path.basename(environ.get("SHELL", ""))
    for shell in RENDERERS:
        if shell in name:
            return shell
    return None


def generate_script(command, shell, /, program=Unset, global_args=None):
    """
    CompletionScript of `command` for `shell`, completing `program` (command.name by default).
    """
    if shell not in RENDERERS:
        raise ValueError(f"unsupported shell {shell!r}, expected one of {", ".join(RENDERERS)}")
    program = coalesce(program, command.name)
    return RENDERERS[shell](build_tree(command, program, global_args=global_args), program)


__all__ = (
    "supported_shells",
    "detect_shell",
    "generate_script",
)
