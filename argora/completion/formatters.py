"""
Argora completion output formats.

Every format prints one candidate per line and ends with ":<directive>".

- bash: values only, filtered by the current word when FILTER_PREFIX is set,
  each prefixed with the inline "--name=" being completed.
- zsh: "value:description" pairs for _describe, ":" escaped as "\\:".
- fish: "value<TAB>description" pairs.
- generic (no shell): "value<TAB>description" pairs.
"""
from .candidates import Directive

SHELLS = ("bash", "zsh", "fish")


def _bash(result, current_word, inline_prefix):
    candidates = result.candidates
    if result.directive & Directive.FILTER_PREFIX and current_word:
        candidates = [candidate for candidate in candidates if candidate.value.startswith(current_word)]
    return [f"{inline_prefix}{candidate.value}" for candidate in candidates]


def _zsh(result):
    lines = []
    for candidate in result.candidates:
        value = candidate.value.replace(":", "\\:")
        if candidate.description:
            lines.append(f"{value}:{candidate.description.replace(":", "\\:")}")
        else:
            lines.append(value)
    return lines


def _tabbed(result):
    return [
        f"{candidate.value}\t{candidate.description}" if candidate.description else candidate.value
        for candidate in result.candidates
    ]


def format_output(result, /):
    """
    Shell-agnostic rendering of a CandidateResult.
    """
    return "\n".join((*_tabbed(result), f":{int(result.directive)}"))


def format_for_shell(result, shell, /, current_word="", inline_prefix=""):
    """
    Render a CandidateResult for `shell` ("bash", "zsh" or "fish").

    current_word is the word being completed without its inline prefix.
    """
    match shell:
        case "bash":
            lines = _bash(result, current_word, inline_prefix)
        case "zsh":
            lines = _zsh(result)
        case "fish":
            lines = _tabbed(result)
        case _:
            raise ValueError(f"unsupported shell {shell!r}, expected one of {", ".join(SHELLS)}")
    return "\n".join((*lines, f":{int(result.directive)}"))


__all__ = (
    "SHELLS",
    "format_output",
    "format_for_shell",
)
