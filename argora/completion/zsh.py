r"""
Argora zsh completion script.

render_zsh(tree, program) emits one function per command built on _arguments:

- options become specs such as '--output[Output file]:file:_files'
  (repeatable options are prefixed with '*', flags take no action).
- commands with subcommands hand the first word to _describe and every later
  word to the function of the chosen subcommand (nested dispatch).
- commands without subcommands list their positionals ('1:name:action',
  '2::optional:action', '*:rest:action').

The root function saves the words typed so far in __<fn>_words; lazy
subcommands and shell-command choices call back into
"<program> __complete --shell zsh -- <words>" through __<fn>_dynamic.
"""
import re
import shlex

from .tree import CompletionScript, identifier, walk

DYNAMIC = r'''
__@fn@_dynamic() {
    local -a candidates output
    local line directive=0
    output=("${(@f)$(@prog@ __complete --shell zsh -- "${__@fn@_words[@]}" 2>/dev/null)}")
    for line in "${output[@]}"; do
        if [[ "$line" == :* ]]; then
            directive="${line:1}"
        elif [[ -n "$line" ]]; then
            candidates+=("$line")
        fi
    done
    if (( directive & 16 )); then
        _files
    elif (( directive & 32 )); then
        _files -/
    elif (( ${#candidates} > 0 )); then
        _describe 'completions' candidates
    fi
}
'''


def _single(text):
    """Single-quote `text` for zsh."""
    return "'" + text.replace("'", "'\\''") + "'"


def _description(text):
    return re.sub(r"([\[\]\\:])", r"\\\1", text or "")


def _choice(text):
    return re.sub(r"([\s()\\:'\"$`])", r"\\\1", text)


def _action(fn, completion):
    if completion is None:
        return ""
    match completion.type:
        case "choices":
            return f"({" ".join(map(_choice, completion.choices))})"
        case "command":
            return f"__{fn}_dynamic"
        case "file" if completion.extensions:
            return f'_files -g "*.({"|".join(completion.extensions)})"'
        case "file":
            return "_files"
        case "directory":
            return "_files -/"
        case _:
            return " "


def _option_specs(fn, node):
    specs = []
    for option in node.options:
        description = f"[{_description(option.description)}]" if option.description else ""
        value = ""
        if option.takes_value:
            label = option.value_completion.type if option.value_completion else "value"
            value = f":{label}:{_action(fn, option.value_completion)}"
        repeat = "*" if option.repeatable else ""
        specs.append(_single(f"{repeat}--{option.cli_name}{description}{value}"))
        if option.alias:
            specs.append(_single(f"{repeat}-{option.alias}{description}{value}"))
    specs.append(_single("--help[Show help information]"))
    return specs


def _positional_specs(fn, node):
    specs = []
    for positional in node.positionals:
        label = _description(positional.description or positional.cli_name)
        action = _action(fn, positional.value_completion)
        if positional.variadic:
            specs.append(_single(f"*:{label}:{action}"))
        else:
            colon = ":" if positional.required else "::"
            specs.append(_single(f"{positional.position + 1}{colon}{label}:{action}"))
    return specs


def _function(fn, path, node):
    name = "_".join((f"_{fn}", *map(identifier, path)))
    lines = [f"{name}() {{"]
    if not path:
        lines.append(f"    local -a __{fn}_words")
        lines.append(f'    __{fn}_words=("${{(@)words[2,CURRENT]}}")')
    lines.append("    local context state state_descr line")
    lines.append("    typeset -A opt_args")
    lines.append("    local -a args")

    if node.children:
        lines.append("    local -a subcommands")
        lines.append("    subcommands=(")
        for child in node.children:
            entry = f"{_choice(child.name)}:{child.description or child.name}"
            lines.append(f"        {_single(entry)}")
        lines.append("    )")

    lines.append("    args=(")
    for spec in _option_specs(fn, node):
        lines.append(f"        {spec}")
    if node.children:
        lines.append("        '1:command:->command'")
        lines.append("        '*::arg:->args'")
    else:
        for spec in _positional_specs(fn, node):
            lines.append(f"        {spec}")
    lines.append("    )")
    lines.append('    _arguments -s -S "${args[@]}"')

    if node.children:
        lines.append('    case "$state" in')
        lines.append("        command)")
        lines.append("            _describe -t commands 'command' subcommands")
        lines.append("            ;;")
        lines.append("        args)")
        lines.append('            case "$words[1]" in')
        for child in node.children:
            target = f"__{fn}_dynamic" if child.lazy else f"{name}_{identifier(child.name)}"
            lines.append(f"                {shlex.quote(child.name)}) {target} ;;")
        lines.append("            esac")
        lines.append("            ;;")
        lines.append("    esac")
    lines.append("}")
    return lines


def instructions(program, /):
    return "\n".join((
        "# To enable completions, add the following to your ~/.zshrc (after compinit):",
        "",
        f'eval "$({program} completion zsh)"',
        "",
        "# Or save the script to a directory of your fpath:",
        f"{program} completion zsh > ~/.zsh/completions/_{program}",
        "",
        "# Make sure your fpath includes the completions directory:",
        "# fpath=(~/.zsh/completions $fpath)",
        "# autoload -Uz compinit && compinit",
        "",
        "# Then reload your shell or run:",
        "source ~/.zshrc",
    ))


def render_zsh(tree, program, /):
    """
    Render the zsh completion script of a CompletionNode tree.
    """
    fn = identifier(program)
    functions = []
    for path, node in walk(tree):
        functions.extend(_function(fn, path, node))
        functions.append("")

    script = "\n".join((
        f"#compdef {program}",
        "",
        f"# zsh completion for {program}",
        DYNAMIC.replace("@fn@", fn).replace("@prog@", shlex.quote(program)).rstrip(),
        "",
        *functions,
        f"compdef _{fn} {shlex.quote(program)}",
        "",
    ))
    return CompletionScript(script, "zsh", instructions(program))


__all__ = (
    "render_zsh",
)
