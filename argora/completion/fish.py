r"""
Argora fish completion script.

render_fish(tree, program) emits:

- __<fn>_child / __<fn>_takes_value / __<fn>_lazy tables (switch statements)
- __<fn>_state: walks the command line like the argv parser and prints the
  command reached, the positional count and whether "--" was crossed
- conditions: __<fn>_at NODE, __<fn>_positional NODE INDEX [variadic],
  __<fn>_in_lazy
- one "complete" line per subcommand, option and positional of every command

Lazy subcommands and shell-command choices call back into
"<program> __complete --shell fish -- <words>" through __<fn>_dynamic.
"""
import re
import shlex

from .tree import CompletionScript, identifier, walk

HELPERS = r'''
function __@fn@_state
    set -l tokens (commandline -opc)
    set -e tokens[1]
    set -l node root
    set -l count 0
    set -l after_dd 0
    set -l skip 0
    set -l child
    for token in $tokens
        if test $skip -eq 1
            set skip 0
            if not string match -q -- '-*' $token
                continue
            end
        end
        if test $after_dd -eq 1
            set count (math $count + 1)
        else if test "$token" = "--"
            set after_dd 1
        else if string match -q -- '-?*' $token
            if not string match -q -- '*=*' $token; and __@fn@_takes_value $node $token
                set skip 1
            end
        else if test $count -eq 0; and set child (__@fn@_child $node $token)
            set node $child
            set count 0
        else
            set count (math $count + 1)
        end
    end
    echo $node $count $after_dd
end

function __@fn@_at
    set -l state (string split ' ' -- (__@fn@_state))
    test "$state[1]" = "$argv[1]"; and test "$state[3]" = 0
end

function __@fn@_positional
    set -l state (string split ' ' -- (__@fn@_state))
    test "$state[1]" = "$argv[1]"; or return 1
    test "$state[2]" -eq "$argv[2]"; and return 0
    test (count $argv) -ge 3; and test "$state[2]" -ge "$argv[2]"
end

function __@fn@_in_lazy
    set -l state (string split ' ' -- (__@fn@_state))
    __@fn@_lazy $state[1]
end

function __@fn@_dynamic
    set -l tokens (commandline -opc)
    set -e tokens[1]
    set -l current (commandline -ct)
    set -a tokens "$current"
    set -l directive 0
    for line in (@prog@ __complete --shell fish -- $tokens 2>/dev/null)
        if string match -q -- ':*' $line
            set directive (string sub -s 2 -- $line)
        else if test -n "$line"
            echo $line
        end
    end
    if test (math "bitand($directive, 16)") -ne 0
        __fish_complete_path "$current"
    else if test (math "bitand($directive, 32)") -ne 0
        __fish_complete_directories "$current"
    end
end
'''


def _quote(text):
    """Single-quote `text` for fish."""
    return "'" + text.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _word(text):
    return re.sub(r"([\s\\'\"()$*?{}\[\];|&<>#~])", r"\\\1", text)


def _arguments(fn, completion, /, positional=False):
    """
    Flags of a `complete` line completing a value (options require one).
    """
    exclusive = "-f" if positional else "-x"
    if completion is None:
        return "-r"
    match completion.type:
        case "choices":
            return f"{exclusive} -a {_quote(" ".join(map(_word, completion.choices)))}"
        case "command":
            return f"{exclusive} -a '(__{fn}_dynamic)'"
        case "file" if completion.extensions:
            suffixes = " ".join(shlex.quote(f".{extension}") for extension in completion.extensions)
            return f"{exclusive} -a {_quote(f"(__fish_complete_suffix {suffixes})")}"
        case "file":
            return "-F" if positional else "-r -F"
        case "directory":
            return f"{exclusive} -a '(__fish_complete_directories)'"
        case _:
            return exclusive


def _described(line, description):
    return f"{line} -d {_quote(description)}" if description else line


def _tables(fn, idents, tree):
    children = []
    values = []
    lazy = []
    for path, node in walk(tree):
        ident = idents[path]
        for child in node.children:
            child_ident = f"{ident}_{identifier(child.name)}"
            children += [f"        case {_quote(f"{ident}:{child.name}")}", f"            echo {child_ident}"]
            if child.lazy:
                lazy.append(child_ident)
        for option in node.options:
            if option.takes_value:
                values.append(_quote(f"{ident}:--{option.cli_name}"))
                if option.alias:
                    values.append(_quote(f"{ident}:-{option.alias}"))

    lines = [f"function __{fn}_child", '    switch "$argv[1]:$argv[2]"', *children]
    lines += ["        case '*'", "            return 1", "    end", "end", ""]
    lines += [f"function __{fn}_takes_value", '    switch "$argv[1]:$argv[2]"']
    if values:
        lines += [f"        case {" ".join(values)}", "            return 0"]
    lines += ["    end", "    return 1", "end", ""]
    lines += [f"function __{fn}_lazy", '    switch "$argv[1]"']
    if lazy:
        lines += [f"        case {" ".join(lazy)}", "            return 0"]
    lines += ["    end", "    return 1", "end"]
    return lines


def _completions(fn, program, ident, node):
    prefix = f"complete -c {shlex.quote(program)}"
    at = _quote(f"__{fn}_at {ident}")
    lines = []
    for child in node.children:
        lines.append(_described(f"{prefix} -n {at} -f -a {_quote(_word(child.name))}", child.description))
    for option in node.options:
        line = f"{prefix} -n {at} -l {shlex.quote(option.cli_name)}"
        if option.alias:
            line += f" -s {shlex.quote(option.alias)}"
        line += f" {_arguments(fn, option.value_completion)}" if option.takes_value else " -f"
        lines.append(_described(line, option.description))
    for positional in node.positionals:
        if positional.value_completion is None:
            continue
        condition = f"__{fn}_positional {ident} {positional.position}"
        if positional.variadic:
            condition += " variadic"
        arguments = _arguments(fn, positional.value_completion, positional=True)
        lines.append(_described(f"{prefix} -n {_quote(condition)} {arguments}", positional.description))
    return lines


def instructions(program, /):
    return "\n".join((
        "# To enable completions, run one of the following:",
        "",
        "# Source directly",
        f"{program} completion fish | source",
        "",
        "# Or save the script to the fish completions directory",
        f"{program} completion fish > ~/.config/fish/completions/{program}.fish",
        "",
        "# The completion is available in new shell sessions. To use it in the current one, run:",
        f"source ~/.config/fish/completions/{program}.fish",
    ))


def render_fish(tree, program, /):
    """
    Render the fish completion script of a CompletionNode tree.
    """
    fn = identifier(program)
    idents = {path: "_".join(("root", *map(identifier, path))) for path, _ in walk(tree)}
    prog = shlex.quote(program)

    completions = []
    for path, node in walk(tree):
        completions.extend(_completions(fn, program, idents[path], node))

    script = "\n".join((
        f"# fish completion for {program}",
        HELPERS.replace("@fn@", fn).replace("@prog@", prog).rstrip(),
        "",
        *_tables(fn, idents, tree),
        "",
        f"complete -e -c {prog}",
        f"complete -c {prog} -l help -d 'Show help information'",
        f"complete -c {prog} -n __{fn}_in_lazy -f -a '(__{fn}_dynamic)'",
        *completions,
        "",
    ))
    return CompletionScript(script, "fish", instructions(program))


__all__ = (
    "render_fish",
)
