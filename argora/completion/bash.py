r"""
Argora bash completion script.

render_bash(tree, program) emits a self-contained script:

- shared helpers (__<fn>_values, _files, _directories, _none, _dynamic, ...)
- tables as case statements:
  • __<fn>_child <node> <word>: the node a subcommand word leads to
  • __<fn>_takes_value <node> <option>: options consuming the next word
  • __<fn>_lazy <node>: lazily loaded subcommands
- one __<fn>_options_<node> and one __<fn>_complete_<node> function per command
- _<fn>_completions: rejoins words bash split on "=", walks them like the argv
  parser (subcommands, "--", option values, positional count) and dispatches to
  the function of the command reached.

Lazy subcommands and shell-command choices call back into
"<program> __complete --shell bash -- <words>".
"""
import shlex

from .tree import CompletionScript, identifier, walk

HELPERS = r'''
__@fn@_not_used() {
    local _option
    for _option in "$@"; do
        [[ "$_used_opts" == *" $_option "* ]] && return 1
    done
    return 0
}

__@fn@_matches() {
    local _candidate
    [[ -z "$_cur" ]] && return 0
    for _candidate in "$@"; do
        [[ "$_candidate" == "$_cur"* ]] && return 0
    done
    return 1
}

__@fn@_values() {
    local _candidate
    COMPREPLY=()
    for _candidate in "$@"; do
        [[ "$_candidate" == "$_value"* ]] && COMPREPLY+=("$_reply_prefix$_candidate")
    done
    compopt +o default 2>/dev/null
}

__@fn@_files() {
    local _path _extension
    COMPREPLY=()
    compopt -o filenames 2>/dev/null
    while IFS= read -r _path; do
        if (( $# == 0 )) || [[ -d "$_path" ]]; then
            COMPREPLY+=("$_reply_prefix$_path")
            continue
        fi
        for _extension in "$@"; do
            if [[ "$_path" == *."$_extension" ]]; then
                COMPREPLY+=("$_reply_prefix$_path")
                break
            fi
        done
    done < <(compgen -f -- "$_value")
}

__@fn@_directories() {
    local _path
    COMPREPLY=()
    compopt -o filenames 2>/dev/null
    while IFS= read -r _path; do
        COMPREPLY+=("$_reply_prefix$_path")
    done < <(compgen -d -- "$_value")
}

__@fn@_none() {
    COMPREPLY=()
    compopt +o default 2>/dev/null
}

__@fn@_dynamic() {
    local _line _last _directive=0
    local -a _lines=()
    COMPREPLY=()
    while IFS= read -r _line; do
        _lines+=("$_line")
    done < <(@prog@ __complete --shell bash -- "${_words[@]}" 2>/dev/null)
    _last=$(( ${#_lines[@]} - 1 ))
    if (( _last >= 0 )) && [[ "${_lines[_last]}" == :* ]]; then
        _directive="${_lines[_last]#:}"
        unset "_lines[$_last]"
    fi
    for _line in "${_lines[@]}"; do
        [[ -z "$_line" ]] && continue
        if [[ -z "$_reply_prefix" ]]; then
            _line="${_line#"$_inline_prefix"}"
        fi
        COMPREPLY+=("$_line")
    done
    if (( _directive & 16 )); then
        __@fn@_files
    elif (( _directive & 32 )); then
        __@fn@_directories
    elif (( _directive & 2 )); then
        compopt +o default 2>/dev/null
    fi
    if (( _directive & 1 )); then
        compopt -o nospace 2>/dev/null
    fi
}
'''

MAIN = r'''
_@fn@_completions() {
    local -a _words=()
    local _i _word _joined=0
    for (( _i = 1; _i <= COMP_CWORD; _i++ )); do
        _word="${COMP_WORDS[_i]}"
        if [[ "$_word" == "=" && ${#_words[@]} -gt 0 && "${_words[${#_words[@]}-1]}" == --* ]]; then
            _words[${#_words[@]}-1]+="="
            _joined=1
        elif (( _joined )); then
            _words[${#_words[@]}-1]+="$_word"
            _joined=0
        else
            _words+=("$_word")
        fi
    done
    (( ${#_words[@]} )) || _words=("")

    local _count=${#_words[@]}
    local _cur="${_words[_count-1]}" _prev=""
    (( _count > 1 )) && _prev="${_words[_count-2]}"
    local _inline_prefix="" _reply_prefix=""
    if [[ "$_cur" == --*=* ]]; then
        _inline_prefix="${_cur%%=*}="
        [[ "$COMP_WORDBREAKS" == *=* ]] || _reply_prefix="$_inline_prefix"
    fi
    local _value="${_cur#"$_inline_prefix"}"

    local _node=root _after_dd=0 _pos_count=0 _used_opts=" " _name _child
    for (( _i = 0; _i < _count - 1; _i++ )); do
        _word="${_words[_i]}"
        if (( _after_dd )); then
            _pos_count=$(( _pos_count + 1 ))
        elif [[ "$_word" == "--" ]]; then
            _after_dd=1
        elif [[ "$_word" == -?* ]]; then
            _name="${_word%%=*}"
            _used_opts+="$_name "
            if [[ "$_word" != *=* ]] && (( _i + 1 < _count - 1 )) && [[ "${_words[_i+1]}" != -* ]] \
                && __@fn@_takes_value "$_node" "$_name"; then
                _i=$(( _i + 1 ))
            fi
        elif (( _pos_count == 0 )) && _child=$(__@fn@_child "$_node" "$_word"); then
            _node="$_child"
            _used_opts=" "
            _pos_count=0
            if __@fn@_lazy "$_node"; then
                __@fn@_dynamic
                return
            fi
        else
            _pos_count=$(( _pos_count + 1 ))
        fi
    done

    case "$_node" in
@dispatch@
    esac
}
'''


def _quote(words):
    return " ".join(shlex.quote(word) for word in words)


def _flags(option):
    flags = [f"--{option.cli_name}"]
    if option.alias:
        flags.append(f"-{option.alias}")
    return flags


def _action(fn, completion):
    if completion is None:
        return "COMPREPLY=()"
    match completion.type:
        case "choices":
            return f"__{fn}_values {_quote(completion.choices)}"
        case "command":
            return f"__{fn}_dynamic"
        case "file":
            return f"__{fn}_files {_quote(completion.extensions)}".rstrip()
        case "directory":
            return f"__{fn}_directories"
        case _:
            return f"__{fn}_none"


def _options_function(fn, ident, node):
    lines = [f"__{fn}_options_{ident}() {{", "    local -a _avail=()"]
    for option in node.options:
        name = shlex.quote(f"--{option.cli_name}")
        if option.repeatable:
            lines.append(f"    _avail+=({name})")
        else:
            lines.append(f"    __{fn}_not_used {_quote(_flags(option))} && _avail+=({name})")
    lines.append(f"    __{fn}_not_used --help && _avail+=(--help)")
    lines.append(f'    __{fn}_values "${{_avail[@]}}"')
    lines.append("}")
    return lines


def _complete_function(fn, ident, node):
    lines = [f"__{fn}_complete_{ident}() {{", "    if (( ! _after_dd )); then"]

    valued = [option for option in node.options if option.takes_value]
    if valued:
        lines.append('        case "$_prev" in')
        for option in valued:
            pattern = "|".join(shlex.quote(flag) for flag in _flags(option))
            lines.append(f"            {pattern}) {_action(fn, option.value_completion)}; return ;;")
        lines.append("        esac")
        lines.append('        case "$_cur" in')
        for option in valued:
            lines.append(
                f"            {shlex.quote(f"--{option.cli_name}=")}*) {_action(fn, option.value_completion)}; return ;;"
            )
        lines.append("        esac")

    lines.append('        if [[ "$_cur" == -* ]]; then')
    lines.append(f"            __{fn}_options_{ident}")
    lines.append("            return")
    lines.append("        fi")

    names = _quote(child.name for child in node.children)
    if node.children:
        lines.append(f"        if __{fn}_matches {names}; then")
        lines.append(f"            __{fn}_values {names}")
        lines.append("            return")
        lines.append("        fi")
    lines.append("    fi")

    fallback = f"__{fn}_values {names}" if node.children else f"__{fn}_options_{ident}"
    lines.append('    case "$_pos_count" in')
    for positional in node.positionals:
        pattern = f"{positional.position}|*" if positional.variadic else str(positional.position)
        lines.append(f"        {pattern}) {_action(fn, positional.value_completion)} ;;")
    if not any(positional.variadic for positional in node.positionals):
        lines.append(f"        *) if (( _after_dd )); then COMPREPLY=(); else {fallback}; fi ;;")
    lines.append("    esac")
    lines.append("}")
    return lines


def _tables(fn, idents, tree):
    children = []
    values = []
    lazy = []
    for path, node in walk(tree):
        ident = idents[path]
        for child in node.children:
            child_ident = f"{ident}_{identifier(child.name)}"
            children.append(f"        {shlex.quote(f"{ident}:{child.name}")}) echo {child_ident} ;;")
            if child.lazy:
                lazy.append(child_ident)
        for option in node.options:
            if option.takes_value:
                values.append("|".join(shlex.quote(f"{ident}:{flag}") for flag in _flags(option)))

    lines = [f"__{fn}_child() {{", '    case "$1:$2" in', *children, "        *) return 1 ;;", "    esac", "}", ""]
    lines += [f"__{fn}_takes_value() {{", '    case "$1:$2" in']
    if values:
        lines.append(f"        {"|".join(values)}) return 0 ;;")
    lines += ["        *) return 1 ;;", "    esac", "}", ""]
    lines += [f"__{fn}_lazy() {{", '    case "$1" in']
    if lazy:
        lines.append(f"        {"|".join(lazy)}) return 0 ;;")
    lines += ["        *) return 1 ;;", "    esac", "}"]
    return lines


def _identifiers(tree):
    idents = {}
    for path, _ in walk(tree):
        idents[path] = "_".join(("root", *map(identifier, path)))
    return idents


def instructions(program, /):
    return "\n".join((
        "# To enable completions, add the following to your ~/.bashrc:",
        "",
        f'eval "$({program} completion bash)"',
        "",
        "# Or save the script to the bash-completion directory:",
        f"{program} completion bash > ~/.local/share/bash-completion/completions/{program}",
        "",
        "# Then reload your shell or run:",
        "source ~/.bashrc",
    ))


def render_bash(tree, program, /):
    """
    Render the bash completion script of a CompletionNode tree.
    """
    fn = identifier(program)
    idents = _identifiers(tree)

    functions = []
    for path, node in walk(tree):
        functions.extend(_options_function(fn, idents[path], node))
        functions.append("")
        functions.extend(_complete_function(fn, idents[path], node))
        functions.append("")

    dispatch = "\n".join(f"        {ident}) __{fn}_complete_{ident} ;;" for ident in idents.values())

    script = "\n".join((
        f"# bash completion for {program}",
        f'# load with: eval "$({program} completion bash)"',
        HELPERS.replace("@fn@", fn).replace("@prog@", shlex.quote(program)).rstrip(),
        "",
        *_tables(fn, idents, tree),
        "",
        *functions,
        MAIN.replace("@fn@", fn).replace("@dispatch@", dispatch).strip(),
        "",
        f"complete -o default -F _{fn}_completions {shlex.quote(program)}",
        "",
    ))
    return CompletionScript(script, "bash", instructions(program))


__all__ = (
    "render_bash",
)
