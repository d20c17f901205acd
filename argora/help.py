"""
Argora help rendering.

render_help(command, context, show_all=False) returns a rich renderable made of:

- header: the command name with its version ("v1.0.0"), or for subcommands the
  route with the root name and version ("(git v1.0.0)"); then the description.
- usage: "usage: name [options] [command] <required> [optional]".
- options: built-ins (-h/--help, -H/--help-all, --version when a version is
  known; an alias claimed by a field is dropped from its built-in), then the
  fields with their defaults and requirements. Discriminated unions list the
  discriminator, the fields common to every branch, then one "when key=value:"
  block per branch; plain unions label their blocks with the branch
  description or "variant N".
- arguments: positional fields.
- commands: visible children; with show_all, every descendant is listed flat
  with its own options (lazy children are described from their stubs).
- notes / examples: bulleted lists.

Customization
- Define a mapping named __styles__ in __main__ to override any palette entry.
- colorful=False renders without styles; fancy=True wraps everything in a panel.
"""
import enum
import json
from collections import defaultdict

from rich.panel import Panel
from rich.text import Text

from .extractor import extract_fields
from .schemas import all_of
from .utils import Unset

COLUMN = 28

BUILTINS = {
    "help": "Show help",
    "help-all": "Show help with all subcommand options",
    "version": "Show version",
}


def _literal(value):
    if isinstance(value, enum.Enum):
        value = value.value
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return json.dumps(str(value))


def _visible(children):
    return [(name, child) for name, child in children.items() if not name.startswith("__")]


def _stub(child):
    return getattr(child, "stub", child)


def render_help(command, context, /, show_all=False, colorful=True, fancy=False):
    """
    Build the help renderable of `command` reached through `context`.

    Palette keys
    - program-name, version, description, section-label, usage-section
    - option-name, placeholder, argument-description, default, required
    - variant-label, children, children-description
    - notes-dot, note, examples-dot, example, panel-title
    """
    styles = defaultdict(str, {
        # === Head sections ===
        "program-name": "bold #FF4D94",  # MAGENTA-PINK → brand pop
        "version": "#737373",  # Dim gray
        "description": "italic #A3A3A3",  # Neutral gray
        "section-label": "bold #FFFFFF",  # Pure white headers
        "usage-section": "bold #36C5F0",  # SKY-BLUE

        # === Options / arguments ===
        "option-name": "bold #00E6FF",  # CYAN for options
        "placeholder": "bold #FFD600",  # AMBER for parameters
        "argument-description": "#9CA3AF",  # Muted gray
        "default": "#737373",
        "required": "bold #EF4444",  # RED marker
        "variant-label": "bold #22C55E",  # GREEN branch headers

        # === Children ===
        "children": "bold #36C5F0",  # Sky-blue subcommands
        "children-description": "#9CA3AF",

        # === Notes / Examples ===
        "notes-dot": "#00E6FF dim",
        "note": "#D1D5DB",
        "examples-dot": "#22C55E dim",
        "example": "#E5E7EB",

        # === Fancy panel ===
        "panel-title": "bold #FF4D94",
    } | getattr(__import__("__main__"), "__styles__", {}))

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment if colorful else Text(fragment.plain)
        return Text(str(fragment), styler(style))

    def row(names, descr, indent=0):
        line = Text("  " * (indent + 1))
        line.append_text(names)
        line.append(" " * max(2, COLUMN - len(names) - 2 * indent))
        line.append_text(descr)
        line.rstrip()
        return line

    def flags(field):
        names = Text()
        if field.alias:
            names.append_text(text(f"-{field.alias}", "option-name")).append(", ")
        names.append_text(text(f"--{field.cli_name}", "option-name"))
        if field.takes_value:
            placeholder = field.placeholder or field.cli_name.upper().replace("-", "_")
            names.append(" ").append_text(text(f"<{placeholder}>", "placeholder"))
        return names

    def describe(field, *, required=True):
        descr = text(field.description or "", "argument-description")
        if field.default is not Unset and field.default is not None:
            descr.append(" ").append_text(text(f"(default: {_literal(field.default)})", "default"))
        if required and field.required:
            descr.append(" ").append_text(text("(required)", "required"))
        return descr

    def builtins(extraction):
        claimed = {field.alias for field in extraction.fields if field.alias and field.override_builtin_alias}
        lines = []
        for alias, name in (("h", "help"), ("H", "help-all")):
            names = Text()
            if alias not in claimed:
                names.append_text(text(f"-{alias}", "option-name")).append(", ")
            names.append_text(text(f"--{name}", "option-name"))
            lines.append(row(names, text(BUILTINS[name], "argument-description")))
        if context.version:
            lines.append(row(text("--version", "option-name"), text(BUILTINS["version"], "argument-description")))
        return lines

    def options(extraction):
        lines = builtins(extraction)
        fields = extraction.options

        if extraction.kind in ("discriminated", "union", "xor") and extraction.variants:
            variants = extraction.variants
            key = extraction.discriminator
            common = [
                field for field in fields
                if field.name != key and all(
                    any(other.name == field.name for other in variant.fields) for variant in variants
                )
            ]
            if key is not None and (selector := next((field for field in fields if field.name == key), None)):
                names = Text.assemble(
                    text(f"--{selector.cli_name}", "option-name"),
                    " ",
                    text(f"<{"|".join(str(variant.value) for variant in variants)}>", "placeholder"),
                )
                descr = extraction.description or selector.description or "Action to perform"
                lines.append(row(names, text(descr, "argument-description")))
            for field in common:
                lines.append(row(flags(field), describe(field, required=False)))
            shared = {field.name for field in common} | {key}
            for variant in variants:
                specific = [
                    field for field in variant.fields
                    if field.name not in shared and not field.positional
                ]
                if not specific:
                    continue
                lines.append(Text(""))
                if key is not None:
                    label = Text.assemble(
                        "  ",
                        text("when ", "argument-description"),
                        text(key, "option-name"),
                        "=",
                        text(str(variant.value), "variant-label"),
                        ":",
                    )
                    if variant.description:
                        label.append(" ").append_text(text(variant.description, "argument-description"))
                else:
                    label = Text.assemble("  ", text(f"{variant.label}:", "variant-label"))
                lines.append(label)
                for field in specific:
                    lines.append(row(flags(field), describe(field), indent=1))
            return lines

        for field in fields:
            lines.append(row(flags(field), describe(field)))
        return lines

    def arguments(extraction):
        lines = []
        for field in extraction.positionals:
            label = f"{field.placeholder or field.cli_name}{"..." if field.variadic else ""}"
            names = text(f"<{label}>" if field.required else f"[{label}]", "placeholder")
            lines.append(row(names, describe(field)))
        return lines

    def usage(extraction):
        line = Text.assemble(text("usage", "section-label"), ": ")
        line.append_text(text(context.route, "usage-section"))
        if extraction.options:
            line.append(" [options]")
        if _visible(command.children):
            line.append(" [command]")
        for field in extraction.positionals:
            label = f"{field.placeholder or field.cli_name}{"..." if field.variadic else ""}"
            line.append(" ").append_text(text(f"<{label}>" if field.required else f"[{label}]", "placeholder"))
        return line

    def flat(children, prefix):
        lines = []
        for name, child in _visible(children):
            child = _stub(child)
            route = f"{prefix} {name}".strip()
            lines.append(row(text(route, "children"), text(child.descr or "", "children-description")))
            for field in extract_fields(all_of(context.global_args, child.args)).options:
                lines.append(row(flags(field), describe(field, required=False), indent=1))
            lines.extend(flat(child.children, route))
        return lines

    def bullets(items, dot, style):
        lines = []
        for item in items:
            lines.append(Text.assemble("  ", text("•", dot), " ", text(item, style)))
        return lines

    extraction = extract_fields(all_of(context.global_args, command.args))
    sections = []

    header = Text()
    if context.path:
        header.append_text(text(" ".join(context.path), "program-name"))
        suffix = f"({context.root} v{context.version})" if context.version else f"({context.root})"
        header.append(" ").append_text(text(suffix, "version"))
    else:
        header.append_text(text(command.name, "program-name"))
        if context.version:
            header.append(" ").append_text(text(f"v{context.version}", "version"))
    if command.descr:
        header.append("\n").append_text(text(command.descr, "description"))
    sections.append(header)

    sections.append(usage(extraction))

    sections.append(Text("\n").join([Text.assemble(text("options", "section-label"), ":"), *options(extraction)]))

    if extraction.positionals:
        sections.append(Text("\n").join([Text.assemble(text("arguments", "section-label"), ":"), *arguments(extraction)]))

    if children := _visible(command.children):
        if show_all:
            lines = flat(command.children, " ".join(context.path))
        else:
            lines = [
                row(
                    text(" ".join((*context.path, name)), "children"),
                    text(_stub(child).descr or "", "children-description"),
                )
                for name, child in children
            ]
        sections.append(Text("\n").join([Text.assemble(text("commands", "section-label"), ":"), *lines]))

    if command.notes:
        sections.append(Text("\n").join([
            Text.assemble(text("notes", "section-label"), ":"), *bullets(command.notes, "notes-dot", "note"),
        ]))

    if command.examples:
        sections.append(Text("\n").join([
            Text.assemble(text("examples", "section-label"), ":"), *bullets(command.examples, "examples-dot", "example"),
        ]))

    renderable = Text("\n\n").join(sections)

    if fancy:
        renderable = Panel(
            renderable,
            title=Text.assemble("[ ", f"{context.route} help".upper(), " ]", style=styler("panel-title")),
            title_align="left",
        )
    return renderable


__all__ = (
    "render_help",
)
