"""
Argora completion commands.

- complete_command(root): the hidden "__complete" command shells call on every
  completion request:
      prog __complete [--shell bash|zsh|fish] -- <words typed after prog>
  It prints one candidate per line and ":<directive>" last.
- completion_command(root): "completion [SHELL] [-i]" prints the static script
  (or its installation instructions) for SHELL, detected from $SHELL when omitted.
- with_completion(command): a copy of `command` with both mounted.
"""
import copy
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from ..commands import Command
from ..faults import FaultCode, UndetectedShellError
from ..logger import logger
from ..registry import arg
from .candidates import generate_candidates
from .context import parse_context
from .formatters import format_for_shell, format_output
from .scripts import detect_shell, generate_script, supported_shells

Shell = Literal["bash", "zsh", "fish"]


class CompleteArgs(BaseModel):
    shell: Annotated[Shell | None, arg(description="Target shell for output formatting")] = None
    args: Annotated[list[str], arg(positional=True, description="Arguments to complete")] = Field(
        default_factory=list,
    )


class CompletionArgs(BaseModel):
    shell: Annotated[Shell | None, arg(
        positional=True,
        placeholder="SHELL",
        description="Shell type (bash, zsh, or fish)",
    )] = None
    instructions: Annotated[bool, arg(alias="i", description="Show installation instructions")] = False


def complete(root, argv, /, shell=None, global_args=None):
    """
    __complete output for the partial command line `argv` of `root`.
    """
    context = parse_context(argv, root, global_args=global_args)
    result = generate_candidates(context)
    if shell is None:
        return format_output(result)
    return format_for_shell(result, shell, current_word=context.partial, inline_prefix=context.inline_prefix)


def complete_command(root, /, global_args=None):
    """
    Build the hidden __complete command answering for `root`.
    """
    def run(args: CompleteArgs):
        output = complete(root, args.args, shell=args.shell, global_args=global_args)
        logger.out(output)
        return output

    return Command("__complete", args=CompleteArgs, descr="Generate completion candidates", run=run)


def completion_command(root, /, global_args=None):
    """
    Build the "completion" command printing the scripts of `root`.
    """
    def run(args: CompletionArgs):
        shell = args.shell or detect_shell()
        if shell is None:
            raise UndetectedShellError(
                "could not detect shell type",
                code=FaultCode.UNDETECTED_SHELL,
                title="undetected shell",
                hint=f"please specify one of: {", ".join(supported_shells())}",
            )
        script = generate_script(root, shell, global_args=global_args)
        output = script.instructions if args.instructions else script.script
        logger.out(output)
        return output

    return Command(
        "completion",
        args=CompletionArgs,
        descr="Generate shell completion script",
        run=run,
        examples=(
            f'eval "$({root.name} completion bash)"',
            f"{root.name} completion zsh --instructions",
        ),
    )


def with_completion(command, /, global_args=None):
    """
    Copy of `command` with the "completion" and "__complete" subcommands mounted.
    """
    root = copy.replace(command)
    root.mount(completion_command(root, global_args=global_args))
    root.mount(complete_command(root, global_args=global_args))
    return root


__all__ = (
    "CompleteArgs",
    "CompletionArgs",
    "complete",
    "complete_command",
    "completion_command",
    "with_completion",
)
