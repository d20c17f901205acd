"""
Completion engine behavioral tests.

Scope
- Context classification: subcommands, option names, option values, positionals.
- Candidate generation and the directive bitmask.
- Output formats of the hidden __complete command.
- The __complete and completion commands mounted by with_completion().

Conventions
- Test method names follow CamelCase per project convention.
- Every scenario completes against the same small "tool" command tree.
"""
import os
import tempfile
import unittest
from typing import Annotated, Literal
from unittest import TestCase, mock

from pydantic import BaseModel, Field

from argora import Command, arg, invoke, lazy, with_completion, detect_shell, supported_shells
from argora.completion import (
    Candidate,
    CandidateResult,
    Directive,
    format_for_shell,
    format_output,
    generate_candidates,
    list_files,
    parse_context,
    run_shell_command,
)
from argora.faults import InvalidArgumentsError, UndetectedShellError


class BuildArgs(BaseModel):
    output: Annotated[str, arg(alias="o", description="Output directory", completion={"type": "directory"})] = "dist"
    format: Annotated[Literal["json", "yaml"], arg(description="Output format")] = "json"
    tags: list[str] = Field(default_factory=list)
    verbose: bool = False


class DeployArgs(BaseModel):
    manifest: Annotated[str, arg(
        positional=True,
        description="Manifest file",
        completion={"type": "file", "extensions": ["json"]},
    )]
    env: Annotated[Literal["dev", "staging", "prod"], arg(alias="e", description="Target environment")] = "dev"


class Globals(BaseModel):
    profile: Annotated[str, arg(alias="p", description="Configuration profile")] = "default"


def loader():
    raise AssertionError("completion must never load lazy subcommands")


def application():
    return Command("tool", descr="Project tooling", children=[
        Command("build", args=BuildArgs, descr="Build the project", run=print),
        Command("deploy", args=DeployArgs, descr="Deploy the project", run=print),
        lazy(Command("remote", descr="Manage remotes", children=[
            Command("add", descr="Add a remote"),
        ]), loader),
        Command("__internal", run=print),
    ])


def candidates(argv, root=None):
    return generate_candidates(parse_context(argv, root or application()))


def values(result):
    return [candidate.value for candidate in result.candidates]


def settled(context):
    return context._replace(extraction=None, target=getattr(context.target, "name", None))


class TestContext(TestCase):
    """Behavioral tests for parse_context()."""

    def testEmptyLineCompletesSubcommands(self):
        context = parse_context([], application())
        self.assertEqual(context.kind, "subcommand")
        self.assertEqual(context.path, ())
        self.assertEqual(context.current_word, "")
        self.assertEqual(context.subcommands, ("build", "deploy", "remote"))

    def testDescendsIntoSubcommands(self):
        context = parse_context(["build", "-o", "out", "--"], application())
        self.assertEqual(context.path, ("build",))
        self.assertEqual(context.kind, "option-name")
        self.assertEqual(context.used, {"output", "o"})

    def testPreviousOptionTakesValue(self):
        context = parse_context(["deploy", "--env", ""], application())
        self.assertEqual(context.kind, "option-value")
        self.assertEqual(context.target.name, "env")

    def testBooleanDoesNotTakeValue(self):
        context = parse_context(["build", "--verbose", ""], application())
        self.assertNotEqual(context.kind, "option-value")

    def testInlineValue(self):
        context = parse_context(["build", "--format=y"], application())
        self.assertEqual(context.kind, "option-value")
        self.assertEqual(context.inline_prefix, "--format=")
        self.assertEqual(context.partial, "y")

    def testInlineFlagIsAnOptionName(self):
        self.assertEqual(parse_context(["build", "--verbose=t"], application()).kind, "option-name")

    def testPositionalAfterSeparator(self):
        context = parse_context(["deploy", "--", "-x"], application())
        self.assertTrue(context.after_dd)
        self.assertEqual(context.kind, "positional")
        self.assertEqual(context.target.name, "manifest")

    def testPositionalsAreCounted(self):
        context = parse_context(["deploy", "a.json", ""], application())
        self.assertEqual(context.positional_index, 1)
        self.assertIsNone(context.target)

    def testGlobalOptionsBeforeSubcommand(self):
        context = parse_context(["-p", "ci", "build", "--"], application(), global_args=Globals)
        self.assertEqual(context.path, ("build",))
        self.assertLessEqual({"profile", "p"}, context.used)
        self.assertNotIn("--profile", values(generate_candidates(context)))

    def testOptionValueIsNotASubcommand(self):
        context = parse_context(["--profile", "build", "--"], application(), global_args=Globals)
        self.assertEqual(context.path, ())

    def testLazySubcommandIsReadFromItsStub(self):
        context = parse_context(["remote", ""], application())
        self.assertEqual(context.path, ("remote",))
        self.assertEqual(context.subcommands, ("add",))


class TestCandidates(TestCase):
    """Behavioral tests for generate_candidates()."""

    def testSubcommandsSkipHiddenOnes(self):
        result = candidates([""])
        self.assertEqual(values(result), ["build", "deploy", "remote"])
        self.assertEqual(result.candidates[0], Candidate("build", "Build the project", "subcommand"))
        self.assertEqual(result.directive, Directive.FILTER_PREFIX)

    def testOptionNames(self):
        result = candidates(["build", "--"])
        self.assertEqual(values(result), ["--output", "--format", "--tags", "--verbose", "--help"])
        self.assertEqual(result.candidates[-1].description, "Show help information")

    def testUsedOptionsAreDropped(self):
        self.assertNotIn("--output", values(candidates(["build", "-o", "out", "--"])))
        self.assertNotIn("--help", values(candidates(["build", "--help", "--"])))

    def testArrayOptionsStayOffered(self):
        self.assertIn("--tags", values(candidates(["build", "--tags", "a", "--"])))

    def testChoices(self):
        result = candidates(["deploy", "--env", ""])
        self.assertEqual(values(result), ["dev", "staging", "prod"])
        self.assertEqual(result.directive, Directive.FILTER_PREFIX)

    def testDirectoryDirective(self):
        result = candidates(["build", "--output", ""])
        self.assertEqual(result.candidates, [])
        self.assertEqual(result.directive, Directive.FILTER_PREFIX | Directive.DIRECTORY_COMPLETION)
        self.assertEqual(int(result.directive), 36)

    def testExhaustedPositionalsFallBackToOptions(self):
        self.assertEqual(values(candidates(["deploy", "a.json", ""])), ["--env", "--help"])

    def testFilesFilteredByExtension(self):
        with tempfile.TemporaryDirectory() as directory:
            for name in ("a.json", "b.txt"):
                with open(os.path.join(directory, name), "w"):
                    pass
            os.mkdir(os.path.join(directory, "sub"))
            result = candidates(["deploy", "--", f"{directory}/"])
        self.assertEqual(values(result), [f"{directory}/a.json", f"{directory}/sub/"])
        self.assertEqual(result.extensions, ("json",))
        self.assertEqual([candidate.kind for candidate in result.candidates], ["file", "directory"])

    def testUnreadableDirectoryYieldsNothing(self):
        self.assertEqual(list_files("/definitely/not/here/", ["json"]), [])

    def testShellCommandFailsSoft(self):
        self.assertEqual(run_shell_command("echo main; echo  dev ; echo"), ["main", "dev"])
        self.assertEqual(run_shell_command("exit 3"), [])
        self.assertEqual(run_shell_command("sleep 5", timeout=0.1), [])

    def testCompletionIsIdempotent(self):
        root = application()
        for argv in ([""], ["build", "--"], ["deploy", "--env", "s"], ["remote", ""], ["-p", "ci", "deploy", ""]):
            first = parse_context(argv, root, global_args=Globals)
            second = parse_context(argv, root, global_args=Globals)
            self.assertEqual(settled(first), settled(second))
            self.assertEqual(generate_candidates(first), generate_candidates(second))


class TestFormats(TestCase):
    """Behavioral tests for the __complete output formats."""

    def setUp(self):
        self.result = CandidateResult(
            [Candidate("json", "JSON: compact"), Candidate("yaml")],
            Directive.FILTER_PREFIX,
            (),
        )

    def testGenericFormat(self):
        self.assertEqual(format_output(self.result), "json\tJSON: compact\nyaml\n:4")

    def testBashFiltersAndPrefixes(self):
        self.assertEqual(format_for_shell(self.result, "bash", current_word="y"), "yaml\n:4")
        self.assertEqual(
            format_for_shell(self.result, "bash", current_word="j", inline_prefix="--format="),
            "--format=json\n:4",
        )

    def testZshEscapesColons(self):
        self.assertEqual(format_for_shell(self.result, "zsh"), "json:JSON\\: compact\nyaml\n:4")

    def testFishUsesTabs(self):
        self.assertEqual(format_for_shell(self.result, "fish"), "json\tJSON: compact\nyaml\n:4")

    def testUnsupportedShell(self):
        with self.assertRaises(ValueError):
            format_for_shell(self.result, "tcsh")


class TestCompletionCommands(TestCase):
    """Behavioral tests for the __complete and completion commands."""

    def setUp(self):
        self.app = application()
        self.root = with_completion(self.app)

    def run_words(self, words):
        return invoke(self.root, words, capture_logs=True, colorful=False)

    def testOriginalIsLeftUntouched(self):
        self.assertNotIn("completion", self.app.children)
        self.assertIn("completion", self.root.children)
        self.assertIn("__complete", self.root.children)

    def testCompleteCommand(self):
        result = self.run_words(["__complete", "--", "build", "--f"])
        self.assertTrue(result.success)
        self.assertTrue(result.result.endswith("\n:4"))
        self.assertIn("--format\tOutput format", result.result)
        self.assertEqual(result.logs.stdout, result.result)

    def testCompleteCommandForBash(self):
        result = self.run_words(["__complete", "--shell", "bash", "--", "build", "--f"])
        self.assertEqual(result.result, "--format\n:4")

    def testCompletionCommandIsListedButNotItsHiddenPeer(self):
        result = self.run_words(["__complete", "--", ""])
        self.assertIn("completion\tGenerate shell completion script", result.result)
        self.assertNotIn("__complete", result.result)

    def testCompletionScript(self):
        result = self.run_words(["completion", "bash"])
        self.assertTrue(result.success)
        self.assertIn("complete -o default -F _tool_completions tool", result.logs.stdout)

    def testCompletionInstructions(self):
        result = self.run_words(["completion", "zsh", "-i"])
        self.assertIn('eval "$(tool completion zsh)"', result.result)

    def testCompletionDetectsShell(self):
        with mock.patch.dict(os.environ, {"SHELL": "/usr/bin/fish"}):
            result = self.run_words(["completion"])
        self.assertIn("complete -e -c tool", result.result)

    def testUndetectedShell(self):
        with mock.patch.dict(os.environ, {"SHELL": "/bin/tcsh"}):
            result = self.run_words(["completion"])
        self.assertEqual(result.exit_code, 1)
        self.assertIsInstance(result.error, UndetectedShellError)
        self.assertIn("please specify one of: bash, zsh, fish", result.logs.stderr)

    def testUnsupportedShellIsRejected(self):
        result = self.run_words(["completion", "tcsh"])
        self.assertEqual(result.exit_code, 1)
        self.assertIsInstance(result.error, InvalidArgumentsError)


class TestShellDetection(TestCase):
    """Behavioral tests for detect_shell()."""

    def testDetect(self):
        self.assertEqual(detect_shell({"SHELL": "/usr/bin/zsh"}), "zsh")
        self.assertEqual(detect_shell({"SHELL": "/usr/local/bin/bash"}), "bash")
        self.assertIsNone(detect_shell({"SHELL": "/bin/sh"}))
        self.assertIsNone(detect_shell({}))

    def testSupportedShells(self):
        self.assertEqual(supported_shells(), ["bash", "zsh", "fish"])


if __name__ == "__main__":
    unittest.main()
