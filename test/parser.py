"""
Argv parser behavioral tests.

Scope
- Tokenizing: long/short options, inline values, booleans, arrays, "--".
- Positional assignment, variadic absorption and surplus words.
- Environment fallback precedence.
- Subcommand short-circuit (options before the subcommand name included) and
  built-in switch detection.

Conventions
- Test method names follow CamelCase per project convention.
- Schemas are plain pydantic models annotated with arg().
"""
import os
import unittest
from typing import Annotated, Literal
from unittest import TestCase, mock

from pydantic import BaseModel, Field

from argora import Command, arg, parse_args, parse_argv, environment, extract_fields, leading_word


class Greet(BaseModel):
    name: Annotated[str, arg(positional=True, description="Who to greet")]
    loud: Annotated[bool, arg(alias="l")] = False


class Files(BaseModel):
    files: Annotated[list[str], arg(alias="f")] = Field(default_factory=list)


class Build(BaseModel):
    output: Annotated[str, arg(alias="o")] = "dist"
    format: Literal["json", "yaml"] = "json"
    verbose: bool = False


class Copy(BaseModel):
    source: Annotated[str, arg(positional=True)]
    targets: Annotated[list[str], arg(positional=True)]


class Deploy(BaseModel):
    region: Annotated[str, arg(env=("A", "B"))] = "local"
    tags: Annotated[list[str], arg(env="TAGS")] = Field(default_factory=list)


class TestTokenizer(TestCase):
    """Behavioral tests for parse_argv()."""

    def testPositionalAndShortFlag(self):
        result = parse_args(["World", "-l"], Command("greet", args=Greet))
        self.assertEqual(result.raw, {"name": "World", "loud": True})
        self.assertEqual(result.surplus, [])
        self.assertEqual(result.unknown, [])

    def testRepeatedArrayOptionAccumulates(self):
        result = parse_args(["-f", "a.txt", "-f", "b.txt"], Command("tool", args=Files))
        self.assertEqual(result.raw, {"files": ["a.txt", "b.txt"]})

    def testInlineAndSeparateValuesAreEquivalent(self):
        fields = extract_fields(Build)
        for value in ("out", "a=b", "", "with space"):
            inline = parse_argv([f"--output={value}"], fields).options
            if value:
                separate = parse_argv(["--output", value], fields).options
                self.assertEqual(inline, separate)
            self.assertEqual(inline, {"output": value})

    def testShortInlineValue(self):
        self.assertEqual(parse_argv(["-o=build"], extract_fields(Build)).options, {"output": "build"})

    def testBooleanNeverConsumesNextWord(self):
        parsed = parse_argv(["--verbose", "extra"], extract_fields(Build))
        self.assertEqual(parsed.options, {"verbose": True})
        self.assertEqual(parsed.positionals, ["extra"])

    def testNegatedBoolean(self):
        self.assertEqual(parse_argv(["--no-verbose"], extract_fields(Build)).options, {"verbose": False})

    def testValueTakingOptionDoesNotSwallowSwitch(self):
        parsed = parse_argv(["--output", "--verbose"], extract_fields(Build))
        self.assertEqual(parsed.options, {"output": True, "verbose": True})

    def testDoubleDashEndsOptions(self):
        parsed = parse_argv(["--", "--verbose", "-o"], extract_fields(Build))
        self.assertEqual(parsed.options, {})
        self.assertEqual(parsed.positionals, ["--verbose", "-o"])

    def testNoShortFlagBundling(self):
        parsed = parse_argv(["-lv"], extract_fields(Greet))
        self.assertEqual(parsed.options, {})
        self.assertEqual([unknown.token for unknown in parsed.unknown], ["-lv"])

    def testUnknownSwitchesAreRecorded(self):
        parsed = parse_argv(["--fo", "--x=1"], extract_fields(Build))
        self.assertEqual([(unknown.name, unknown.value, unknown.index) for unknown in parsed.unknown], [
            ("fo", None, 0),
            ("x", "1", 1),
        ])


class TestPositionals(TestCase):
    """Behavioral tests for positional assignment."""

    def testVariadicAbsorbsRemainingWords(self):
        result = parse_args(["a", "b", "c"], Command("cp", args=Copy))
        self.assertEqual(result.raw, {"source": "a", "targets": ["b", "c"]})

    def testSurplusWordsAreReported(self):
        result = parse_args(["World", "again"], Command("greet", args=Greet))
        self.assertEqual(result.surplus, ["again"])


class TestEnvironment(TestCase):
    """Behavioral tests for environment fallback."""

    def testFirstDefinedVariableWins(self):
        fields = extract_fields(Deploy)
        self.assertEqual(environment(fields, {}, environ={"A": "a", "B": "b"})["region"], "a")
        self.assertEqual(environment(fields, {}, environ={"B": "b"})["region"], "b")

    def testCommandLineWinsOverEnvironment(self):
        with mock.patch.dict(os.environ, {"A": "a"}):
            result = parse_args(["--region", "cli"], Command("deploy", args=Deploy))
        self.assertEqual(result.raw["region"], "cli")

    def testArrayVariablesSplitOnCommas(self):
        raw = environment(extract_fields(Deploy), {}, environ={"TAGS": "x, y,,z"})
        self.assertEqual(raw["tags"], ["x", "y", "z"])


class TestParseArgs(TestCase):
    """Behavioral tests for the per-level parse sequence."""

    def testSubcommandShortCircuit(self):
        root = Command("tool", children=[Command("build", args=Build)])
        result = parse_args(["build", "--output", "x"], root)
        self.assertEqual(result.subcommand, "build")
        self.assertEqual(result.remaining, ["--output", "x"])

    def testOptionsBeforeSubcommandAreCarried(self):
        root = Command("tool", args=Build, children=[Command("deploy", args=Deploy)])
        result = parse_args(["-o", "x", "--verbose", "deploy", "--region", "eu"], root)
        self.assertEqual(result.subcommand, "deploy")
        self.assertEqual(result.remaining, ["-o", "x", "--verbose", "--region", "eu"])

    def testOptionValueIsNeverASubcommand(self):
        root = Command("tool", args=Build, children=[Command("deploy", args=Deploy)])
        result = parse_args(["-o", "deploy"], root)
        self.assertIsNone(result.subcommand)
        self.assertEqual(result.raw["output"], "deploy")

    def testLeadingWord(self):
        fields = extract_fields(Build)
        self.assertEqual(leading_word(["--verbose", "x"], fields), 1)
        self.assertEqual(leading_word(["--output", "dir", "x"], fields), 2)
        self.assertEqual(leading_word(["--output=dir", "x"], fields), 1)
        self.assertEqual(leading_word(["--unknown", "x"], fields), 1)
        self.assertIsNone(leading_word(["--", "x"], fields))
        self.assertIsNone(leading_word(["-o", "dir"], fields))

    def testHelpAndVersionSwitches(self):
        command = Command("build", args=Build)
        self.assertTrue(parse_args(["--help"], command).help)
        self.assertTrue(parse_args(["-H"], command).help_all)
        self.assertTrue(parse_args(["--version"], command).version)
        self.assertFalse(parse_args(["--", "--help"], command).help)

    def testClaimedHelpAliasIsAField(self):
        class Host(BaseModel):
            host: Annotated[str, arg(alias="h", override_builtin_alias=True)] = "localhost"

        result = parse_args(["-h", "example.org"], Command("serve", args=Host))
        self.assertFalse(result.help)
        self.assertEqual(result.raw, {"host": "example.org"})


if __name__ == "__main__":
    unittest.main()
