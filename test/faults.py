"""
Faults behavioral tests (codes, rendering, trigger modes).

Scope
- FaultCode values and normalization.
- trigger(): raising outside shell mode, rendering and exiting inside it.
- Message details, fancy panels and grouped exits.
- Definition error aggregation.

Conventions
- Test method names follow CamelCase per project convention.
- Rendered output is read through logger.capture(passthrough=False).
"""
import unittest
from unittest import TestCase

from argora import logger
from argora.faults import *


def fault(**options):
    return UnknownSwitchError(
        "unknown switch '--fo' at first position",
        code=FaultCode.UNKNOWN_SWITCH,
        title="unknown switch",
        hint="did you mean '--force'?",
        **options,
    )


class TestFaultCode(TestCase):
    """Behavioral tests for FaultCode."""

    def testStableValues(self):
        self.assertEqual(FaultCode.UNKNOWN_SUBCOMMAND, 11102)
        self.assertEqual(FaultCode.UNKNOWN_SWITCH, 11112)
        self.assertEqual(FaultCode.UNDETECTED_SHELL, 11151)
        self.assertEqual(FaultCode.INVALID_ARGUMENTS.normalize(), "11131")

    def testGetdoc(self):
        self.assertIsNone(getdoc(FaultCode.UNKNOWN_SWITCH))
        with self.assertRaises(TypeError):
            getdoc(11112)


class TestTrigger(TestCase):
    """Behavioral tests for trigger()."""

    def testRaisesOutsideShell(self):
        with self.assertRaises(UnknownSwitchError):
            trigger(fault())

    def testRendersAndExitsInShell(self):
        with logger.capture(passthrough=False) as logs:
            with self.assertRaises(SystemExit) as context:
                trigger(fault(), shell=True, colorful=False, prog="tool")
        self.assertEqual(context.exception.code, 1)
        self.assertIn("[ tool — 11112 | Unknown Switch ]", logs.stderr)
        self.assertIn("unknown switch '--fo' at first position", logs.stderr)
        self.assertIn("→ did you mean '--force'?", logs.stderr)

    def testDeferredReturns(self):
        with logger.capture(passthrough=False) as logs:
            trigger(fault(), shell=True, deferred=True, colorful=False, fancy=True)
        self.assertIn("unknown switch", logs.stderr)
        self.assertEqual(logs.stdout, "")

    def testGroupedExit(self):
        with logger.capture(passthrough=False) as logs:
            trigger(CommandExit([fault(), fault()]), shell=True, deferred=True, colorful=False, prog="tool")
        self.assertEqual(logs.stderr.count("unknown switch '--fo'"), 2)
        self.assertIn("Bad Exit", logs.stderr)

    def testRejectsNonFaults(self):
        with self.assertRaises(TypeError):
            trigger(ValueError("nope"))


class TestMessages(TestCase):
    """Behavioral tests for fault messages."""

    def testDetailsAreListed(self):
        error = InvalidArgumentsError(
            "invalid arguments for 'serve'",
            code=FaultCode.INVALID_ARGUMENTS,
            title="invalid arguments",
            details=["port: Input should be a valid integer"],
        )
        self.assertEqual(str(error), "invalid arguments for 'serve'\n  • port: Input should be a valid integer")

    def testDefinitionErrorsAreAggregated(self):
        error = CommandDefinitionError([
            (("tool", "serve"), ReservedAliasError("alias 'h' is reserved", field="host")),
            (("tool",), DuplicateFieldError("duplicate option '--name'")),
        ])
        self.assertEqual(len(error.errors), 2)
        self.assertEqual(error.errors[0][1].field, "host")
        self.assertEqual(str(error).splitlines(), [
            "Command definition errors:",
            "  - [tool > serve] alias 'h' is reserved",
            "  - [tool] duplicate option '--name'",
        ])


if __name__ == "__main__":
    unittest.main()
