"""
Metadata registry behavioral tests.

Scope
- attach()/lookup(): identity keyed, write once.
- ArgMeta sanitizing: text, aliases, environment variables.
- Completion hints: exactly one source, extensions.

Conventions
- Test method names follow CamelCase per project convention.
"""
import unittest
from unittest import TestCase

from argora.registry import *


class TestRegistry(TestCase):
    """Behavioral tests for attach() and lookup()."""

    def testLookupIsIdentityBased(self):
        first = arg(description="same")
        second = arg(description="same")
        self.assertIsNot(first, second)
        self.assertIsNot(lookup(first), lookup(second))
        self.assertEqual(lookup(first), lookup(second))

    def testUnregisteredNodeHasNoMetadata(self):
        self.assertIsNone(lookup(object()))

    def testAttachIsWriteOnce(self):
        node = object()
        self.assertIs(attach(node, ArgMeta(alias="x")), node)
        with self.assertRaises(ValueError):
            attach(node, ArgMeta(alias="y"))
        self.assertEqual(lookup(node).alias, "x")

    def testAttachRequiresMetadata(self):
        with self.assertRaises(TypeError):
            attach(object(), {"alias": "x"})


class TestArgMeta(TestCase):
    """Behavioral tests for ArgMeta sanitizing."""

    def testDefaults(self):
        meta = ArgMeta()
        self.assertIsNone(meta.description)
        self.assertFalse(meta.positional)
        self.assertIsNone(meta.alias)
        self.assertEqual(meta.env, ())
        self.assertIsNone(meta.completion)

    def testTextIsTrimmed(self):
        self.assertEqual(ArgMeta(description="  Output directory ").description, "Output directory")
        with self.assertRaises(ValueError):
            ArgMeta(placeholder="   ")

    def testAlias(self):
        self.assertEqual(ArgMeta(alias="-v").alias, "v")
        with self.assertRaises(ValueError):
            ArgMeta(alias="vv")
        with self.assertRaises(TypeError):
            ArgMeta(alias=1)

    def testPositionalCannotHaveAlias(self):
        with self.assertRaises(TypeError):
            ArgMeta(positional=True, alias="p")

    def testEnvironmentVariables(self):
        self.assertEqual(ArgMeta(env="TOKEN").env, ("TOKEN",))
        self.assertEqual(ArgMeta(env=["A", "B"]).env, ("A", "B"))
        with self.assertRaises(ValueError):
            ArgMeta(env=["A", "A"])


class TestCompletion(TestCase):
    """Behavioral tests for completion hints."""

    def testExactlyOneSource(self):
        with self.assertRaises(TypeError):
            Completion()
        with self.assertRaises(TypeError):
            Completion("file", choices=["a"])

    def testType(self):
        self.assertEqual(Completion("directory").type, "directory")
        with self.assertRaises(ValueError):
            Completion("socket")

    def testExtensionsApplyToFiles(self):
        self.assertEqual(Completion("file", extensions=[".json", "yaml"]).extensions, ("json", "yaml"))
        with self.assertRaises(TypeError):
            Completion("directory", extensions=["json"])

    def testChoicesCannotBeEmpty(self):
        with self.assertRaises(ValueError):
            Completion(choices=[])

    def testMappingShorthand(self):
        completion = lookup(arg(completion={"choices": ["dev", "prod"]})).completion
        self.assertEqual(completion, Completion(choices=("dev", "prod")))
        self.assertEqual(lookup(arg(completion={"type": "file"})).completion.type, "file")
        self.assertEqual(lookup(arg(completion={"shell_command": "git branch"})).completion.shell_command, "git branch")


if __name__ == "__main__":
    unittest.main()
