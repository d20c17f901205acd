"""
Internal utilities tests.

Scope
- The Unset sentinel: singleton, falsy, PEP 604 unions, sealed.
- coalesce(), kebab() and rename().
- levenshtein() and the did-you-mean ranking of similar().
- IntrospectableType records: typename and mirrored read-only properties.

Conventions
- Test method names follow CamelCase per project convention.
"""
import unittest
from unittest import TestCase

from argora.utils import *


class TestUnset(TestCase):
    """
    Test suite for the `Unset` sentinel.
    """

    def testSingleton(self) -> None:
        self.assertIs(UnsetType(), Unset)

    def testFalsyButDistinct(self) -> None:
        self.assertFalse(Unset)
        self.assertIsNot(Unset, None)
        self.assertEqual(repr(Unset), "Unset")

    def testUnionInIsinstance(self) -> None:
        """
        `str | Unset` is usable as an isinstance() target.
        """
        self.assertTrue(isinstance("x", str | Unset))
        self.assertTrue(isinstance(Unset, str | Unset))
        self.assertFalse(isinstance(1, str | Unset))

    def testFinal(self) -> None:
        with self.assertRaises(TypeError):
            type("Sub", (UnsetType,), {})


class TestHelpers(TestCase):
    """
    Test suite for the small helpers.
    """

    def testCoalesceKeepsFalseyValues(self) -> None:
        self.assertEqual(coalesce(Unset, "fallback"), "fallback")
        self.assertIsNone(coalesce(None, "fallback"))
        self.assertEqual(coalesce(0, 1), 0)
        self.assertIsNone(coalesce(Unset))

    def testKebab(self) -> None:
        self.assertEqual(kebab("dry_run"), "dry-run")
        self.assertEqual(kebab("dryRun"), "dry-run")
        self.assertEqual(kebab("_private_"), "private")
        self.assertEqual(kebab("output"), "output")

    def testRename(self) -> None:
        @rename("renamed")
        def original():
            pass

        self.assertEqual(original.__name__, "renamed")
        self.assertEqual(original.__qualname__, "renamed")
        with self.assertRaises(TypeError):
            rename(1, "name")


class TestSimilar(TestCase):
    """
    Test suite for the did-you-mean helpers.
    """

    def testLevenshtein(self) -> None:
        self.assertEqual(levenshtein("kitten", "sitting"), 3)
        self.assertEqual(levenshtein("", "abc"), 3)
        self.assertEqual(levenshtein("same", "same"), 0)

    def testTruncatedWordSuggestsEveryPrefixMatch(self) -> None:
        self.assertEqual(similar("fo", ["format", "force"]), ["force", "format"])

    def testTypoWithinThreshold(self) -> None:
        self.assertEqual(similar("biuld", ["build", "deploy", "test"]), ["build"])

    def testCaseInsensitive(self) -> None:
        self.assertEqual(similar("BUILD", ["build"]), ["build"])

    def testAtMostThreeSuggestions(self) -> None:
        self.assertEqual(len(similar("a", ["ab", "ac", "ad", "ae"])), 3)

    def testNothingClose(self) -> None:
        self.assertEqual(similar("zzzzzz", ["build", "deploy"]), [])


class TestIntrospectable(TestCase):
    """
    Test suite for IntrospectableType records.
    """

    def setUp(self) -> None:
        class SampleRecord(metaclass=IntrospectableType):
            __introspectable__ = ("name", "tags")

            def __init__(self, name, tags):
                self._name = name
                self._tags = tags

        self.record = SampleRecord("x", ["a"])

    def testTypename(self) -> None:
        self.assertEqual(type(self.record).__typename__, "sample-record")

    def testMirroredPropertiesAreReadOnlyCopies(self) -> None:
        tags = self.record.tags
        tags.append("b")
        self.assertEqual(self.record.tags, ["a"])
        with self.assertRaises(AttributeError):
            self.record.name = "y"

    def testRepr(self) -> None:
        self.assertIn("name='x'", repr(self.record))


if __name__ == "__main__":
    unittest.main()
