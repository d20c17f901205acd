"""
Validation bridge behavioral tests.

Scope
- Models, plain and discriminated unions through pydantic.
- Issue normalization (path, message, code).
- one_of() exclusivity and all_of() merging.

Conventions
- Test method names follow CamelCase per project convention.
"""
import unittest
from typing import Annotated, Literal, Union
from unittest import TestCase

from pydantic import BaseModel, Field

from argora import validate, one_of, all_of


class Serve(BaseModel):
    port: int = 8080
    host: str = "localhost"


class Left(BaseModel):
    left: int


class Right(BaseModel):
    right: int


class Start(BaseModel):
    action: Literal["start"]


class Stop(BaseModel):
    action: Literal["stop"]
    force: bool = False


class TestValidate(TestCase):
    """Behavioral tests for validate()."""

    def testValidModel(self):
        result = validate(Serve, {"port": "9000"})
        self.assertTrue(result.ok)
        self.assertEqual(result.data, Serve(port=9000))
        self.assertEqual(result.issues, ())

    def testIssuesAreNormalized(self):
        result = validate(Serve, {"port": "abc"})
        self.assertFalse(result.ok)
        self.assertIsNone(result.data)
        issue, = result.issues
        self.assertEqual(issue.path, "port")
        self.assertEqual(issue.code, "int_parsing")
        self.assertTrue(str(issue).startswith("port: "))

    def testMissingSchemaValidatesToNone(self):
        result = validate(None, {})
        self.assertTrue(result.ok)
        self.assertIsNone(result.data)

    def testDiscriminatedUnion(self):
        schema = Annotated[Union[Start, Stop], Field(discriminator="action")]
        result = validate(schema, {"action": "stop", "force": True})
        self.assertTrue(result.ok)
        self.assertIsInstance(result.data, Stop)
        self.assertTrue(result.data.force)


class TestCombinators(TestCase):
    """Behavioral tests for one_of() and all_of()."""

    def testExactlyOneBranch(self):
        result = validate(one_of(Left, Right), {"left": 1})
        self.assertTrue(result.ok)
        self.assertIsInstance(result.data, Left)

    def testSeveralBranchesAreRejected(self):
        result = validate(one_of(Left, Right), {"left": 1, "right": 2})
        self.assertFalse(result.ok)
        self.assertEqual(result.issues[0].code, "one_of")
        self.assertIn("2 alternatives", result.issues[0].message)

    def testNoBranchReportsEveryIssue(self):
        result = validate(one_of(Left, Right), {})
        self.assertFalse(result.ok)
        self.assertEqual(result.issues[0].code, "one_of")
        self.assertEqual({issue.path for issue in result.issues[1:]}, {"left", "right"})

    def testIntersectionNeedsEveryOperand(self):
        schema = all_of(Left, Right)
        result = validate(schema, {"left": 1, "right": 2})
        self.assertTrue(result.ok)
        self.assertEqual((result.data.left, result.data.right), (1, 2))
        self.assertEqual([issue.path for issue in validate(schema, {"left": 1}).issues], ["right"])

    def testIntersectionWithUnion(self):
        schema = all_of(Serve, Annotated[Union[Start, Stop], Field(discriminator="action")])
        result = validate(schema, {"action": "start", "port": "1"})
        self.assertTrue(result.ok)
        self.assertEqual(result.data.action, "start")
        self.assertEqual(result.data.port, 1)


if __name__ == "__main__":
    unittest.main()
