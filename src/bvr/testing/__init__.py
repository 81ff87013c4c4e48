"""Test execution for validating producer changes."""

from .models import FailedTest, TestFramework, TestReport
from .runner import CommandTestRunner, infer_framework, parse_output

__all__ = [
    "CommandTestRunner",
    "FailedTest",
    "TestFramework",
    "TestReport",
    "infer_framework",
    "parse_output",
]
