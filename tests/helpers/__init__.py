"""Test helper utilities for the pgx test suite."""

from tests.helpers.cli_assertions import (
    assert_command_failed,
    assert_command_success,
    assert_error_message,
    assert_output_contains,
    stdout_lines,
)

__all__ = [
    "assert_command_success",
    "assert_command_failed",
    "assert_output_contains",
    "assert_error_message",
    "stdout_lines",
]
