"""Output parser strategies for common web-toolchain checks.

A parser maps a check's raw output to error and warning counts.  The
engine never requires one: without a parser only the exit code decides.
Parsers raise :class:`OutputParseError` when the output is not in the
expected format; the engine then falls back to exit-code-only counting
and records the parse error on the result.

Named parsers are selected from YAML configuration via
:func:`build_parser`.
"""

from __future__ import annotations

import json
import re
import xml.etree.ElementTree as ET
from typing import Any, Callable

from src.gate_shared.models import CheckOutput, OutputParser, ParsedCounts
from src.shared.errors import ConfigurationError, OutputParseError

_TSC_ERROR = re.compile(r"\berror TS\d+\b")
_TSC_WARNING = re.compile(r"\bwarning TS\d+\b")
_PRETTIER_SUMMARY = re.compile(r"code style issues", re.IGNORECASE)


def _load_json(text: str, opening: str) -> Any:
    """Parse JSON from *text*, skipping any leading noise before *opening*."""
    start = text.find(opening)
    if start == -1:
        raise OutputParseError(f"no JSON {opening!r} found in output")
    try:
        return json.loads(text[start:])
    except json.JSONDecodeError as exc:
        raise OutputParseError(f"invalid JSON output: {exc}") from exc


def _int_field(data: dict[str, Any], key: str) -> int:
    value = data.get(key, 0)
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise OutputParseError(f"field {key!r} is not a non-negative integer")
    return value


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def parse_eslint_json(output: CheckOutput) -> ParsedCounts:
    """ESLint ``--format json``: one entry per file with error/warning counts."""
    data = _load_json(output.stdout, "[")
    if not isinstance(data, list):
        raise OutputParseError("ESLint JSON output is not a list of file results")

    errors = 0
    warnings = 0
    for entry in data:
        if not isinstance(entry, dict):
            raise OutputParseError("ESLint file result is not an object")
        errors += _int_field(entry, "errorCount")
        warnings += _int_field(entry, "warningCount")
    return ParsedCounts(error_count=errors, warning_count=warnings)


def parse_tsc(output: CheckOutput) -> ParsedCounts:
    """TypeScript compiler text output: counts ``error TSnnnn`` diagnostics."""
    text = output.combined
    return ParsedCounts(
        error_count=len(_TSC_ERROR.findall(text)),
        warning_count=len(_TSC_WARNING.findall(text)),
    )


def parse_prettier_check(output: CheckOutput) -> ParsedCounts:
    """``prettier --check``: every ``[warn] <file>`` line is an unformatted file."""
    errors = 0
    for line in output.combined.splitlines():
        stripped = line.strip()
        if stripped.startswith("[error]"):
            errors += 1
        elif stripped.startswith("[warn]"):
            if _PRETTIER_SUMMARY.search(stripped):
                continue
            errors += 1
    return ParsedCounts(error_count=errors)


def parse_jest_json(output: CheckOutput) -> ParsedCounts:
    """Jest ``--json``: failed tests and suites that crashed count as errors.

    Pending and todo tests are reported as warnings.
    """
    data = _load_json(output.stdout, "{")
    if not isinstance(data, dict) or "numFailedTests" not in data:
        raise OutputParseError("Jest JSON output has no 'numFailedTests'")
    errors = _int_field(data, "numFailedTests") + _int_field(
        data, "numRuntimeErrorTestSuites"
    )
    warnings = _int_field(data, "numPendingTests") + _int_field(data, "numTodoTests")
    return ParsedCounts(error_count=errors, warning_count=warnings)


def parse_junit_xml(output: CheckOutput) -> ParsedCounts:
    """JUnit XML on stdout: sums ``failures`` and ``errors`` over leaf suites.

    Skipped test cases are reported as warnings.
    """
    text = output.stdout.strip()
    start = text.find("<")
    if start == -1:
        raise OutputParseError("no XML found in output")
    try:
        root = ET.fromstring(text[start:])
    except ET.ParseError as exc:
        raise OutputParseError(f"invalid JUnit XML: {exc}") from exc

    suites = [s for s in root.iter("testsuite") if s.find("testsuite") is None]
    if not suites:
        raise OutputParseError("JUnit XML contains no <testsuite> elements")

    errors = 0
    warnings = 0
    for suite in suites:
        try:
            errors += int(suite.get("failures", 0)) + int(suite.get("errors", 0))
            warnings += int(suite.get("skipped", 0))
        except ValueError as exc:
            raise OutputParseError(f"non-numeric testsuite attribute: {exc}") from exc
    return ParsedCounts(error_count=errors, warning_count=warnings)


def make_regex_parser(
    error_pattern: str, warning_pattern: str | None = None
) -> OutputParser:
    """Build a parser that counts regex matches in the combined output.

    Raises:
        ConfigurationError: If either pattern does not compile.
    """
    try:
        error_re = re.compile(error_pattern, re.MULTILINE)
        warning_re = re.compile(warning_pattern, re.MULTILINE) if warning_pattern else None
    except re.error as exc:
        raise ConfigurationError("Invalid regex parser", issues=[str(exc)]) from exc

    def _parse(output: CheckOutput) -> ParsedCounts:
        text = output.combined
        warnings = len(warning_re.findall(text)) if warning_re else 0
        return ParsedCounts(error_count=len(error_re.findall(text)), warning_count=warnings)

    return _parse


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_SIMPLE_PARSERS: dict[str, OutputParser | None] = {
    "exit-code": None,
    "eslint-json": parse_eslint_json,
    "tsc": parse_tsc,
    "prettier-check": parse_prettier_check,
    "jest-json": parse_jest_json,
    "junit-xml": parse_junit_xml,
}


def _build_regex(options: dict[str, Any]) -> OutputParser:
    error_pattern = options.get("error_pattern")
    if not isinstance(error_pattern, str) or not error_pattern:
        raise ConfigurationError(
            "Invalid regex parser", issues=["'error_pattern' option is required"]
        )
    warning_pattern = options.get("warning_pattern")
    if warning_pattern is not None and not isinstance(warning_pattern, str):
        raise ConfigurationError(
            "Invalid regex parser", issues=["'warning_pattern' must be a string"]
        )
    return make_regex_parser(error_pattern, warning_pattern)


_FACTORIES: dict[str, Callable[[dict[str, Any]], OutputParser]] = {
    "regex": _build_regex,
}

PARSER_NAMES: list[str] = sorted([*_SIMPLE_PARSERS, *_FACTORIES])


def build_parser(name: str, options: dict[str, Any] | None = None) -> OutputParser | None:
    """Resolve a configured parser name to a parser callable.

    Args:
        name: One of :data:`PARSER_NAMES`.
        options: Parser options (only used by ``regex``).

    Returns:
        The parser, or ``None`` for exit-code-only checks.

    Raises:
        ConfigurationError: For unknown names or invalid options.
    """
    if name in _SIMPLE_PARSERS:
        return _SIMPLE_PARSERS[name]
    if name in _FACTORIES:
        return _FACTORIES[name](options or {})
    raise ConfigurationError(
        "Unknown output parser",
        issues=[f"'{name}' is not one of: {', '.join(PARSER_NAMES)}"],
    )
