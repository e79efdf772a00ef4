"""Configuration dataclasses and YAML loader for the gate runner.

A gate configuration file looks like::

    mode: parallel           # sequential | parallel
    fail_fast: false
    timeout_ms: 600000       # default per-check timeout
    cwd: .                   # relative to the config file
    checks:
      - name: lint
        command: npx eslint . --format json
        severity: critical
        parser: eslint-json
        timeout_ms: 120000

Unknown keys are silently ignored so that forward-compatible config files
work.  Everything else is validated up front: any problem raises a single
:class:`ConfigurationError` listing every issue found.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from src.gate_shared.models import (
    CheckDefinition,
    ExecutionMode,
    RunOptions,
    Severity,
)
from src.quality_gate.parsers import PARSER_NAMES, build_parser
from src.shared.errors import ConfigurationError

_MODES = [m.value for m in ExecutionMode]
_SEVERITIES = [s.value for s in Severity]


@dataclass
class CheckConfig:
    """One ``checks:`` entry."""

    name: str
    command: str | list[str]
    severity: str = "medium"
    parser: str = "exit-code"
    parser_options: dict[str, Any] = field(default_factory=dict)
    timeout_ms: int | None = None
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class GateConfig:
    """Top-level gate configuration."""

    checks: list[CheckConfig] = field(default_factory=list)
    mode: str = "sequential"
    fail_fast: bool = False
    timeout_ms: int | None = None
    cwd: str = "."

    def to_definitions(self) -> list[CheckDefinition]:
        """Build engine check definitions, in configuration order."""
        definitions: list[CheckDefinition] = []
        for check in self.checks:
            command = check.command if isinstance(check.command, str) else tuple(check.command)
            definitions.append(
                CheckDefinition(
                    name=check.name,
                    command=command,
                    severity=Severity(check.severity),
                    parse_output=build_parser(check.parser, check.parser_options),
                    timeout_ms=check.timeout_ms,
                    cwd=str(Path(self.cwd, check.cwd)) if check.cwd else None,
                    env=dict(check.env),
                )
            )
        return definitions

    def to_options(self) -> RunOptions:
        return RunOptions(
            mode=ExecutionMode(self.mode),
            fail_fast=self.fail_fast,
            timeout_ms=self.timeout_ms,
            cwd=self.cwd,
        )

    def with_overrides(
        self,
        mode: str | None = None,
        fail_fast: bool | None = None,
        timeout_ms: int | None = None,
        cwd: str | None = None,
    ) -> GateConfig:
        """Return a copy with command-line overrides applied.

        ``None`` leaves the configured value untouched.
        """
        changes: dict[str, Any] = {}
        if mode is not None:
            if mode not in _MODES:
                raise ConfigurationError(
                    "Invalid override", issues=[f"mode must be one of {_MODES}, got '{mode}'"]
                )
            changes["mode"] = mode
        if fail_fast is not None:
            changes["fail_fast"] = fail_fast
        if timeout_ms is not None:
            if not _is_positive_int(timeout_ms):
                raise ConfigurationError(
                    "Invalid override", issues=["timeout_ms must be a positive integer"]
                )
            changes["timeout_ms"] = timeout_ms
        if cwd is not None:
            changes["cwd"] = str(Path(cwd).resolve())
        return dataclasses.replace(self, **changes)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _pick(data: dict[str, Any], cls: type) -> dict[str, Any]:
    """Filter *data* to only keys accepted by *cls*."""
    valid = {f.name for f in cls.__dataclass_fields__.values()}
    return {k: v for k, v in data.items() if k in valid}


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _check_issues(index: int, entry: Any) -> list[str]:
    """Validate a single ``checks:`` entry."""
    if not isinstance(entry, dict):
        return [f"checks[{index}] must be a mapping"]

    name = entry.get("name")
    label = f"check '{name}'" if isinstance(name, str) and name.strip() else f"checks[{index}]"
    issues: list[str] = []

    if not isinstance(name, str) or not name.strip():
        issues.append(f"checks[{index}] needs a non-empty 'name'")

    command = entry.get("command")
    if isinstance(command, str):
        if not command.strip():
            issues.append(f"{label} has an empty 'command'")
    elif isinstance(command, list):
        if not command or not all(isinstance(a, str) and a for a in command):
            issues.append(f"{label} 'command' list must hold non-empty strings")
    else:
        issues.append(f"{label} needs a 'command' (string or list of strings)")

    severity = entry.get("severity", "medium")
    if severity not in _SEVERITIES:
        issues.append(f"{label} severity must be one of {_SEVERITIES}, got '{severity}'")

    timeout_ms = entry.get("timeout_ms")
    if timeout_ms is not None and not _is_positive_int(timeout_ms):
        issues.append(f"{label} timeout_ms must be a positive integer")

    cwd = entry.get("cwd")
    if cwd is not None and not isinstance(cwd, str):
        issues.append(f"{label} cwd must be a string")

    env = entry.get("env", {})
    if not isinstance(env, dict):
        issues.append(f"{label} env must be a mapping")

    parser = entry.get("parser", "exit-code")
    options = entry.get("parser_options", {})
    if not isinstance(options, dict):
        issues.append(f"{label} parser_options must be a mapping")
    elif parser not in PARSER_NAMES:
        issues.append(f"{label} parser must be one of {PARSER_NAMES}, got '{parser}'")
    else:
        try:
            build_parser(parser, options)
        except ConfigurationError as exc:
            issues.append(f"{label}: {exc.detail}")

    return issues


def parse_gate_config(raw: Any, base_dir: Path | str | None = None) -> GateConfig:
    """Validate raw YAML data and build a :class:`GateConfig`.

    Args:
        raw: The parsed YAML document.
        base_dir: Directory a relative top-level ``cwd`` is resolved
            against.  Defaults to the process working directory.

    Raises:
        ConfigurationError: Listing every problem found.
    """
    if not isinstance(raw, dict):
        raise ConfigurationError(
            "Invalid gate configuration", issues=["top level must be a mapping"]
        )

    issues: list[str] = []

    mode = raw.get("mode", "sequential")
    if mode not in _MODES:
        issues.append(f"mode must be one of {_MODES}, got '{mode}'")

    if not isinstance(raw.get("fail_fast", False), bool):
        issues.append("fail_fast must be true or false")

    timeout_ms = raw.get("timeout_ms")
    if timeout_ms is not None and not _is_positive_int(timeout_ms):
        issues.append("timeout_ms must be a positive integer")

    cwd = raw.get("cwd", ".")
    if not isinstance(cwd, str):
        issues.append("cwd must be a string")
        cwd = "."

    checks_raw = raw.get("checks")
    if not isinstance(checks_raw, list) or not checks_raw:
        issues.append("'checks' must be a non-empty list")
        checks_raw = []

    seen: set[str] = set()
    for index, entry in enumerate(checks_raw):
        issues.extend(_check_issues(index, entry))
        if isinstance(entry, dict) and isinstance(entry.get("name"), str):
            if entry["name"] in seen:
                issues.append(f"duplicate check name '{entry['name']}'")
            seen.add(entry["name"])

    if issues:
        raise ConfigurationError("Invalid gate configuration", issues=issues)

    checks: list[CheckConfig] = []
    for entry in checks_raw:
        picked = _pick(entry, CheckConfig)
        picked["env"] = {str(k): str(v) for k, v in picked.get("env", {}).items()}
        checks.append(CheckConfig(**picked))

    base = Path(base_dir) if base_dir is not None else Path.cwd()
    top_level = _pick(raw, GateConfig)
    top_level.pop("checks", None)
    top_level["cwd"] = str((base / cwd).resolve())

    return GateConfig(checks=checks, **top_level)


def load_gate_config(path: Path | str) -> GateConfig:
    """Load a gate configuration from a YAML file.

    A relative ``cwd`` in the file is resolved against the file's own
    directory, so a config can be run from anywhere.

    Args:
        path: Path to the config YAML.

    Returns:
        Populated configuration dataclass.

    Raises:
        ConfigurationError: If the file is missing, is not valid YAML, or
            fails validation.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Could not parse {path}", issues=[str(exc)]) from exc

    return parse_gate_config(raw, base_dir=path.parent.resolve())
