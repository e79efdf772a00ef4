"""Shared constants used across the quality gate."""
from __future__ import annotations

# Application version
VERSION: str = "1.0.0"

# Logger / service name
SERVICE_NAME: str = "quality-gate"

# Process exit codes
EXIT_PASSED: int = 0
EXIT_FAILED: int = 1
EXIT_CONFIGURATION_ERROR: int = 2
EXIT_OUTPUT_ERROR: int = 3
EXIT_INTERRUPTED: int = 130
