"""Zero-tolerance quality gate engine.

Runs independent checks (lint, type-check, format, test, build) as
external processes, aggregates their outcomes, and renders the report.
"""
