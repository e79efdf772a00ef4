"""Shared data models, protocols and helpers for the quality gate."""
