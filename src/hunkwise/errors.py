"""Hunkwise exception hierarchy.

Keep this module small and dependency-free: it is imported broadly across the
project and by tests. The diff engine and hunk parser never raise; these are
for the configuration, CLI, and AI reconciliation layers.
"""


class HunkwiseError(Exception):
    """Base exception for all Hunkwise errors."""


class HunkwiseConfigError(HunkwiseError):
    """Raised for invalid user configuration."""


class HunkwiseInputError(HunkwiseError):
    """Raised when an input file cannot be read or decoded."""


class HunkwiseReconcileError(HunkwiseError):
    """Raised when the AI reconciliation step fails or returns unusable output."""
