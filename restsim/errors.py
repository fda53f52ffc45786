# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# errors.py
# -----------------------------------------------------------------------------
# Purpose:
#   Exception types raised at the configuration and command boundaries.
#
# Design notes:
#   - InvariantError marks a logic defect (double occupancy, a queued agent
#     holding the fixture). It is never caught inside the package.
#   - Input errors are also ValueErrors and InvariantError a RuntimeError, so
#     callers catching the builtin types keep working.
# -----------------------------------------------------------------------------

from __future__ import annotations


class RestsimError(Exception):
    """Base class for all package errors."""


class LayoutError(RestsimError, ValueError):
    """A layout mapping could not be turned into a Layout."""


class ConfigError(RestsimError, ValueError):
    """Config file or simulation parameters are malformed."""


class CommandError(RestsimError, ValueError):
    """A host message did not describe a known command."""


class InvariantError(RestsimError, RuntimeError):
    """Occupancy bookkeeping reached a state that must never exist."""
