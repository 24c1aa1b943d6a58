# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# hive/core/exceptions.py
"""Custom exceptions for Hive."""


class HiveError(Exception):
    """Base exception for all Hive errors."""

    pass


class ConfigurationError(HiveError):
    """Raised when required configuration is missing or invalid."""

    pass


class SecurityError(HiveError):
    """Raised when a security constraint is violated."""

    pass


class PathTraversalError(SecurityError):
    """Raised when a path traversal attempt is detected."""

    pass
