"""Custom exceptions for banque.

Domain-specific exception types. Most data conditions in the pipeline are
represented as values (flags, missing items, penalties); these exceptions cover
storage failures caught at the store boundary and programming errors.
"""

from __future__ import annotations

from typing import Any


class BanqueError(Exception):
    """Base exception for all banque errors."""
    pass


# --- Storage Errors ---

class StorageError(BanqueError):
    """A storage backend could not read or persist a value."""

    def __init__(self, key: str, reason: str = ""):
        self.key = key
        self.reason = reason
        msg = f"Storage failure for key '{key}'"
        if reason:
            msg += f" - {reason}"
        super().__init__(msg)


# --- Parameter Errors ---

class InvalidParameterError(BanqueError):
    """Invalid parameter value provided."""

    def __init__(self, param_name: str, value: Any, reason: str = ""):
        self.param_name = param_name
        self.value = value
        self.reason = reason
        msg = f"Invalid parameter '{param_name}': {value}"
        if reason:
            msg += f" - {reason}"
        super().__init__(msg)


class UnknownModuleError(InvalidParameterError):
    """A module key outside the fixed ModuleKey enumeration was addressed."""

    def __init__(self, value: Any):
        super().__init__("module_key", value, "not a snapshot module")


# --- Report Errors ---

class InvalidReportError(BanqueError):
    """A report handed to an exporter lacks generation timestamp or meta."""
    pass


# --- Configuration Errors ---

class ConfigurationError(BanqueError):
    """Error in scoring or application configuration."""
    pass
