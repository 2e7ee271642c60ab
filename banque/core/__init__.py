"""Core configuration, logging, errors and formatting."""

from .exceptions import (
    BanqueError,
    ConfigurationError,
    InvalidParameterError,
    InvalidReportError,
    StorageError,
    UnknownModuleError,
)
from .formatting import format_eur, format_pct, parse_number_fr, round2
from .settings import BanqueSettings, get_settings

__all__ = [
    "parse_number_fr",
    "round2",
    "format_eur",
    "format_pct",
    "BanqueSettings",
    "get_settings",
    # Exceptions
    "BanqueError",
    "StorageError",
    "InvalidParameterError",
    "UnknownModuleError",
    "InvalidReportError",
    "ConfigurationError",
]
