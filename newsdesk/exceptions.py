"""
Exception types for Newsdesk.
"""


class NewsdeskError(Exception):
    """Base class for all Newsdesk errors."""


class ConfigError(NewsdeskError):
    """Raised when a configuration file cannot be read."""
