"""
Exception hierarchy for webform CiviCRM migrations.

Row-level failures raise MigrateSkipRowError; the orchestrator records the
row as failed in the id map and moves on to the next row.
"""


class MigrateError(Exception):
    """Base exception for all migration errors."""
    pass


class MigrateSkipRowError(MigrateError):
    """
    Raised to abandon the current row.

    Args:
        message: Reason the row was skipped
        save_to_map: Whether the skip is recorded in the id map
    """

    def __init__(self, message: str = "", save_to_map: bool = True):
        super().__init__(message)
        self.message = message
        self.save_to_map = save_to_map


class LegacyDataError(MigrateSkipRowError):
    """Raised when legacy table data cannot be decoded."""
    pass


class ConfigurationError(MigrateError):
    """Raised for missing or invalid migration configuration."""
    pass


class PluginNotFoundError(MigrateError):
    """Raised when a webform handler plugin id is not registered."""
    pass
