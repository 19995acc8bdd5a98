from __future__ import annotations


class MaintenanceHubError(Exception):
    """Base class for errors raised by maintenance_hub."""


class ConfigurationError(MaintenanceHubError):
    pass


class SourceError(MaintenanceHubError):
    """A page request against a row source failed."""

    def __init__(self, table: str, message: str):
        super().__init__(f"{table}: {message}")
        self.table = table


class UnknownFeatureError(MaintenanceHubError, KeyError):
    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown feature '{self.name}'"


class DuplicateRoleAssignmentError(MaintenanceHubError):
    pass


class CustomRoleNotFoundError(MaintenanceHubError):
    pass
