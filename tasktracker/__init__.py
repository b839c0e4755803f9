"""tasktracker - data-access layer for a multi-user task tracker."""

__version__ = "0.1.0"
