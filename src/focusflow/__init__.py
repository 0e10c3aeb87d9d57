"""focusflow: task hierarchy engine for a personal productivity tracker."""

__version__ = "0.1.0"
