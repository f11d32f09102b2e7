"""User interface components for braindump."""

from .console import JournalConsoleUI

__all__ = ["JournalConsoleUI"]
