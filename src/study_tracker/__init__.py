"""Study-session tracking and productivity analytics."""

__version__ = "0.3.0"
