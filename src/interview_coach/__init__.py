"""Session lifecycle, transcript persistence and checkout pricing for interview coaching."""

__version__ = "0.1.0"
