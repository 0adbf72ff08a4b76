"""jjdeck: a terminal UI for the Jujutsu version control system."""

__version__ = "0.4.0"
