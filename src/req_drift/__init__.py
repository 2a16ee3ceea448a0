"""req-drift: compare declared Python requirements with the installed environment."""

__version__ = "1.0.0"
