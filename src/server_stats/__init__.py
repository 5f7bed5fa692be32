"""server-stats: one-shot machine health report."""

__version__ = "0.1.0"
