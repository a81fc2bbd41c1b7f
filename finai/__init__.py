"""finai - AI financial agent backend (tools, background analysis, alert feed)."""

__version__ = "0.1.0"
