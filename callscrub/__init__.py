"""callscrub - sensitive-span detection and audio redaction for call recordings."""

__version__ = "0.1.0"
