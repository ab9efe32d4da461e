"""Real-time odds engine for ShibPlay prediction-market rounds."""

__version__ = "0.1.0"
