"""docpatch - post-processing and application of documentation edit proposals."""

__version__ = "0.1.0"
