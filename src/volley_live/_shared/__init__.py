# Area: Shared
"""
Shared utilities used by the engine, the sync layer and the CLI.

This package contains:
- Logging configuration
- The voice capture safety timeout
"""

from .logging_config import setup_logging, log_batch_error
from .capture import CaptureSession

__all__ = [
    "setup_logging",
    "log_batch_error",
    "CaptureSession",
]
