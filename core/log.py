#!/usr/bin/env python3
"""
Log Module
Progress/status output shared by the converter and all exporters.
"""

import sys
import threading


class ConversionLog:
    """Callback + print progress log

    Messages are forwarded to an optional progress callback and printed.
    In quiet mode only errors get through.
    """

    def __init__(self, progress_callback=None, quiet=False):
        """Initialize log

        Args:
            progress_callback: Optional function to call for progress updates
                              Signature: callback(message: str) -> None
            quiet: Only emit errors
        """
        self.progress_callback = progress_callback
        self.quiet = quiet
        self.error_count = 0
        self._lock = threading.Lock()

    def _emit(self, message, stream=None):
        with self._lock:
            if self.progress_callback:
                self.progress_callback(message)
            print(message, file=stream or sys.stdout)

    def log(self, message):
        """Send a progress/status message"""
        if not self.quiet:
            self._emit(message)

    def debug(self, message):
        """Send a detail message (per-resource export traces)"""
        if not self.quiet:
            self._emit(message)

    def error(self, message):
        """Send an error message, always emitted"""
        self.error_count += 1
        self._emit(message, sys.stderr)
