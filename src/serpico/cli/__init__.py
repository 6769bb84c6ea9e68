"""
serpico Command-Line Interface
==============================

- **serpico**: run a script on a MicroPython board

Implemented as a Click application.
"""

__all__ = ["serpico"]
