"""
Utility modules

Import helpers directly from their module:

    from epubtrans.utils.unified_logger import get_logger
"""

__all__ = []
