"""
Core modules
"""
from .result import Ok, Err, Result

__all__ = [
    'Ok',
    'Err',
    'Result',
]
