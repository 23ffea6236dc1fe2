"""
Utility functions.
"""

from typing import List, Any


def chunked(lst: List[Any], size: int):
    """
    Split list into chunks of specified size.
    """
    for i in range(0, len(lst), size):
        yield lst[i:i + size]
