"""
Scrape target identity shared with the target allocator.
"""

from .target import TargetItem, fingerprint_to_string, label_set_fingerprint, new_item

__all__ = [
    "TargetItem",
    "fingerprint_to_string",
    "label_set_fingerprint",
    "new_item",
]
