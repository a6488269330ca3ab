"""Selectors for the master data kernel (read side)."""

from mdm_kernel.selectors.duplicate_selector import DuplicateSelector
from mdm_kernel.selectors.history_selector import HistorySelector
from mdm_kernel.selectors.request_selector import RequestSelector

__all__ = [
    "DuplicateSelector",
    "HistorySelector",
    "RequestSelector",
]
