"""
Utility modules for the voucher finder.
"""
from voucher_finder.utils.logging import setup_logging, get_logger

__all__ = ["setup_logging", "get_logger"]
