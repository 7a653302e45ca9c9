"""
Voucher Finder package initialization.

Initializes logging early to ensure all modules have properly configured logging.
"""
from voucher_finder.utils.logging import setup_logging

# Initialize logging on package import
setup_logging()
