"""BudgetFlow CLI package.

This package provides a unified command-line interface for bank discovery,
account linking and transaction sync.
"""

from .main import app, main

__all__ = ["app", "main"]
