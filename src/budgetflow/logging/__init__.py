"""Centralized logging configuration for BudgetFlow.

Standard usage:
    ```python
    import logging
    from budgetflow.logging import setup_logging

    # Configure once at startup from the current profile's settings
    setup_logging()

    # Get loggers in each module
    logger = logging.getLogger(__name__)
    ```
"""

from .config import setup_logging

__all__ = ["setup_logging"]
