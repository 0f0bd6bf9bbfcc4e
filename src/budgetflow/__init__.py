"""BudgetFlow: bank account linking and transaction synchronization.

This package provides the core of the BudgetFlow personal finance tool:
- GoCardless Bank Account Data integration for bank discovery and linking
- A requisition state machine for the bank authorization flow
- Scheduled, idempotent transaction synchronization into DuckDB
- Deterministic rule-based transaction categorization
- Typer CLI for all operations
"""

__version__ = "0.1.0"
