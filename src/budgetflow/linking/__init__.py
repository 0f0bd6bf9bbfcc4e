"""Bank linking: discovery and the requisition authorization flow."""

from .orchestrator import ConnectionOrchestrator, LinkState, parse_callback_reference

__all__ = ["ConnectionOrchestrator", "LinkState", "parse_callback_reference"]
