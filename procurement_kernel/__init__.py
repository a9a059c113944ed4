"""
Procurement Kernel

Shared core for the purchase-requisition workflow:
- Typed errors and structured logging
- Append-only audit history enforced at the ORM layer
- Explicit caller context on every operation
- Injectable clock for deterministic timestamps
"""

__version__ = "0.1.0"
