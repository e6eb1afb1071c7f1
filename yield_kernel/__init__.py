"""
Yield Kernel

Persistence, error and logging foundation for the carcass yield engine:
- Decimal-precise ORM models for the catalog, yield templates, real yields
  and the general stock ledger
- Atomic transactions via session_scope()
- Typed, code-carrying exceptions
- Structured JSON logging
"""

__version__ = "0.1.0"
