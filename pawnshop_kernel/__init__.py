"""
Pawnshop Kernel

Shared foundation for the pawnshop back-office worker:
- Loan, payment, customer and notification domain types
- Injectable clock
- Typed exception hierarchy
- Structured JSON logging
- SQLAlchemy engine, ORM models and repositories
"""

__version__ = "0.1.0"
