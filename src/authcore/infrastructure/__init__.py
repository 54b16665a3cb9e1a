"""Infrastructure layer - External dependencies and implementations.

This layer contains all external dependencies including:
- Database adapters (SQLAlchemy)
- API routes (FastAPI)
- Password hashing and JWT signing

The infrastructure layer implements the interfaces defined in the
domain layer.
"""
