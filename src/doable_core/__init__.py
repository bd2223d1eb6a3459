"""Doable Core - teams, projects, issues and invitations.

Modules:
- config: Settings loaded from the environment
- database: Engine and session factory
- models: SQLAlchemy models
- schemas: Request/response schemas
- crud: Team-scoped persistence operations
- email: Invitation email delivery
"""

__version__ = "1.0.0"
