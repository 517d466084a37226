"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries for each domain area. They assume
the provided AsyncSession already carries the acting user (see
maintenance_api.core.deps.get_user_session) or runs in service context.
"""
