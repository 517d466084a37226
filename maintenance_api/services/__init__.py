"""
Service layer holding business rules and orchestration.

Services receive an AsyncSession and delegate data access to repositories.
"""
