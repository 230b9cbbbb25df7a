"""Service layer for business logic.

Services encapsulate all business logic, keeping routes thin and focused
on HTTP handling. This separation provides:
- Clear business rules in one place
- Orchestration of repositories, blob storage and rendering
- Reusable business logic across multiple endpoints

Layer hierarchy:
    Routes (HTTP) -> Services (Business Logic) -> Repositories (Database)

Services should:
- Contain all business rules and validation
- Orchestrate calls to repositories
- Raise core.errors.ServiceError subclasses for expected failures

Services should NOT:
- Directly execute SQL queries (use repositories)
- Know about HTTP request/response details
"""
