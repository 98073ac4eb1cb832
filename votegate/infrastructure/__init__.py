"""
Infrastructure layer - External adapters for Votegate.

This layer contains:
- PostgreSQL feature store (SQLAlchemy async)
- GitHub workflow dispatcher and hCaptcha verifier (httpx)
- In-memory stubs for development and testing
- Observability (structlog) and monitoring (Prometheus)

IMPORT RULES:
- CAN import from: domain, application
- Implements ports defined in application layer
"""
