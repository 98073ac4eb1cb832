"""
Application layer - Use cases and orchestration for Votegate.

This layer contains:
- Application services (vote, threshold trigger, lifecycle, reconciler)
- Port definitions (abstract interfaces for infrastructure)

IMPORT RULES:
- CAN import from: domain
- CANNOT import from: infrastructure, api
"""
