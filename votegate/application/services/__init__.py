"""Application services - Use case orchestration.

This module contains the services that drive the vote pipeline:
vote toggling, threshold detection, the implementation lifecycle,
completion reconciliation and the live broadcast fan-out.
"""
