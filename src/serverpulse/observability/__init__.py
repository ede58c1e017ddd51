"""Observability for serverpulse.

structlog setup and the health checks served at /api/health.
"""
