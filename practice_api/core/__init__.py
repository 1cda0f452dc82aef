"""
Core application utilities for settings, logging and FastAPI dependencies.

This package provides:
- Application-level settings (separate from DB settings)
- Logging configuration with correlation/tenant context
- Dependency helpers (request tenant scope, guarded repositories)
"""
