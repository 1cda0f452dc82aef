"""
API route modules for tenant-owned practice data.

This package contains subrouters for:
- Cases: list, fetch within scope, open
- Invoices: per-status summary

Routers are included from practice_api.api.main (under the /api/v1 prefix).
"""
