"""
file-proxy - a REST API over per-user folders in an object store.

This package contains the complete application:
- core: Framework-agnostic integration mapping (paths, translation,
  status classification, CORS)
- infrastructure: Object storage backends
- api: FastAPI routes, middleware and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
