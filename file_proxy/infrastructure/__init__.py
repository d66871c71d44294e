"""
Infrastructure layer - external service integrations.

- storage: Object storage (S3 and S3-compatible), the backend the
  proxy router forwards to

These wrappers translate between external formats and the mapping layer's
BackendResponse values.
"""
