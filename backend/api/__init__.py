"""
API package - Request validation and middleware for the airlock endpoints.

This package provides:
- Pydantic param/body models (api.contracts.pydantic_models)
- Global middleware (request_id, error_envelope)
"""
