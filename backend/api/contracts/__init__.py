"""API contracts - Pydantic models for request params and bodies."""
