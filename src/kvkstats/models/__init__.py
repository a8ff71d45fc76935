"""Pydantic models for the backend wire format."""
