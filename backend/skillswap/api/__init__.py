"""HTTP API support: dependency providers for the FastAPI routes."""
