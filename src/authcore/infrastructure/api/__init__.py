"""HTTP layer: FastAPI application, dependencies, routes and schemas."""
