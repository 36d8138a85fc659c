"""API layer - routers, middleware and response models."""
