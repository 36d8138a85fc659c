"""
Domain layer - Business entities, models, schemas, and schedule helpers.
"""
