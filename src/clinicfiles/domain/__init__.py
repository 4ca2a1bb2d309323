"""
Domain layer: entities, value objects and enums for stored files.
"""
