"""
Application layer: storage engine, ports and caller-facing services.
"""
