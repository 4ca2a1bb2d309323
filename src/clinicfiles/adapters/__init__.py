"""
Infrastructure adapters for the storage ports.
"""
