"""Adapters layer.

Adapters implement Port interfaces defined in the domain layer.
"""
