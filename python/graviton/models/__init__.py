"""
graviton.models

Pydantic models shared across graviton.
"""
