"""Deployment lifecycle: the aggregate, health checks and composite operations."""
