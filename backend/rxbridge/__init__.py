"""Prescription RPC bridge: a stdio tool server, its spawning client, and the dashboard HTTP API."""

__version__ = "1.0.0"
