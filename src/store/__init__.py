"""Time-series storage layer.

This package defines the store collaborator protocols, the InfluxDB
implementation, and the SDK handle bound to one logical database.
"""
