"""JSON ingestion pipeline.

This package decodes JSON payloads, flattens nested documents, and
selects the scalar fields written as time-series points.
"""
