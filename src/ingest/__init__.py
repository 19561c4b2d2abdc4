"""Batch ingestion pipeline.

This package validates submitted rosters, dispatches one task per student
into a shared worker pool, and tracks batch progress and lifecycle.
"""
