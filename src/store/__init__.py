"""Persistence layer.

This package stores student profiles, immutable weekly snapshots, and
ingestion batch lifecycle records under the configured data-root.
"""
