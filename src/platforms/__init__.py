"""Platform fetch clients.

This package wraps each external coding platform behind a rate-limited,
retrying client that returns uniform statistics.
"""
