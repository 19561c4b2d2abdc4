"""Reconciliation and scoring engine.

Pure functions that turn fresh platform observations and a prior
snapshot into a fully populated weekly snapshot.
"""
