"""State/store layer.

This package is the single source of truth for the entity collections of one
city session. Feed snapshots and one-shot fetches are applied here; every
other component only reads derived views.
"""
