"""Persisted build manifests."""
