"""Releasegate: backend for a GitHub release-notes generator."""
