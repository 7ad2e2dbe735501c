"""Routing of notifications into change collection and file transfers."""
