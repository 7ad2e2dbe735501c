"""Core data structures, ports and application state."""
