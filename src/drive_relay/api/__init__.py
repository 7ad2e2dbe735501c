"""HTTP surface: Drive webhook receiver and health endpoint."""
