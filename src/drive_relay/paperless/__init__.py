"""Paperless-ngx document upload client."""
