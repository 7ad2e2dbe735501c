"""
drive-relay.

Watches Google Drive folders through push-notification channels and relays
new files to a Paperless-ngx endpoint.
"""

__version__ = "0.1.0"
