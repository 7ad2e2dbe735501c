"""Google Drive REST client, service-account auth and change tokens."""
