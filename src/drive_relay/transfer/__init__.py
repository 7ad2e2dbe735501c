"""Per-account file relaying (download, upload, move)."""
