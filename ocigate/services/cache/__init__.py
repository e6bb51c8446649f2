"""Build cache keys and the file-based cache store."""
