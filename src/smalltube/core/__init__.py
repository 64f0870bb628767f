"""Core infrastructure: TTL cache, key-rotating fetch client, usage accounting and persistence."""
