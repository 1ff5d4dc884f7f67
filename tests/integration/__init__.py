"""
Integration tests.

Component interactions through CacheManager over real memory and file
stores. Redis-backed tests are marked `redis` and need a running server.
"""
