"""
Cache package for Entitlements Service.

- data_views: in-process TTL cache of role data views and the service
  that reads through it.
- redis_cache: Redis-backed cache for the billing provider's pricing
  config, shared across service instances.
"""
