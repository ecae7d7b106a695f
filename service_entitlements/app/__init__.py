"""
Entitlements Service application package.

Decides, for a user and an attempted action, whether the action is
allowed given the user's role, subscription plan limits (extended by
purchased add-ons) and current resource counts.

- main: HTTP surface and composition root.
- roles: role hierarchy, permissions and role data views.
- plans: plan limit tables, provider metadata parsing, billing client.
- addons: add-on catalog and effective limit composition.
- rules: evaluation models and the entitlement evaluator.
- limits: limit checks against document-store counts (fail open).
- store: document store protocol and adapters.
- cache: data-view TTL cache and Redis pricing-config cache.
- subscription: per-user subscription resolution.
"""
