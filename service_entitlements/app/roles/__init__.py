"""
Role model package.

Defines the system roles, their ranks and default capability sets, and the
per-role prop field visibility configurations ("data views").

Modules of interest:
- models: Role and permission enums, user profile record.
- hierarchy: Rank lookups, role checks, capability resolution.
- data_views: Static field-visibility configuration per role.
"""
