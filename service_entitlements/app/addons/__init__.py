"""
Subscription add-ons.

- catalog: the versioned, in-memory list of purchasable add-ons.
- composer: active add-on filtering and effective limit composition.
"""
