"""
Subscription plans: static limit tables, provider metadata parsing, and
the billing-provider pricing config client.
"""
