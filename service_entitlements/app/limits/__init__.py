"""
Limit checking against live document-store counts.
"""
