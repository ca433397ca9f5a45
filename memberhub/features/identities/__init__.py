"""
Identity registry feature module.

Membership applications, member profiles, membership ids, ID cards and
sharing consent.
"""
