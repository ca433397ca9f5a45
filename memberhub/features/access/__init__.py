"""
Authorization feature module.

Resolves an actor's jurisdiction and decides, as pure functions of subject
snapshots, whether an administrative action is allowed.
"""
