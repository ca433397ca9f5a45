"""
Event delegation feature module.

Time-bound event manager grants, their registration forms and the delegates
those forms collect.
"""
