"""
Role permission assignment feature module.

Loads a role's permission tree, lets an assignment session toggle grants on an
immutable copy, and replaces the role's grant set in one transaction.
"""
