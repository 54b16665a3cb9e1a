"""Domain layer - entities, errors and the session protocol.

Nothing in this package talks to the database or the web framework
directly; collaborators are passed in by the infrastructure layer.
"""
