"""Room domain services: atomic mutators, change notification and upkeep.

Imported by HTTP routes and socket handlers, keeping transport concerns
separated from the room state machine.
"""
