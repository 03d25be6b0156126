"""Door controller internals.

The controller in :mod:`pygaragedoor.controller` composes these pieces:
the state tracker, the pulse controller, the transition simulator and
the sensor-less toggle table.
"""
