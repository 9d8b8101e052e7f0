"""Provisioning service layer.

Turns resolved settings into calls on the side-effecting collaborators.
"""

from pgcrate.services.provisioning import PostgresCrate

__all__ = ["PostgresCrate"]
