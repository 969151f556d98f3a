"""Evacuation scenario generator.

Produces calm-egress and rapid-egress composites of a facility backdrop by
uploading local assets and delegating synthesis to a remote image model.
"""

__version__ = "0.1.0"
