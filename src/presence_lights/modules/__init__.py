"""
Modules package for presence-lights.

Modules are plug-ins that attach trigger behavior to the event bus.
"""

from presence_lights.modules.base import TriggerModule

__all__ = ["TriggerModule"]
