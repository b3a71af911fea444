"""Trigger listeners: metadata injection and lifecycle helpers.

Usage:
    from metatrigger.listener import TriggerListener, trigger_mapped

    class AuditListener(TriggerListener):
        def subscribed_events(self):
            return ["before_flush"]

        def before_flush(self, session, flush_context, instances):
            if self.is_persist_right():
                self._persist_entities(session)
"""

from metatrigger.listener.base import LoadClassMetadataEvent, TriggerListener
from metatrigger.listener.declarative import apply_listener, entity_name, trigger_mapped
from metatrigger.listener.entities import EntitiesContainer

__all__ = [
    "EntitiesContainer",
    "LoadClassMetadataEvent",
    "TriggerListener",
    "apply_listener",
    "entity_name",
    "trigger_mapped",
]
