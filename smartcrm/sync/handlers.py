"""
Entity handlers - route a queued operation to the remote store.

Each entity type registers one handler. Adding an entity type means
registering a new handler, not editing the engine:

    registry = default_registry(ContactAPIClient())
    registry.register("deal", DealHandler(deal_client))
"""

import logging
from typing import Any, Dict, List

from smartcrm.sync.errors import InvalidOperationError, UnknownEntityTypeError
from smartcrm.sync.models import EntityType, OperationType, SyncOperation

logger = logging.getLogger("smartcrm.sync.handlers")


class EntityHandler:
    """Create/update/delete for one entity type."""

    def create(self, entity_id: str, data: Any):
        raise NotImplementedError

    def update(self, entity_id: str, data: Any):
        raise NotImplementedError

    def delete(self, entity_id: str):
        raise NotImplementedError

    def dispatch(self, operation: SyncOperation, data: Any = None):
        """Apply an operation. ``data`` overrides the queued payload (conflict re-dispatch)."""
        payload = operation.data if data is None else data
        if operation.type == OperationType.CREATE.value:
            return self.create(operation.entity_id, payload)
        if operation.type == OperationType.UPDATE.value:
            return self.update(operation.entity_id, payload)
        if operation.type == OperationType.DELETE.value:
            return self.delete(operation.entity_id)
        raise InvalidOperationError(f"Unknown operation type: {operation.type}")


class ContactHandler(EntityHandler):
    """Contacts go to the hosted contact API."""

    def __init__(self, client):
        self.client = client

    def create(self, entity_id: str, data: Any):
        return self.client.create_contact(data)

    def update(self, entity_id: str, data: Any):
        return self.client.update_contact(entity_id, data)

    def delete(self, entity_id: str):
        return self.client.delete_contact(entity_id)


class LoggingStubHandler(EntityHandler):
    """Accepts every operation and only logs it.

    Files and automations have no remote dispatch wired yet.
    """

    def __init__(self, entity_type: str):
        self.entity_type = entity_type

    def _log(self, action: str, entity_id: str):
        logger.info("%s operation processed", self.entity_type.capitalize(), extra={
            "op_type": action, "entity_type": self.entity_type, "entity_id": entity_id,
        })

    def create(self, entity_id: str, data: Any):
        self._log("create", entity_id)

    def update(self, entity_id: str, data: Any):
        self._log("update", entity_id)

    def delete(self, entity_id: str):
        self._log("delete", entity_id)


class HandlerRegistry:
    """Handlers keyed by entity type tag."""

    def __init__(self):
        self._handlers: Dict[str, EntityHandler] = {}

    def register(self, entity_type, handler: EntityHandler):
        key = entity_type.value if isinstance(entity_type, EntityType) else str(entity_type)
        self._handlers[key] = handler

    def get(self, entity_type: str) -> EntityHandler:
        handler = self._handlers.get(entity_type)
        if handler is None:
            raise UnknownEntityTypeError(f"Unknown entity type: {entity_type}")
        return handler

    def __contains__(self, entity_type) -> bool:
        return entity_type in self._handlers

    def entity_types(self) -> List[str]:
        return sorted(self._handlers)


def default_registry(contact_client) -> HandlerRegistry:
    registry = HandlerRegistry()
    registry.register(EntityType.CONTACT, ContactHandler(contact_client))
    registry.register(EntityType.FILE, LoggingStubHandler(EntityType.FILE.value))
    registry.register(EntityType.AUTOMATION, LoggingStubHandler(EntityType.AUTOMATION.value))
    return registry
