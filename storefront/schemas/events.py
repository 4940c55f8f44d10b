"""Live event schemas pushed to connected clients.

Every event is ``{"type": ..., "payload": {...}}`` with camelCase payload keys.
``HubEvent`` is the closed set of kinds the hub accepts.
"""

from datetime import datetime, timezone
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EventPayload(BaseModel):
    """Base payload: camelCase on the wire, stamped with the publish time."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    timestamp: datetime = Field(default_factory=_now, description="Publish timestamp")


class ConnectedPayload(EventPayload):
    connection_id: str = Field(description="Server-assigned connection ID")


class OrderNewPayload(EventPayload):
    order_id: UUID = Field(description="New order ID")
    user_id: UUID = Field(description="Customer who placed the order")
    total: int = Field(description="Order total in cents")


class OrderAvailablePayload(EventPayload):
    order_id: UUID = Field(description="Order ID")
    delivery_address: str = Field(description="Delivery address")


class OrderUpdatedPayload(EventPayload):
    order_id: UUID = Field(description="Order ID")
    status: str = Field(description="New order status")
    user_id: UUID = Field(description="Owning customer ID")
    driver_id: UUID | None = Field(default=None, description="Assigned driver ID")
    total: int | None = Field(default=None, description="Order total in cents")


class OrderAssignedPayload(EventPayload):
    order_id: UUID = Field(description="Order ID")
    delivery_address: str = Field(description="Where to deliver")


class Location(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class DriverLocationPayload(EventPayload):
    driver_id: UUID = Field(description="Driver ID")
    location: Location


class ConnectedEvent(BaseModel):
    type: Literal["connected"] = "connected"
    payload: ConnectedPayload


class OrderNewEvent(BaseModel):
    type: Literal["order:new"] = "order:new"
    payload: OrderNewPayload


class OrderAvailableEvent(BaseModel):
    type: Literal["order:available"] = "order:available"
    payload: OrderAvailablePayload


class OrderUpdatedEvent(BaseModel):
    type: Literal["order:updated"] = "order:updated"
    payload: OrderUpdatedPayload


class OrderAssignedEvent(BaseModel):
    type: Literal["order:assigned"] = "order:assigned"
    payload: OrderAssignedPayload


class DriverLocationEvent(BaseModel):
    type: Literal["driver:location"] = "driver:location"
    payload: DriverLocationPayload


HubEvent = Annotated[
    Union[
        ConnectedEvent,
        OrderNewEvent,
        OrderAvailableEvent,
        OrderUpdatedEvent,
        OrderAssignedEvent,
        DriverLocationEvent,
    ],
    Field(discriminator="type"),
]

hub_event_adapter: TypeAdapter[HubEvent] = TypeAdapter(HubEvent)


def serialize_event(event: BaseModel) -> str:
    """Render an event as the JSON text sent to clients."""
    return event.model_dump_json(by_alias=True, exclude_none=True)


def parse_event(data: str | bytes) -> HubEvent:
    """Parse JSON text back into the matching event model."""
    return hub_event_adapter.validate_json(data)
