from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from component_bus.channels.subscriptions import Visibility
from component_bus.page import BrowserEvent, CycleResult


class ComponentSpec(BaseModel):
    """A component to mount, by registered name, with its initial attributes."""

    component: str = Field(..., description="Registered component name, e.g. 'post-list'")
    attributes: Dict[str, Any] = Field(default_factory=dict)


class CreatePageRequest(BaseModel):
    components: List[ComponentSpec] = Field(default_factory=list)


class InstanceInfo(BaseModel):
    instance_id: str
    component: str
    listener_keys: List[str] = Field(default_factory=list)


class PageResponse(BaseModel):
    page_id: str
    instances: List[InstanceInfo] = Field(default_factory=list)


class ActionRequest(BaseModel):
    args: List[Any] = Field(default_factory=list)
    kwargs: Dict[str, Any] = Field(default_factory=dict)


class ScriptEventRequest(BaseModel):
    """A native event dispatched by script on the page."""

    name: str = Field(..., min_length=1)
    detail: Any = Field(default=None)


class TransportMessageRequest(BaseModel):
    """An inbound message from the external pub/sub transport."""

    channel: str = Field(..., min_length=1)
    visibility: Visibility = Field(default=Visibility.PUBLIC)
    event: str = Field(..., min_length=1)
    payload: Any = Field(default=None)


class EventSummary(BaseModel):
    name: str
    scope: str
    origin_id: Optional[str] = None
    recipients: List[str] = Field(default_factory=list)


class HandlerErrorSummary(BaseModel):
    event_name: str
    instance_id: str
    handler: str
    detail: Optional[str] = None


class CycleResponse(BaseModel):
    trigger: str
    events: List[EventSummary] = Field(default_factory=list)
    browser_events: List[BrowserEvent] = Field(default_factory=list)
    errors: List[HandlerErrorSummary] = Field(default_factory=list)
    registration_errors: List[str] = Field(default_factory=list)
    transport_errors: List[str] = Field(default_factory=list)

    @classmethod
    def from_cycle(cls, result: CycleResult) -> "CycleResponse":
        return cls(
            trigger=result.trigger,
            events=[
                EventSummary(
                    name=route.event.name,
                    scope=route.event.scope.kind,
                    origin_id=route.event.origin_id,
                    recipients=route.recipients,
                )
                for route in result.routes
            ],
            browser_events=result.browser_events,
            errors=[
                HandlerErrorSummary(
                    event_name=error.event_name,
                    instance_id=error.instance_id,
                    handler=error.handler,
                    detail=error.detail,
                )
                for error in result.errors
            ],
            registration_errors=[str(e) for e in result.registration_errors],
            transport_errors=[str(e) for e in result.transport_errors],
        )
