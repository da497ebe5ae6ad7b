import logging

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import ValidationError

from component_bus.api.schemas import (
    ActionRequest,
    CreatePageRequest,
    CycleResponse,
    InstanceInfo,
    PageResponse,
    ScriptEventRequest,
    TransportMessageRequest,
)
from component_bus.core.dependencies import get_dependencies, get_page
from component_bus.core.dependency_container import DependencyContainer
from component_bus.exceptions import ComponentBusError, FlushLimitExceededError, UnknownComponentError
from component_bus.page import Page
from component_bus.registry import get_component_class

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pages", tags=["Pages"])


def _describe(page: Page) -> PageResponse:
    instances = []
    for component in page.list_instances():
        registry = page.registrar.registry_for(component.instance_id)
        instances.append(
            InstanceInfo(
                instance_id=component.instance_id,
                component=component.get_component_name(),
                listener_keys=registry.keys() if registry is not None else [],
            )
        )
    return PageResponse(page_id=page.page_id, instances=instances)


@router.post("", response_model=PageResponse, status_code=status.HTTP_201_CREATED)
async def create_page(
    body: CreatePageRequest = Body(...),
    dependencies: DependencyContainer = Depends(get_dependencies),
) -> PageResponse:
    """Create a page and mount the requested components on it, in order."""
    try:
        components = [get_component_class(spec.component)(**spec.attributes) for spec in body.components]
    except UnknownComponentError as e:
        raise HTTPException(status_code=400, detail=e.detail)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid component attributes: {e}")

    page = dependencies.create_page()
    for component in components:
        try:
            page.mount(component)
        except ComponentBusError as e:
            # Transport trouble leaves the instance mounted; report it in the logs only.
            logger.error(f"Problem mounting {component!r} on page {page.page_id}: {e}")
    return _describe(page)


@router.get("/{page_id}", response_model=PageResponse)
async def get_page_state(page: Page = Depends(get_page)) -> PageResponse:
    return _describe(page)


@router.delete("/{page_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_page(page_id: str, dependencies: DependencyContainer = Depends(get_dependencies)) -> None:
    """Tear the page down, releasing its channel subscriptions."""
    try:
        dependencies.page_store.remove(page_id)
    except UnknownComponentError as e:
        raise HTTPException(status_code=404, detail=e.detail)


@router.post("/{page_id}/components/{instance_id}/actions/{action}", response_model=CycleResponse)
async def call_action(
    instance_id: str,
    action: str,
    body: ActionRequest | None = Body(default=None),
    page: Page = Depends(get_page),
) -> CycleResponse:
    """Run a component action and route everything it dispatches."""
    body = body or ActionRequest()
    try:
        result = page.call(instance_id, action, *body.args, **body.kwargs)
    except UnknownComponentError as e:
        raise HTTPException(status_code=404, detail=e.detail)
    except FlushLimitExceededError as e:
        raise HTTPException(status_code=500, detail=e.detail)
    except ComponentBusError as e:
        raise HTTPException(status_code=400, detail=e.detail)
    except Exception as e:
        logger.exception(f"Action '{action}' on {instance_id} failed: {e}")
        raise HTTPException(status_code=500, detail=f"Action '{action}' failed")
    return CycleResponse.from_cycle(result)


@router.post("/{page_id}/events", response_model=CycleResponse)
async def dispatch_script_event(body: ScriptEventRequest = Body(...), page: Page = Depends(get_page)) -> CycleResponse:
    """Route a native event dispatched by script on the page."""
    try:
        result = page.dispatch_from_script(body.name, body.detail)
    except FlushLimitExceededError as e:
        raise HTTPException(status_code=500, detail=e.detail)
    return CycleResponse.from_cycle(result)


@router.post("/{page_id}/transport", response_model=CycleResponse)
async def receive_transport_message(
    body: TransportMessageRequest = Body(...), page: Page = Depends(get_page)
) -> CycleResponse:
    """Accept an inbound message from the pub/sub transport for this page."""
    try:
        event = page.bridge.on_transport_message(body.channel, body.visibility, body.event, body.payload)
    except Exception as e:
        logger.exception(f"Routing transport message on '{body.channel}' failed: {e}")
        raise HTTPException(status_code=500, detail="Transport message could not be routed")
    # The bridge's `received` signal already ran the cycle; report its outcome.
    result = page.last_transport_cycle
    if result is None or result.trigger != f"transport:{event.name}":
        raise HTTPException(status_code=500, detail="Transport message was not routed")
    return CycleResponse.from_cycle(result)
