import logging
import json
from datetime import date, datetime
from typing import Optional
from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Depends, BackgroundTasks, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from availcal.config.manager import ConfigManager
from availcal.exceptions import CalendarError, NotFound, SyncFailed
from availcal.models.event_response import (
    DeleteOption, EventCreate, EventUpdate, EventResponse, ExceptionCreate
)
from availcal.services.calendar_service import CalendarService, build_calendar_service

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFound: 404,
    SyncFailed: 502,
}

_calendar_service: Optional[CalendarService] = None


def get_calendar_service() -> CalendarService:
    """FastAPI dependency that provides the wired calendar service"""
    global _calendar_service
    if _calendar_service is None:
        _calendar_service = build_calendar_service(ConfigManager())
        logger.info("Services initialized successfully")
    return _calendar_service


# Initialize FastAPI app
app = FastAPI(title="Availability Calendar API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# WebSocket connections
active_connections = set()


async def broadcast_message(message: dict):
    """Broadcast a message to all connected clients"""
    if not active_connections:
        logger.debug("No active connections to broadcast to")
        return

    message_str = json.dumps(message)
    for connection in active_connections.copy():
        try:
            await connection.send_text(message_str)
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.error(f"Error sending message to client: {e}")
            active_connections.discard(connection)


async def broadcast_invalidation(event_id: str, reason: str):
    """Tell clients their occurrence lists for this event are stale"""
    await broadcast_message({
        "type": "events_invalidated",
        "event_id": event_id,
        "reason": reason,
        "timestamp": datetime.now().isoformat()
    })


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for real-time updates"""
    await websocket.accept()
    logger.info("WebSocket connection accepted")
    active_connections.add(websocket)

    try:
        while True:
            data = await websocket.receive_text()
            if not data or not data.strip():
                continue
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.error(f"Invalid JSON message: {data}")
                continue

            if message.get('type') == 'ping':
                await websocket.send_json({
                    'type': 'pong',
                    'timestamp': datetime.now().isoformat()
                })
            else:
                logger.warning(f"Unknown message type: {message.get('type')}")
    except WebSocketDisconnect:
        logger.info("WebSocket connection closed")
    finally:
        active_connections.discard(websocket)


@app.exception_handler(CalendarError)
async def calendar_error_handler(request: Request, exc: CalendarError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    logger.warning(f"{request.method} {request.url.path} failed: {exc.error_code}: {exc.message}")
    response = EventResponse(success=False, message=exc.message, error=exc.error_code)
    return JSONResponse(status_code=status_code, content=response.to_dict())


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.post("/events")
def create_event(event: EventCreate, background_tasks: BackgroundTasks,
                 service: CalendarService = Depends(get_calendar_service)):
    """Create a new availability or unavailability event."""
    created = service.event_store.create_event(event)
    if service.sync_enabled:
        background_tasks.add_task(service.sync_event_quietly, created.id)
    return {"success": True, "events": [created.to_dict()]}


@app.get("/events")
def list_events(owner_id: str, start_date: date, end_date: date,
                service: CalendarService = Depends(get_calendar_service)):
    """Event definitions of an owner whose date window touches the range"""
    events = service.event_store.list_events(owner_id, start_date, end_date)
    return {"success": True, "events": [e.to_dict() for e in events]}


@app.get("/events/{event_id}")
def get_event(event_id: str, service: CalendarService = Depends(get_calendar_service)):
    event = service.event_store.get_event(event_id)
    return {"success": True, "events": [event.to_dict()]}


@app.put("/events/{event_id}")
def update_event(event_id: str, changes: EventUpdate, background_tasks: BackgroundTasks,
                 service: CalendarService = Depends(get_calendar_service)):
    """Update an existing event."""
    event = service.event_store.update_event(event_id, changes)
    if service.sync_enabled:
        background_tasks.add_task(service.sync_event_quietly, event_id)
    background_tasks.add_task(broadcast_invalidation, event_id, "updated")
    return {"success": True, "events": [event.to_dict()]}


@app.delete("/events/{event_id}")
def delete_event(event_id: str, background_tasks: BackgroundTasks,
                 delete_option: Optional[str] = None, specific_date: Optional[str] = None,
                 service: CalendarService = Depends(get_calendar_service)):
    """Delete one day of a recurring event or the whole event"""
    outcome = service.request_delete(event_id, delete_option, specific_date)
    background_tasks.add_task(broadcast_invalidation, event_id, outcome.action)
    return {"success": True, "message": outcome.message, "outcome": outcome.model_dump(mode="json")}


@app.post("/events/{event_id}/exception")
def create_exception(event_id: str, body: ExceptionCreate, background_tasks: BackgroundTasks,
                     service: CalendarService = Depends(get_calendar_service)):
    """Remove a recurring event for a single day"""
    outcome = service.request_delete(event_id, DeleteOption.THIS_DAY, body.exception_date)
    background_tasks.add_task(broadcast_invalidation, event_id, outcome.action)
    return {"success": True, "message": outcome.message, "outcome": outcome.model_dump(mode="json")}


@app.get("/events/{event_id}/exceptions")
def list_exceptions(event_id: str, service: CalendarService = Depends(get_calendar_service)):
    service.event_store.get_event(event_id)
    dates = sorted(service.exception_store.list_exceptions(event_id))
    return {"success": True, "event_id": event_id, "exceptions": [d.isoformat() for d in dates]}


@app.get("/occurrences")
def list_occurrences(owner_id: str, start_date: date, end_date: date,
                     service: CalendarService = Depends(get_calendar_service)):
    """Concrete occurrences of an owner's events between start_date and end_date (inclusive)"""
    occurrences = service.list_occurrences(owner_id, start_date, end_date)
    return {
        "success": True,
        "occurrences": [o.model_dump(mode="json") for o in occurrences]
    }


@app.post("/events/{event_id}/sync")
def sync_event(event_id: str, service: CalendarService = Depends(get_calendar_service)):
    """Push an event to the remote calendar right away"""
    if not service.sync_enabled:
        return JSONResponse(
            status_code=409,
            content=EventResponse(success=False, message="Remote calendar sync is disabled",
                                  error="sync_disabled").to_dict()
        )
    outcome = service.sync_mediator.sync_event(event_id)
    return {"success": True, "sync": outcome.model_dump(mode="json")}


@app.get("/sync/status")
def sync_status(service: CalendarService = Depends(get_calendar_service)):
    """How many events are mirrored, waiting or failed"""
    return {
        "success": True,
        "sync_enabled": service.sync_enabled,
        "counts": service.event_store.sync_status_counts()
    }


@app.post("/sync")
def sync_pending(background_tasks: BackgroundTasks, service: CalendarService = Depends(get_calendar_service)):
    """Retry every event whose mirror is not up to date"""
    result = service.sync_pending()
    background_tasks.add_task(broadcast_message, {"type": "sync_complete", "data": result.model_dump()})
    return {"message": "Calendar sync complete", "result": result.model_dump()}


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting FastAPI application with uvicorn...")
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
