import asyncio
import json
from typing import Annotated, Iterable, List, Optional, Union

from fastapi import Depends, FastAPI, Path, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sse_starlette.sse import EventSourceResponse
import structlog
from structlog.contextvars import get_contextvars

import errors
import logic
import models
import notifications
import schemas
from database import create_db_and_tables, get_db
from observability import init_observability, metric_scope
from request_id_middleware import RequestIdMiddleware
from settings import get_settings


# Initialise observability before creating app
init_observability()
logger = structlog.get_logger(__name__)

# Ids outside SQLite's 64-bit integer range are rejected as malformed input
RecordId = Annotated[int, Path(ge=schemas.MIN_RECORD_ID, le=schemas.MAX_RECORD_ID)]

# Create DB tables on startup
create_db_and_tables()

app = FastAPI(
    title="Job Board",
    description="Job board backend: users, job postings, applications and notifications",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

app.add_middleware(RequestIdMiddleware)


# --- SSE Connection Manager (Simple In-Memory) --- #
class ConnectionManager:
    def __init__(self):
        # Every open stream gets its own queue; a user may hold several
        self.active_connections: dict[int, List[asyncio.Queue]] = {}

    async def connect(self, user_id: int) -> asyncio.Queue:
        """Registers a new stream for the user and returns its queue."""
        queue = asyncio.Queue()
        self.active_connections.setdefault(user_id, []).append(queue)
        logger.info(
            "SSE connection established",
            user_id=user_id,
            streams=len(self.active_connections[user_id]),
        )
        return queue

    def disconnect(self, user_id: int, queue: asyncio.Queue):
        """Removes one stream's queue, leaving the user's other streams open."""
        queues = self.active_connections.get(user_id)
        if not queues or queue not in queues:
            return
        queues.remove(queue)
        if not queues:
            del self.active_connections[user_id]
        logger.info("SSE connection closed", user_id=user_id, streams=len(queues))

    def is_connected(self, user_id: int) -> bool:
        return bool(self.active_connections.get(user_id))

    async def send_personal_message(
        self, message: Union[str, dict], user_id: int, event: str = "message"
    ) -> bool:
        """Queue an event on every open stream of a user. Returns False if nobody is listening."""
        queues = list(self.active_connections.get(user_id, []))
        if not queues:
            logger.debug("No SSE listener, event skipped", sse_event=event, user_id=user_id)
            return False

        # If the message is a dict, inject request_id for correlation if missing
        if isinstance(message, dict):
            if "request_id" not in message:
                req_id = get_contextvars().get("request_id")
                if req_id:
                    message["request_id"] = req_id
            json_data = json.dumps(message)
        else:
            json_data = message
        for queue in queues:
            await queue.put({"event": event, "data": json_data})
        logger.info("Sent SSE event", sse_event=event, user_id=user_id, streams=len(queues))
        return True


manager = ConnectionManager()


async def publish_notifications(
    db: Session,
    created: Iterable[models.Notification],
    manager_override: Optional[ConnectionManager] = None,
) -> int:
    """Push freshly committed notifications to any live listeners.

    Each recipient gets a ``notification`` event per record followed by one
    ``unread_count`` event. Returns how many notification events were delivered.
    """
    _manager = manager_override or manager
    delivered = 0
    recipients: List[int] = []
    for notification in created:
        if not _manager.is_connected(notification.user_id):
            continue
        payload = schemas.Notification.model_validate(notification).model_dump(
            mode="json", by_alias=True
        )
        if await _manager.send_personal_message(payload, notification.user_id, event="notification"):
            delivered += 1
            if notification.user_id not in recipients:
                recipients.append(notification.user_id)

    for user_id in recipients:
        await push_unread_count(db, user_id, _manager)
    return delivered


async def push_unread_count(
    db: Session, user_id: int, manager_override: Optional[ConnectionManager] = None
) -> None:
    _manager = manager_override or manager
    if not _manager.is_connected(user_id):
        return
    count = notifications.get_unread_count(db, user_id)
    await _manager.send_personal_message({"count": count}, user_id, event="unread_count")


@metric_scope
async def record_notification_metrics(event: str, created: int, metrics=None):
    """Emit an EMF document with the number of notifications an event produced."""
    metrics.set_namespace(get_settings().metrics_namespace)
    metrics.put_dimensions({"Event": event})
    metrics.put_metric("notifications_created", created, "Count")


# --- Error handlers --- #
@app.exception_handler(errors.JobBoardError)
async def job_board_error_handler(request: Request, exc: errors.JobBoardError):
    if exc.status_code >= 500:
        logger.error("Request failed", status_code=exc.status_code, error=exc.message)
    else:
        logger.warning("Request rejected", status_code=exc.status_code, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning("Malformed request", errors=str(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": "Invalid request",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error while handling request", error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": f"Error reading data: {exc.__class__.__name__}"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error while handling request")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error"},
    )


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok"}


# --- User Endpoints ---
@app.get("/users", response_model=List[schemas.User], tags=["Users"])
def list_users_endpoint(db: Session = Depends(get_db)):
    return logic.list_users(db)


@app.post("/users", response_model=schemas.ActionResponse, tags=["Users"])
def create_user_endpoint(user: schemas.UserCreate, db: Session = Depends(get_db)):
    logic.register_user(db, user)
    return schemas.ActionResponse(success=True, message="User created!")


@app.post("/login", response_model=schemas.LoginResponse, tags=["Users"])
def login_endpoint(credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = logic.authenticate(db, credentials.email, credentials.password)
    return schemas.LoginResponse(
        success=True,
        message="Login successful",
        user=schemas.User.model_validate(user),
    )


# --- Job Endpoints ---
@app.post("/jobs", response_model=schemas.JobCreatedResponse, tags=["Jobs"])
async def create_job_endpoint(job_in: schemas.JobCreate, db: Session = Depends(get_db)):
    logger.info("Received job post request", title=job_in.title, company=job_in.company)
    job, created = logic.create_job(db, job_in)

    await record_notification_metrics(notifications.JOB_POSTED, len(created))
    await publish_notifications(db, created)

    return schemas.JobCreatedResponse(
        success=True,
        message="Job added successfully!",
        job=schemas.Job.model_validate(job),
        notified_count=len(created),
    )


@app.get("/jobs", response_model=List[schemas.Job], tags=["Jobs"])
def list_jobs_endpoint(db: Session = Depends(get_db)):
    return logic.list_jobs(db)


@app.get("/jobs/search", response_model=List[schemas.Job], tags=["Jobs"])
def search_jobs_endpoint(
    title: Optional[str] = None,
    location: Optional[str] = None,
    job_type: Optional[str] = Query(None, alias="type"),
    db: Session = Depends(get_db),
):
    return logic.search_jobs(db, title=title, location=location, job_type=job_type)


@app.get("/jobs/{job_id}", response_model=schemas.Job, tags=["Jobs"])
def get_job_endpoint(job_id: RecordId, db: Session = Depends(get_db)):
    return logic.get_job(db, job_id)


@app.delete("/jobs/{job_id}", response_model=schemas.ActionResponse, tags=["Jobs"])
def delete_job_endpoint(job_id: RecordId, db: Session = Depends(get_db)):
    logger.info(f"Attempting to delete job {job_id}")
    logic.delete_job(db, job_id)
    return schemas.ActionResponse(success=True, message="Job deleted successfully")


# --- Application Endpoints ---
@app.post(
    "/applications",
    response_model=schemas.ApplicationSubmittedResponse,
    tags=["Applications"],
)
def submit_application_endpoint(
    application_in: schemas.ApplicationCreate, db: Session = Depends(get_db)
):
    application = logic.submit_application(db, application_in)
    return schemas.ApplicationSubmittedResponse(
        success=True,
        message="Application submitted successfully!",
        application=schemas.Application.model_validate(application),
    )


@app.get("/applications", response_model=List[schemas.Application], tags=["Applications"])
def list_applications_endpoint(db: Session = Depends(get_db)):
    return logic.list_applications(db)


@app.get(
    "/applications/job/{job_id}",
    response_model=List[schemas.Application],
    tags=["Applications"],
)
def list_job_applications_endpoint(job_id: RecordId, db: Session = Depends(get_db)):
    return logic.list_applications_for_job(db, job_id)


@app.put(
    "/applications/{application_id}/invite",
    response_model=schemas.InviteResponse,
    response_model_exclude_none=True,
    tags=["Applications"],
)
async def invite_endpoint(application_id: RecordId, db: Session = Depends(get_db)):
    outcome = notifications.on_interview_invite(db, application_id)

    if not outcome.notified:
        return schemas.InviteResponse(
            success=True,
            message="Invitation marked as sent, but user account not found for notification",
            warning=outcome.warning,
        )

    await record_notification_metrics(notifications.INTERVIEW_INVITATION, 1)
    await publish_notifications(db, [outcome.notification])
    return schemas.InviteResponse(
        success=True,
        message="Invitation sent successfully",
        notification_created=True,
        user_notified=outcome.user.name,
    )


# --- Notification Endpoints ---
@app.get(
    "/notifications/{user_id}",
    response_model=List[schemas.Notification],
    tags=["Notifications"],
)
def list_notifications_endpoint(user_id: RecordId, db: Session = Depends(get_db)):
    return notifications.get_for_user(db, user_id)


@app.get(
    "/notifications/{user_id}/unread-count",
    response_model=schemas.UnreadCount,
    tags=["Notifications"],
)
def unread_count_endpoint(user_id: RecordId, db: Session = Depends(get_db)):
    return schemas.UnreadCount(count=notifications.get_unread_count(db, user_id))


@app.put(
    "/notifications/{notification_id}/read",
    response_model=schemas.ActionResponse,
    tags=["Notifications"],
)
async def mark_read_endpoint(notification_id: RecordId, db: Session = Depends(get_db)):
    notification = notifications.mark_read(db, notification_id)
    await push_unread_count(db, notification.user_id)
    return schemas.ActionResponse(success=True, message="Notification marked as read")


@app.put(
    "/notifications/{user_id}/read-all",
    response_model=schemas.ActionResponse,
    tags=["Notifications"],
)
async def mark_all_read_endpoint(user_id: RecordId, db: Session = Depends(get_db)):
    notifications.mark_all_read(db, user_id)
    await push_unread_count(db, user_id)
    return schemas.ActionResponse(success=True, message="All notifications marked as read")


@app.delete(
    "/notifications/{user_id}",
    response_model=schemas.ActionResponse,
    tags=["Notifications"],
)
async def clear_notifications_endpoint(user_id: RecordId, db: Session = Depends(get_db)):
    notifications.clear_for_user(db, user_id)
    await push_unread_count(db, user_id)
    return schemas.ActionResponse(success=True, message="Notifications cleared")


# --- SSE Endpoint --- #
@app.get("/notifications/{user_id}/stream", tags=["Notifications"])
async def stream_notifications(request: Request, user_id: RecordId):
    """Server-Sent Events stream of new notifications and unread counts for one user."""
    queue = await manager.connect(user_id)

    async def event_generator():
        try:
            while True:
                message_dict = await queue.get()
                if await request.is_disconnected():
                    logger.info(f"SSE client disconnected for user {user_id} before sending.")
                    break
                yield message_dict
        except asyncio.CancelledError:
            logger.info(f"SSE connection cancelled for user {user_id}")
            raise
        finally:
            manager.disconnect(user_id, queue)

    return EventSourceResponse(event_generator())


# --- Main execution --- (for running with uvicorn)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
