from typing import List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

import crud
import errors
import models
import notifications
import schemas
from database import write_transaction

# Set up logging
logger = structlog.get_logger(__name__)

DEFAULT_JOB_TYPE = "Full Time"
DEFAULT_SALARY = "Not specified"
DEFAULT_RESUME_FILE_NAME = "Not provided"
DEFAULT_INTERVIEW_PREFERENCE = "Not specified"


def _missing(*values) -> bool:
    # Empty strings and a zero id count as missing, same as absent keys
    return any(value is None or value == "" or value == 0 for value in values)


# ---------------------------------------------------------------------------
# User directory


def register_user(db: Session, data: schemas.UserCreate) -> models.User:
    if _missing(data.name, data.email, data.password, data.role):
        raise errors.ValidationError("All fields are required")

    with write_transaction(db, action="registering user"):
        # Exact, case-sensitive comparison
        if crud.get_user_by_email(db, data.email):
            logger.info("Registration rejected, email taken", email=data.email)
            raise errors.Conflict("Email already registered")
        user = crud.create_user(
            db, name=data.name, email=data.email, password=data.password, role=data.role
        )

    logger.info("User registered", user_id=user.id, role=user.role)
    return user


def authenticate(db: Session, email: Optional[str], password: Optional[str]) -> models.User:
    """Return the user whose email and password match exactly."""
    if _missing(email, password):
        raise errors.AuthError("Invalid email or password")
    user = crud.get_user_by_credentials(db, email=email, password=password)
    if not user:
        logger.info("Login failed", email=email)
        raise errors.AuthError("Invalid email or password")
    return user


def list_users(db: Session) -> List[models.User]:
    return crud.list_users(db)


# ---------------------------------------------------------------------------
# Job catalog


def create_job(db: Session, data: schemas.JobCreate) -> Tuple[models.Job, List[models.Notification]]:
    """Create a job and fan it out to every jobseeker in the same transaction."""
    if _missing(data.title, data.company, data.location):
        logger.info("Job rejected, missing required fields")
        raise errors.ValidationError("Missing required fields")

    with write_transaction(db, action="adding job"):
        job = crud.create_job(
            db,
            title=data.title,
            company=data.company,
            location=data.location,
            type=data.type or DEFAULT_JOB_TYPE,
            salary=data.salary or DEFAULT_SALARY,
            description=data.description or "",
            requirements=data.requirements or "",
            posted_date=notifications.utcnow(),
        )
        created = notifications.on_job_posted(db, job)

    logger.info("Job added", job_id=job.id, title=job.title, notified=len(created))
    return job, created


def list_jobs(db: Session) -> List[models.Job]:
    return crud.list_jobs(db)


def get_job(db: Session, job_id: int) -> models.Job:
    job = crud.get_job(db, job_id)
    if not job:
        raise errors.NotFound("Job not found")
    return job


def search_jobs(
    db: Session,
    title: Optional[str] = None,
    location: Optional[str] = None,
    job_type: Optional[str] = None,
) -> List[models.Job]:
    jobs = crud.search_jobs(db, title=title, location=location, job_type=job_type)
    logger.info("Job search", title=title, location=location, type=job_type, results=len(jobs))
    return jobs


def delete_job(db: Session, job_id: int) -> None:
    """Remove a job. Applications and notifications that reference it are kept."""
    with write_transaction(db, action="deleting job"):
        if not crud.delete_job(db, job_id):
            raise errors.NotFound("Job not found")
    logger.info("Job deleted", job_id=job_id)


# ---------------------------------------------------------------------------
# Application ledger


def submit_application(db: Session, data: schemas.ApplicationCreate) -> models.Application:
    # Only presence of job_id is checked; the job may not exist
    if _missing(data.job_id, data.name, data.email, data.phone, data.location, data.qualification):
        logger.info("Application rejected, missing required fields")
        raise errors.ValidationError("Missing required fields")

    with write_transaction(db, action="submitting application"):
        application = crud.create_application(
            db,
            job_id=data.job_id,
            name=data.name,
            email=data.email,
            phone=data.phone,
            location=data.location,
            qualification=data.qualification,
            resume_file_name=data.resume_file_name or DEFAULT_RESUME_FILE_NAME,
            interview_preference=data.interview_preference or DEFAULT_INTERVIEW_PREFERENCE,
            message=data.message or "",
            invite_sent=False,
            applied_date=notifications.utcnow(),
        )

    logger.info("Application submitted", application_id=application.id, job_id=application.job_id)
    return application


def list_applications(db: Session) -> List[models.Application]:
    return crud.list_applications(db)


def list_applications_for_job(db: Session, job_id: int) -> List[models.Application]:
    return crud.list_applications_for_job(db, job_id)
