"""Notification fan-out engine.

Reacts to two events:

* a job being posted: one ``job_posted`` notification per jobseeker;
* an interview invite: the application is correlated with its job and with a
  registered user (email compared case-insensitively) and a single
  ``interview_invitation`` notification is emitted while the application's
  invite flag is set.

It also owns the per-user read/unread state. ``read`` and
``Application.invite_sent`` only ever move from False to True.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

import structlog
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

import crud
import errors
import models
from database import write_transaction
from settings import get_settings

logger = structlog.get_logger(__name__)

JOB_POSTED = "job_posted"
INTERVIEW_INVITATION = "interview_invitation"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InviteOutcome(BaseModel):
    """What the invite workflow did. ``notification`` is None on the degraded path."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    application: models.Application
    job: models.Job
    user: Optional[models.User] = None
    notification: Optional[models.Notification] = None
    warning: Optional[str] = None

    @property
    def notified(self) -> bool:
        return self.notification is not None


# --- Events ---


def on_job_posted(db: Session, job: models.Job) -> List[models.Notification]:
    """Create one notification per jobseeker for a freshly created job.

    Must run inside the caller's ``write_transaction``; everything is added
    as one batch and committed together with the job.
    """
    jobseeker_role = get_settings().jobseeker_role
    recipients = crud.get_users_by_role(db, jobseeker_role)
    if not recipients:
        logger.info("No jobseekers to notify", job_id=job.id)
        return []

    created_at = utcnow()
    batch = [
        models.Notification(
            user_id=user.id,
            job_id=job.id,
            type=JOB_POSTED,
            title="New Job Posted!",
            message=f"{job.title} at {job.company} in {job.location}",
            job_title=job.title,
            company=job.company,
            location=job.location,
            job_type=job.type,
            read=False,
            created_at=created_at,
        )
        for user in recipients
    ]
    crud.add_notifications(db, batch)
    logger.info("Job posting fanned out", job_id=job.id, recipients=len(batch))
    return batch


def on_interview_invite(db: Session, application_id: int) -> InviteOutcome:
    """Send an interview invitation for an application.

    Raises ``NotFound`` when the application or its job is missing; nothing is
    written in that case. When no registered user matches the applicant's
    email the application is still flagged as invited and the outcome carries
    a warning instead of a notification.
    """
    log = logger.bind(application_id=application_id)
    log.info("Sending interview invitation")

    with write_transaction(db, action="sending invitation"):
        application = crud.get_application(db, application_id)
        if not application:
            log.warning("Application not found")
            raise errors.NotFound("Application not found")

        job = crud.get_job(db, application.job_id)
        if not job:
            log.warning("Job not found for application", job_id=application.job_id)
            raise errors.NotFound("Job not found")

        user = crud.find_user_by_email_ci(db, application.email)
        now = utcnow()

        if not user:
            log.warning("No registered user for applicant email", email=application.email)
            _flag_invited(application, now)
            outcome = InviteOutcome(
                application=application,
                job=job,
                warning=f"No user registered with email {application.email}",
            )
        else:
            notification = models.Notification(
                user_id=user.id,
                job_id=job.id,
                application_id=application.id,
                type=INTERVIEW_INVITATION,
                title="Interview Invitation!",
                message=(
                    f"You've been invited for an interview for {job.title} at {job.company}. "
                    f"Interview mode: {application.interview_preference}"
                ),
                job_title=job.title,
                company=job.company,
                location=job.location,
                job_type=job.type,
                read=False,
                created_at=now,
            )
            crud.add_notifications(db, [notification])
            _flag_invited(application, now)
            outcome = InviteOutcome(
                application=application, job=job, user=user, notification=notification
            )

    if outcome.notified:
        log.info(
            "Invitation sent",
            user_id=outcome.user.id,
            notification_id=outcome.notification.id,
        )
    return outcome


def _flag_invited(application: models.Application, when: datetime) -> None:
    # Re-inviting refreshes the date; the flag itself never goes back to False
    application.invite_sent = True
    application.invite_sent_date = when


# --- Per-user state ---


def get_for_user(db: Session, user_id: int) -> List[models.Notification]:
    return crud.get_notifications_for_user(db, user_id)


def get_unread_count(db: Session, user_id: int) -> int:
    return crud.count_unread_for_user(db, user_id)


def mark_read(db: Session, notification_id: int) -> models.Notification:
    with write_transaction(db, action="updating notification"):
        notification = crud.get_notification(db, notification_id)
        if not notification:
            raise errors.NotFound("Notification not found")
        notification.read = True
    return notification


def mark_all_read(db: Session, user_id: int) -> int:
    with write_transaction(db, action="updating notifications"):
        updated = crud.mark_all_read_for_user(db, user_id)
    logger.info("Marked notifications read", user_id=user_id, updated=updated)
    return updated


def clear_for_user(db: Session, user_id: int) -> int:
    with write_transaction(db, action="clearing notifications"):
        removed = crud.delete_notifications_for_user(db, user_id)
    logger.info("Cleared notifications", user_id=user_id, removed=removed)
    return removed
