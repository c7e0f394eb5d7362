from typing import List, Optional

from sqlalchemy.orm import Session

import models


# --- User CRUD ---
def list_users(db: Session) -> List[models.User]:
    return db.query(models.User).order_by(models.User.id).all()


def get_user_by_id(db: Session, user_id: int) -> Optional[models.User]:
    """Get a user by their primary key ID."""
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()


def find_user_by_email_ci(db: Session, email: str) -> Optional[models.User]:
    """Case-insensitive email lookup, used only to resolve invite recipients.

    Folding happens in Python so non-ASCII addresses match on every backend.
    """
    needle = email.casefold()
    return next(
        (user for user in list_users(db) if user.email.casefold() == needle),
        None,
    )


def get_user_by_credentials(db: Session, email: str, password: str) -> Optional[models.User]:
    return (
        db.query(models.User)
        .filter(models.User.email == email, models.User.password == password)
        .first()
    )


def get_users_by_role(db: Session, role: str) -> List[models.User]:
    return db.query(models.User).filter(models.User.role == role).order_by(models.User.id).all()


def create_user(db: Session, name: str, email: str, password: str, role: str) -> models.User:
    db_user = models.User(name=name, email=email, password=password, role=role)
    db.add(db_user)
    db.flush()  # Assign ID without committing
    return db_user


# --- Job CRUD ---
def create_job(db: Session, **fields) -> models.Job:
    db_job = models.Job(**fields)
    db.add(db_job)
    db.flush()
    return db_job


def list_jobs(db: Session) -> List[models.Job]:
    return db.query(models.Job).order_by(models.Job.id).all()


def get_job(db: Session, job_id: int) -> Optional[models.Job]:
    return db.query(models.Job).filter(models.Job.id == job_id).first()


def _folded(value: Optional[str]) -> str:
    return (value or "").casefold()


def search_jobs(
    db: Session,
    title: Optional[str] = None,
    location: Optional[str] = None,
    job_type: Optional[str] = None,
) -> List[models.Job]:
    """Filter the catalog: title matches title or company, location is a substring,
    type is exact. Text filters ignore case, including non-ASCII letters."""
    jobs = list_jobs(db)
    if title:
        needle = title.casefold()
        jobs = [job for job in jobs if needle in _folded(job.title) or needle in _folded(job.company)]
    if location:
        needle = location.casefold()
        jobs = [job for job in jobs if needle in _folded(job.location)]
    if job_type:
        jobs = [job for job in jobs if job.type == job_type]
    return jobs


def delete_job(db: Session, job_id: int) -> bool:
    """Delete a job. Returns False when no such job exists."""
    db_job = get_job(db, job_id)
    if not db_job:
        return False
    db.delete(db_job)
    db.flush()
    return True


# --- Application CRUD ---
def create_application(db: Session, **fields) -> models.Application:
    db_application = models.Application(**fields)
    db.add(db_application)
    db.flush()
    return db_application


def get_application(db: Session, application_id: int) -> Optional[models.Application]:
    return (
        db.query(models.Application)
        .filter(models.Application.id == application_id)
        .first()
    )


def list_applications(db: Session) -> List[models.Application]:
    return db.query(models.Application).order_by(models.Application.id).all()


def list_applications_for_job(db: Session, job_id: int) -> List[models.Application]:
    return (
        db.query(models.Application)
        .filter(models.Application.job_id == job_id)
        .order_by(models.Application.id)
        .all()
    )


# --- Notification CRUD ---
def add_notifications(db: Session, notifications: List[models.Notification]) -> List[models.Notification]:
    db.add_all(notifications)
    db.flush()
    return notifications


def get_notification(db: Session, notification_id: int) -> Optional[models.Notification]:
    return (
        db.query(models.Notification)
        .filter(models.Notification.id == notification_id)
        .first()
    )


def get_notifications_for_user(db: Session, user_id: int) -> List[models.Notification]:
    return (
        db.query(models.Notification)
        .filter(models.Notification.user_id == user_id)
        .order_by(models.Notification.id)
        .all()
    )


def count_unread_for_user(db: Session, user_id: int) -> int:
    return (
        db.query(models.Notification)
        .filter(
            models.Notification.user_id == user_id,
            models.Notification.read.is_(False),
        )
        .count()
    )


def mark_all_read_for_user(db: Session, user_id: int) -> int:
    """Returns the number of notifications that flipped to read."""
    return (
        db.query(models.Notification)
        .filter(
            models.Notification.user_id == user_id,
            models.Notification.read.is_(False),
        )
        .update({models.Notification.read: True}, synchronize_session=False)
    )


def delete_notifications_for_user(db: Session, user_id: int) -> int:
    return (
        db.query(models.Notification)
        .filter(models.Notification.user_id == user_id)
        .delete(synchronize_session=False)
    )
