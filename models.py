from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func

from database import Base

# job_id / user_id / application_id columns are plain integers, not ForeignKeys:
# deleting a job leaves applications and notifications pointing at it.


class User(Base):
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    role = Column(String, nullable=False, index=True)


class Job(Base):
    __tablename__ = "jobs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String, nullable=False)
    company = Column(String, nullable=False)
    location = Column(String, nullable=False)
    type = Column(String, nullable=False)
    salary = Column(String, nullable=False)
    description = Column(Text, default="")
    requirements = Column(Text, default="")
    posted_date = Column(DateTime(timezone=True), server_default=func.now())


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    job_id = Column(Integer, index=True, nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    location = Column(String, nullable=False)
    qualification = Column(String, nullable=False)
    resume_file_name = Column(String, nullable=False)
    interview_preference = Column(String, nullable=False)
    message = Column(Text, default="")
    invite_sent = Column(Boolean, default=False, nullable=False)
    invite_sent_date = Column(DateTime(timezone=True), nullable=True)
    applied_date = Column(DateTime(timezone=True), server_default=func.now())


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, index=True, nullable=False)
    job_id = Column(Integer, index=True, nullable=False)
    application_id = Column(Integer, nullable=True)
    type = Column(String, nullable=False)  # "job_posted" | "interview_invitation"
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    # Copied from the job when the notification is created
    job_title = Column(String)
    company = Column(String)
    location = Column(String)
    job_type = Column(String, nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
