"""
models.py

SQLAlchemy ORM models for the ORII research portal.
Defines users, research papers (authors, files, versions, review process),
events and their reminder jobs, jobs and applications, collaborations,
contact enquiries, notifications, email templates and the email log.
"""
from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Text, Table, Boolean, JSON, Float,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship, declarative_base
import datetime

Base = declarative_base()

SUBMISSION_STEP_KEYS = (
    "step1_basic_info",
    "step2_authors",
    "step3_manuscript",
    "step4_review",
    "step5_submit",
)

# Association table for event attendee registration
event_attendees = Table(
    "event_attendees", Base.metadata,
    Column("event_id", Integer, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("registered_at", DateTime, default=datetime.datetime.utcnow),
)


class User(Base):
    """
    User model: a portal account (admin, researcher, faculty, student, visitor).
    Non-admin accounts must be approved by an admin before they can sign in.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(120), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default="researcher", index=True)  # admin, researcher, faculty, student, visitor

    # Profile
    bio = Column(Text, nullable=True)
    title = Column(String(100), nullable=True)
    department = Column(String(100), nullable=True)
    institution = Column(String(150), nullable=True)
    research_interests = Column(JSON, default=list)
    avatar_url = Column(String(500), nullable=True)
    avatar_public_id = Column(String(255), nullable=True)
    website = Column(String(255), nullable=True)
    linkedin = Column(String(255), nullable=True)
    orcid = Column(String(50), nullable=True)

    # Account state
    is_active = Column(Boolean, default=True)
    email_verified = Column(Boolean, default=False)
    is_approved = Column(Boolean, default=False)
    approval_status = Column(String(20), default="pending", index=True)  # pending, approved, rejected
    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    approval_date = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    last_login = Column(DateTime, nullable=True)
    token_version = Column(Integer, default=0)  # Bumped on password change to revoke old tokens

    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    approved_by = relationship("User", remote_side=[id], foreign_keys=[approved_by_id])

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class ResearchPaper(Base):
    """
    ResearchPaper model: a manuscript moving through the submission wizard
    and the peer-review process.
    """
    __tablename__ = "research_papers"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(String(32), unique=True, index=True, nullable=False)
    title = Column(String(300), nullable=False)
    abstract = Column(String(3000), nullable=False)
    keywords = Column(JSON, default=list)
    field = Column(String(50), nullable=False, index=True)
    subfield = Column(String(100), nullable=True)
    research_type = Column(String(50), nullable=False)
    methodology = Column(String(50), nullable=True)

    submitted_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    submission_date = Column(DateTime, default=datetime.datetime.utcnow)
    status = Column(String(30), default="draft", index=True)

    # Submission wizard: highest completed step and when each step completed
    completed_step = Column(Integer, default=0, nullable=False)
    step1_completed_at = Column(DateTime, nullable=True)
    step2_completed_at = Column(DateTime, nullable=True)
    step3_completed_at = Column(DateTime, nullable=True)
    step4_completed_at = Column(DateTime, nullable=True)
    step5_completed_at = Column(DateTime, nullable=True)

    # Settings
    is_public = Column(Boolean, default=False)
    allow_comments = Column(Boolean, default=True)
    anonymous_review = Column(Boolean, default=True)
    suggested_reviewers = Column(JSON, default=list)
    excluded_reviewers = Column(JSON, default=list)
    cover_letter = Column(Text, nullable=True)

    # Editorial decision (single slot)
    decision = Column(String(30), nullable=True)
    decision_comments = Column(Text, nullable=True)
    decided_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    decided_at = Column(DateTime, nullable=True)
    revision_due_date = Column(DateTime, nullable=True)

    # Publication
    journal = Column(String(200), nullable=True)
    volume = Column(String(20), nullable=True)
    issue = Column(String(20), nullable=True)
    pages = Column(String(30), nullable=True)
    doi = Column(String(100), nullable=True)
    publication_url = Column(String(500), nullable=True)
    published_date = Column(DateTime, nullable=True)
    is_open_access = Column(Boolean, default=False)

    # Metrics
    views = Column(Integer, default=0)
    downloads = Column(Integer, default=0)
    citations = Column(Integer, default=0)
    shares = Column(Integer, default=0)

    # Timeline
    submitted_at = Column(DateTime, nullable=True)
    review_started_at = Column(DateTime, nullable=True)
    first_decision_at = Column(DateTime, nullable=True)
    revised_at = Column(DateTime, nullable=True)
    final_decision_at = Column(DateTime, nullable=True)
    published_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    submitted_by = relationship("User", foreign_keys=[submitted_by_id])
    decided_by = relationship("User", foreign_keys=[decided_by_id])
    authors = relationship(
        "PaperAuthor", back_populates="paper", cascade="all, delete-orphan",
        order_by="PaperAuthor.order",
    )
    files = relationship(
        "PaperFile", back_populates="paper", cascade="all, delete-orphan",
        order_by="PaperFile.order",
    )
    versions = relationship(
        "PaperVersion", back_populates="paper", cascade="all, delete-orphan",
        order_by="PaperVersion.version",
    )
    assignments = relationship(
        "ReviewAssignment", back_populates="paper", cascade="all, delete-orphan",
        order_by="ReviewAssignment.assigned_at",
    )
    reviews = relationship(
        "Review", back_populates="paper", cascade="all, delete-orphan",
        order_by="Review.submitted_at",
    )

    @property
    def submission_progress(self) -> dict:
        progress = {}
        for number, key in enumerate(SUBMISSION_STEP_KEYS, start=1):
            progress[key] = {
                "completed": (self.completed_step or 0) >= number,
                "completed_at": getattr(self, f"step{number}_completed_at"),
            }
        return progress

    @property
    def completion_percentage(self) -> int:
        return round((self.completed_step or 0) / len(SUBMISSION_STEP_KEYS) * 100)

    @property
    def current_version(self) -> int:
        return max((v.version for v in self.versions), default=0)

    @property
    def manuscript(self):
        return next((f for f in self.files if f.kind == "manuscript"), None)

    @property
    def supplementary_materials(self):
        return [f for f in self.files if f.kind == "supplementary"]

    @property
    def figures(self):
        return [f for f in self.files if f.kind == "figure"]

    @property
    def review_status(self) -> str:
        if self.status == "draft":
            return "Not submitted"
        if self.status == "submitted":
            return "Awaiting review assignment"
        if self.status == "under_review":
            completed = len([a for a in self.assignments if a.status == "completed"])
            return f"{completed}/{len(self.assignments)} reviews completed"
        return self.status.replace("_", " ").title()

    @property
    def timeline(self) -> dict:
        return {
            "submitted_at": self.submitted_at,
            "review_started_at": self.review_started_at,
            "first_decision_at": self.first_decision_at,
            "revised_at": self.revised_at,
            "final_decision_at": self.final_decision_at,
            "published_at": self.published_at,
        }

    @property
    def editorial_decision(self):
        if not self.decision:
            return None
        return {
            "decision": self.decision,
            "comments": self.decision_comments,
            "decided_by_id": self.decided_by_id,
            "decided_at": self.decided_at,
            "revision_due_date": self.revision_due_date,
        }

    @property
    def metrics(self) -> dict:
        return {
            "views": self.views or 0,
            "downloads": self.downloads or 0,
            "citations": self.citations or 0,
            "shares": self.shares or 0,
        }


class PaperAuthor(Base):
    """Author entry on a paper. Exactly one entry per paper is the corresponding author."""
    __tablename__ = "paper_authors"
    __table_args__ = (UniqueConstraint("paper_id", "user_id", name="uq_paper_author"),)

    id = Column(Integer, primary_key=True, index=True)
    paper_id = Column(Integer, ForeignKey("research_papers.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order = Column(Integer, nullable=False, default=1)
    role = Column(String(30), default="co_author")  # primary_author, co_author, corresponding_author, supervisor
    affiliation = Column(String(200), nullable=True)
    contribution = Column(String(500), nullable=True)
    is_corresponding = Column(Boolean, default=False)

    paper = relationship("ResearchPaper", back_populates="authors")
    user = relationship("User")


class PaperFile(Base):
    """Uploaded blob attached to a paper: manuscript, supplementary material or figure."""
    __tablename__ = "paper_files"

    id = Column(Integer, primary_key=True, index=True)
    paper_id = Column(Integer, ForeignKey("research_papers.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(20), nullable=False)  # manuscript, supplementary, figure
    filename = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    storage_path = Column(String(500), nullable=False)
    size = Column(Integer, default=0)
    mime_type = Column(String(120), nullable=False)
    description = Column(String(500), nullable=True)
    caption = Column(String(500), nullable=True)
    order = Column(Integer, default=0)
    version = Column(Integer, nullable=True)
    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    uploaded_at = Column(DateTime, default=datetime.datetime.utcnow)

    paper = relationship("ResearchPaper", back_populates="files")


class PaperVersion(Base):
    """Append-only history of manuscript replacements."""
    __tablename__ = "paper_versions"
    __table_args__ = (UniqueConstraint("paper_id", "version", name="uq_paper_version"),)

    id = Column(Integer, primary_key=True, index=True)
    paper_id = Column(Integer, ForeignKey("research_papers.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    filename = Column(String(255), nullable=False)
    storage_path = Column(String(500), nullable=False)
    changes = Column(Text, nullable=True)
    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    uploaded_at = Column(DateTime, default=datetime.datetime.utcnow)

    paper = relationship("ResearchPaper", back_populates="versions")


class ReviewAssignment(Base):
    """A reviewer assigned to a paper."""
    __tablename__ = "review_assignments"
    __table_args__ = (UniqueConstraint("paper_id", "reviewer_id", name="uq_review_assignment"),)

    id = Column(Integer, primary_key=True, index=True)
    paper_id = Column(Integer, ForeignKey("research_papers.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    assigned_at = Column(DateTime, default=datetime.datetime.utcnow)
    due_date = Column(DateTime, nullable=True)
    status = Column(String(20), default="pending")  # pending, accepted, declined, completed
    accepted_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    paper = relationship("ResearchPaper", back_populates="assignments")
    reviewer = relationship("User", foreign_keys=[reviewer_id])


class Review(Base):
    """A submitted peer review."""
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    paper_id = Column(Integer, ForeignKey("research_papers.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    overall_rating = Column(Integer, nullable=False)
    recommendation = Column(String(20), nullable=False)  # accept, minor_revision, major_revision, reject
    comments_overall = Column(Text, nullable=False)
    comments_methodology = Column(Text, nullable=True)
    comments_results = Column(Text, nullable=True)
    comments_presentation = Column(Text, nullable=True)
    comments_significance = Column(Text, nullable=True)
    confidential_comments = Column(Text, nullable=True)
    is_anonymous = Column(Boolean, default=True)
    submitted_at = Column(DateTime, default=datetime.datetime.utcnow)

    paper = relationship("ResearchPaper", back_populates="reviews")
    reviewer = relationship("User")


class Event(Base):
    """
    Event model: seminars, workshops, conferences and similar institute events.
    Attendees register through the event_attendees association table.
    """
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    short_description = Column(String(300), nullable=True)
    type = Column(String(30), nullable=False)
    category = Column(String(50), nullable=True)
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False)
    start_time = Column(String(5), nullable=True)  # HH:MM
    end_time = Column(String(5), nullable=True)
    timezone = Column(String(50), default="UTC")

    venue_type = Column(String(20), default="physical")  # physical, virtual, hybrid
    venue_name = Column(String(200), nullable=True)
    venue_address = Column(JSON, nullable=True)
    virtual_link = Column(String(500), nullable=True)
    capacity = Column(Integer, nullable=True)

    organizers = Column(JSON, default=list)
    speakers = Column(JSON, default=list)
    agenda = Column(JSON, default=list)
    tags = Column(JSON, default=list)

    registration_required = Column(Boolean, default=False)
    registration_deadline = Column(DateTime, nullable=True)
    registration_fee = Column(Float, default=0)
    registration_currency = Column(String(3), default="USD")
    max_attendees = Column(Integer, nullable=True)

    status = Column(String(20), default="draft", index=True)  # draft, published, cancelled, completed
    is_public = Column(Boolean, default=True)
    is_featured = Column(Boolean, default=False)
    is_archived = Column(Boolean, default=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    created_by = relationship("User", foreign_keys=[created_by_id])
    attendees = relationship("User", secondary=event_attendees)
    reminders = relationship("EventReminder", back_populates="event", cascade="all, delete-orphan")

    @property
    def registered_count(self) -> int:
        return len(self.attendees)


class EventReminder(Base):
    """
    Durable reminder job. A null user_id targets every registered attendee.
    The unique constraint keeps a reminder from being scheduled twice.
    """
    __tablename__ = "event_reminders"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", "reminder_type", "run_at", name="uq_event_reminder"),
        Index("ix_event_reminders_due", "status", "run_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    reminder_type = Column(String(10), nullable=False)  # 1w, 24h, 1h, custom
    run_at = Column(DateTime, nullable=False)
    message = Column(Text, nullable=True)
    status = Column(String(20), default="pending")  # pending, sent, cancelled, expired
    sent_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    event = relationship("Event", back_populates="reminders")
    user = relationship("User", foreign_keys=[user_id])


class Job(Base):
    """Job posting."""
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    department = Column(String(50), nullable=False)
    location = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False)  # full-time, part-time, contract, internship, freelance
    experience = Column(String(20), nullable=False)
    description = Column(Text, nullable=False)
    requirements = Column(JSON, default=list)
    responsibilities = Column(JSON, default=list)
    skills = Column(JSON, default=list)
    salary_min = Column(Integer, nullable=True)
    salary_max = Column(Integer, nullable=True)
    salary_currency = Column(String(3), default="INR")
    salary_negotiable = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True, index=True)
    application_deadline = Column(
        DateTime, default=lambda: datetime.datetime.utcnow() + datetime.timedelta(days=30)
    )
    posted_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    applications_count = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    applications = relationship("JobApplication", back_populates="job", cascade="all, delete-orphan")


class JobApplication(Base):
    """Public application to a job posting."""
    __tablename__ = "job_applications"
    __table_args__ = (UniqueConstraint("job_id", "email", name="uq_job_application_email"),)

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(120), nullable=False, index=True)
    phone = Column(String(30), nullable=False)
    address = Column(JSON, nullable=True)
    experience_type = Column(String(20), nullable=False)  # Fresher, Experienced
    total_experience_years = Column(Integer, default=0)
    work_experience = Column(JSON, default=list)
    education = Column(JSON, default=list)
    skills = Column(JSON, default=list)
    languages = Column(JSON, default=list)
    cover_letter = Column(String(2000), nullable=True)
    additional_info = Column(JSON, nullable=True)
    resume_url = Column(String(500), nullable=True)
    status = Column(String(30), default="Applied")
    review_notes = Column(JSON, default=list)
    applied_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    job = relationship("Job", back_populates="applications")


class Collaboration(Base):
    """Research collaboration between portal users."""
    __tablename__ = "collaborations"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    type = Column(String(40), nullable=False)  # research_project, paper_collaboration, grant_application, ...
    status = Column(String(20), default="active", index=True)  # active, completed, paused, cancelled
    visibility = Column(String(20), default="institute")  # private, institute, public
    initiator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    research_areas = Column(JSON, default=list)
    keywords = Column(JSON, default=list)
    start_date = Column(DateTime, default=datetime.datetime.utcnow)
    expected_end_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    initiator = relationship("User", foreign_keys=[initiator_id])
    collaborators = relationship("Collaborator", back_populates="collaboration", cascade="all, delete-orphan")
    milestones = relationship(
        "CollaborationMilestone", back_populates="collaboration", cascade="all, delete-orphan",
        order_by="CollaborationMilestone.id",
    )
    updates = relationship(
        "CollaborationUpdate", back_populates="collaboration", cascade="all, delete-orphan",
        order_by="CollaborationUpdate.created_at.desc()",
    )


class Collaborator(Base):
    __tablename__ = "collaborators"
    __table_args__ = (UniqueConstraint("collaboration_id", "user_id", name="uq_collaborator"),)

    id = Column(Integer, primary_key=True, index=True)
    collaboration_id = Column(Integer, ForeignKey("collaborations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(30), default="contributor")  # lead, co-lead, researcher, contributor, advisor
    status = Column(String(20), default="pending")  # pending, accepted, declined, removed
    can_edit = Column(Boolean, default=False)
    can_invite = Column(Boolean, default=False)
    can_manage = Column(Boolean, default=False)
    invited_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    invited_at = Column(DateTime, default=datetime.datetime.utcnow)
    joined_at = Column(DateTime, nullable=True)

    collaboration = relationship("Collaboration", back_populates="collaborators")
    user = relationship("User", foreign_keys=[user_id])


class CollaborationMilestone(Base):
    __tablename__ = "collaboration_milestones"

    id = Column(Integer, primary_key=True, index=True)
    collaboration_id = Column(Integer, ForeignKey("collaborations.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(DateTime, nullable=True)
    status = Column(String(20), default="pending")  # pending, in_progress, completed
    completed_at = Column(DateTime, nullable=True)

    collaboration = relationship("Collaboration", back_populates="milestones")


class CollaborationUpdate(Base):
    __tablename__ = "collaboration_updates"

    id = Column(Integer, primary_key=True, index=True)
    collaboration_id = Column(Integer, ForeignKey("collaborations.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String(20), default="general")  # progress, milestone, issue, announcement, general
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    collaboration = relationship("Collaboration", back_populates="updates")
    author = relationship("User")


class Contact(Base):
    """Public contact enquiry."""
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(120), nullable=False, index=True)
    subject = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    category = Column(String(30), default="general-inquiry")
    status = Column(String(20), default="new", index=True)  # new, in_progress, resolved, closed, spam
    response = Column(Text, nullable=True)
    responded_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    responded_at = Column(DateTime, nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)


class Notification(Base):
    """
    Notification model: in-app notification for a user.
    related_entity_type/related_entity_id form a tagged reference to the
    record the notification is about.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    type = Column(String(50), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    related_entity_type = Column(String(30), nullable=True)  # Event, ResearchPaper, User, Review, Collaboration
    related_entity_id = Column(Integer, nullable=True)
    priority = Column(String(10), default="medium")  # low, medium, high, urgent
    category = Column(String(20), default="info")  # info, success, warning, error, reminder
    is_read = Column(Boolean, default=False, index=True)
    read_at = Column(DateTime, nullable=True)
    email_sent = Column(Boolean, default=False)
    email_sent_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    recipient = relationship("User", foreign_keys=[recipient_id])
    sender = relationship("User", foreign_keys=[sender_id])

    @property
    def related_entity(self):
        if not self.related_entity_type or self.related_entity_id is None:
            return None
        return {"entity_type": self.related_entity_type, "entity_id": self.related_entity_id}


class EmailTemplate(Base):
    """Admin-editable email template. Overrides the built-in template of the same name."""
    __tablename__ = "email_templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    category = Column(String(30), default="notification")
    subject = Column(String(200), nullable=False)
    html_content = Column(Text, nullable=False)
    text_content = Column(Text, nullable=True)
    variables = Column(JSON, default=list)
    description = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True)
    is_system = Column(Boolean, default=False)
    version = Column(Integer, default=1)
    usage_count = Column(Integer, default=0)
    last_used_at = Column(DateTime, nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)


class EmailLog(Base):
    """
    Email log entry. Entries in status "queued" form the outbound queue that
    the outbox worker delivers.
    """
    __tablename__ = "email_logs"
    __table_args__ = (Index("ix_email_logs_outbox", "status", "next_attempt_at"),)

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(String(64), unique=True, nullable=False)
    template_name = Column(String(100), nullable=True)
    category = Column(String(30), default="notification")
    recipient_email = Column(String(120), nullable=False, index=True)
    recipient_name = Column(String(120), nullable=True)
    recipient_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    sender_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    notification_id = Column(Integer, ForeignKey("notifications.id", ondelete="SET NULL"), nullable=True)
    subject = Column(String(300), nullable=False)
    html_content = Column(Text, nullable=False)
    text_content = Column(Text, nullable=True)
    status = Column(String(20), default="queued", index=True)  # queued, sending, sent, failed
    attempts = Column(Integer, default=0)
    next_attempt_at = Column(DateTime, default=datetime.datetime.utcnow)
    last_error = Column(Text, nullable=True)
    queued_at = Column(DateTime, default=datetime.datetime.utcnow)
    sent_at = Column(DateTime, nullable=True)
