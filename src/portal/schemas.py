"""
schemas.py

Pydantic schemas for request/response validation in the ORII research portal.
JSON payloads use camelCase keys; requests also accept snake_case.
"""
from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import Annotated, Any, Dict, List, Optional
from datetime import datetime, timezone
from enum import Enum
import re


def _naive_utc(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_naive_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------------

class UserRole(str, Enum):
    admin = "admin"
    researcher = "researcher"
    faculty = "faculty"
    student = "student"
    visitor = "visitor"


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ResearchField(str, Enum):
    computer_science = "computer_science"
    engineering = "engineering"
    mathematics = "mathematics"
    physics = "physics"
    chemistry = "chemistry"
    biology = "biology"
    medicine = "medicine"
    social_sciences = "social_sciences"
    economics = "economics"
    psychology = "psychology"
    education = "education"
    environmental_science = "environmental_science"
    other = "other"


class ResearchType(str, Enum):
    original_research = "original_research"
    review_article = "review_article"
    case_study = "case_study"
    technical_note = "technical_note"
    survey = "survey"
    tutorial = "tutorial"
    position_paper = "position_paper"
    short_communication = "short_communication"


class Methodology(str, Enum):
    experimental = "experimental"
    theoretical = "theoretical"
    computational = "computational"
    observational = "observational"
    mixed_methods = "mixed_methods"
    qualitative = "qualitative"
    quantitative = "quantitative"
    systematic_review = "systematic_review"
    meta_analysis = "meta_analysis"


class AuthorRole(str, Enum):
    primary_author = "primary_author"
    co_author = "co_author"
    corresponding_author = "corresponding_author"
    supervisor = "supervisor"


class PaperStatus(str, Enum):
    draft = "draft"
    submitted = "submitted"
    under_review = "under_review"
    revision_required = "revision_required"
    revised_submitted = "revised_submitted"
    accepted = "accepted"
    rejected = "rejected"
    published = "published"
    withdrawn = "withdrawn"


class Recommendation(str, Enum):
    accept = "accept"
    minor_revision = "minor_revision"
    major_revision = "major_revision"
    reject = "reject"


class AssignmentResponse(str, Enum):
    accepted = "accepted"
    declined = "declined"


class EventType(str, Enum):
    conference = "conference"
    workshop = "workshop"
    seminar = "seminar"
    webinar = "webinar"
    symposium = "symposium"
    lecture = "lecture"
    meeting = "meeting"
    training = "training"
    networking = "networking"
    other = "other"


class EventCategory(str, Enum):
    research = "Research"
    academic = "Academic"
    professional_development = "Professional Development"
    networking = "Networking"
    technology = "Technology"
    innovation = "Innovation"
    industry_collaboration = "Industry Collaboration"
    student_event = "Student Event"
    public_outreach = "Public Outreach"
    other = "Other"


class EventStatus(str, Enum):
    draft = "draft"
    published = "published"
    cancelled = "cancelled"
    completed = "completed"


class VenueType(str, Enum):
    physical = "physical"
    virtual = "virtual"
    hybrid = "hybrid"


class ReminderPreference(str, Enum):
    one_week = "1w"
    one_day = "24h"
    one_hour = "1h"


class JobType(str, Enum):
    full_time = "full-time"
    part_time = "part-time"
    contract = "contract"
    internship = "internship"
    freelance = "freelance"


class JobExperience(str, Enum):
    entry = "entry-level"
    mid = "mid-level"
    senior = "senior-level"
    executive = "executive"


class ApplicationStatus(str, Enum):
    applied = "Applied"
    under_review = "Under Review"
    shortlisted = "Shortlisted"
    interview_scheduled = "Interview Scheduled"
    rejected = "Rejected"
    hired = "Hired"


class CollaborationType(str, Enum):
    research_project = "research_project"
    paper_collaboration = "paper_collaboration"
    grant_application = "grant_application"
    conference_presentation = "conference_presentation"
    workshop_organization = "workshop_organization"
    data_sharing = "data_sharing"
    methodology_development = "methodology_development"
    other = "other"


class CollaborationStatus(str, Enum):
    active = "active"
    completed = "completed"
    paused = "paused"
    cancelled = "cancelled"


class CollaboratorRole(str, Enum):
    lead = "lead"
    co_lead = "co-lead"
    researcher = "researcher"
    contributor = "contributor"
    advisor = "advisor"


class Visibility(str, Enum):
    public = "public"
    institute = "institute"
    private = "private"


class MilestoneStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    overdue = "overdue"


class UpdateType(str, Enum):
    progress = "progress"
    milestone = "milestone"
    issue = "issue"
    announcement = "announcement"
    general = "general"


class ContactCategory(str, Enum):
    general_inquiry = "general-inquiry"
    collaboration = "collaboration"
    research_proposal = "research-proposal"
    media_inquiry = "media-inquiry"
    technical_support = "technical-support"
    partnership = "partnership"
    career_opportunity = "career-opportunity"
    student_inquiry = "student-inquiry"
    event_inquiry = "event-inquiry"
    other = "other"


class ContactStatus(str, Enum):
    new = "new"
    in_progress = "in_progress"
    resolved = "resolved"
    closed = "closed"
    spam = "spam"


class NotificationType(str, Enum):
    event_reminder = "event_reminder"
    event_registration = "event_registration"
    collaboration_invitation = "collaboration_invitation"
    collaboration_response = "collaboration_response"
    collaboration_update = "collaboration_update"
    collaboration_completion = "collaboration_completion"
    paper_draft_created = "paper_draft_created"
    paper_author_added = "paper_author_added"
    paper_manuscript_uploaded = "paper_manuscript_uploaded"
    paper_submission = "paper_submission"
    paper_review_assigned = "paper_review_assigned"
    paper_review_completed = "paper_review_completed"
    paper_status_update = "paper_status_update"
    paper_decision = "paper_decision"
    system_announcement = "system_announcement"
    account_approved = "account_approved"
    account_rejected = "account_rejected"
    general = "general"


class NotificationPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class NotificationCategory(str, Enum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"
    reminder = "reminder"


class EntityType(str, Enum):
    event = "Event"
    research_paper = "ResearchPaper"
    user = "User"
    review = "Review"
    collaboration = "Collaboration"


class EmailCategory(str, Enum):
    user_management = "user-management"
    notification = "notification"
    marketing = "marketing"
    newsletter = "newsletter"
    system = "system"
    event = "event"
    research = "research"
    custom = "custom"


class EmailStatus(str, Enum):
    queued = "queued"
    sending = "sending"
    sent = "sent"
    failed = "failed"


# ---------------------------------------------------------------------------
# Users & auth
# ---------------------------------------------------------------------------

class UserBase(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr


class UserCreate(UserBase):
    """Registration payload. The admin role cannot be self-assigned."""
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.researcher
    title: Optional[str] = Field(None, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    institution: Optional[str] = Field(None, max_length=150)

    @field_validator("email")
    def normalize_email(cls, v):
        return v.lower()

    @field_validator("password")
    def password_strength(cls, v):
        if not re.search(r"[A-Za-z]", v) or not re.search(r"\d", v):
            raise ValueError("Password must contain at least one letter and one number.")
        return v

    @field_validator("role")
    def no_self_admin(cls, v):
        if v == UserRole.admin:
            raise ValueError("The admin role cannot be requested at registration.")
        return v


class UserLogin(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class PasswordChange(CamelModel):
    current_password: str
    new_password: str = Field(..., min_length=6)

    @model_validator(mode="after")
    def passwords_differ(self):
        if self.current_password == self.new_password:
            raise ValueError("New password must differ from the current password.")
        return self


class ProfileUpdate(CamelModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    bio: Optional[str] = Field(None, max_length=1000)
    title: Optional[str] = Field(None, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    institution: Optional[str] = Field(None, max_length=150)
    research_interests: Optional[List[str]] = None
    website: Optional[str] = None
    linkedin: Optional[str] = None
    orcid: Optional[str] = Field(None, pattern=r"^\d{4}-\d{4}-\d{4}-\d{3}[\dX]$")


class UserSummary(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    role: str
    avatar_url: Optional[str] = None
    department: Optional[str] = None
    institution: Optional[str] = None


class PublicUser(CamelModel):
    """Profile shown to other users; omits account state."""
    id: int
    first_name: str
    last_name: str
    email: str
    role: str
    bio: Optional[str] = None
    title: Optional[str] = None
    department: Optional[str] = None
    institution: Optional[str] = None
    research_interests: List[str] = []
    avatar_url: Optional[str] = None
    website: Optional[str] = None
    linkedin: Optional[str] = None
    orcid: Optional[str] = None
    created_at: Optional[UtcDatetime] = None


class UserResponse(PublicUser):
    is_active: bool
    email_verified: bool
    is_approved: bool
    approval_status: str
    approval_date: Optional[UtcDatetime] = None
    approved_by_id: Optional[int] = None
    rejection_reason: Optional[str] = None
    last_login: Optional[UtcDatetime] = None


class TokenResponse(CamelModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse


class RejectUserRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=1000)


class UserStatusUpdate(CamelModel):
    is_active: bool


class UserRoleUpdate(CamelModel):
    role: UserRole


# ---------------------------------------------------------------------------
# Research papers
# ---------------------------------------------------------------------------

def _clean_keywords(v):
    cleaned = [k.strip() for k in v if k and k.strip()]
    if not cleaned:
        raise ValueError("At least one keyword is required.")
    if any(len(k) > 100 for k in cleaned):
        raise ValueError("Keywords cannot exceed 100 characters.")
    return cleaned


class PaperBasicInfo(CamelModel):
    title: str = Field(..., min_length=1, max_length=300)
    abstract: str = Field(..., min_length=1, max_length=3000)
    keywords: List[str] = Field(..., min_length=1)
    field: ResearchField
    subfield: Optional[str] = Field(None, max_length=100)
    research_type: ResearchType
    methodology: Optional[Methodology] = None

    @field_validator("keywords")
    def clean_keywords(cls, v):
        return _clean_keywords(v)


class PaperBasicInfoUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    abstract: Optional[str] = Field(None, min_length=1, max_length=3000)
    keywords: Optional[List[str]] = None
    field: Optional[ResearchField] = None
    subfield: Optional[str] = Field(None, max_length=100)
    research_type: Optional[ResearchType] = None
    methodology: Optional[Methodology] = None

    @field_validator("keywords")
    def clean_keywords(cls, v):
        if v is None:
            return v
        return _clean_keywords(v)


class AuthorCreate(CamelModel):
    email: Optional[EmailStr] = None
    user_id: Optional[int] = None
    order: Optional[int] = Field(None, ge=1)
    role: AuthorRole = AuthorRole.co_author
    affiliation: Optional[str] = Field(None, max_length=200)
    contribution: Optional[str] = Field(None, max_length=500)
    is_corresponding: bool = False

    @model_validator(mode="after")
    def email_or_user(self):
        if not self.email and self.user_id is None:
            raise ValueError("Either email or userId is required.")
        if self.role == AuthorRole.primary_author:
            raise ValueError("A paper has exactly one primary author.")
        return self


class SubmitPaperRequest(CamelModel):
    suggested_reviewers: List[EmailStr] = []
    excluded_reviewers: List[EmailStr] = []
    cover_letter: Optional[str] = Field(None, max_length=5000)


class AssignReviewerRequest(CamelModel):
    reviewer_id: int
    due_date: Optional[UtcDatetime] = None


class AssignmentRespond(CamelModel):
    response: AssignmentResponse


class ReviewCreate(CamelModel):
    overall_rating: int = Field(..., ge=1, le=5)
    recommendation: Recommendation
    comments_overall: str = Field(..., min_length=1)
    comments_methodology: Optional[str] = None
    comments_results: Optional[str] = None
    comments_presentation: Optional[str] = None
    comments_significance: Optional[str] = None
    confidential_comments: Optional[str] = None
    is_anonymous: bool = True


class EditorialDecisionRequest(CamelModel):
    decision: Recommendation
    comments: Optional[str] = None
    revision_due_date: Optional[UtcDatetime] = None


class PublicationInfo(CamelModel):
    journal: Optional[str] = None
    volume: Optional[str] = None
    issue: Optional[str] = None
    pages: Optional[str] = None
    doi: Optional[str] = None
    publication_url: Optional[str] = None
    published_date: Optional[UtcDatetime] = None
    is_open_access: bool = False


class PaperStatusUpdate(CamelModel):
    status: PaperStatus
    comments: Optional[str] = None
    publication: Optional[PublicationInfo] = None


class StepState(CamelModel):
    completed: bool
    completed_at: Optional[UtcDatetime] = None


class AuthorResponse(CamelModel):
    id: int
    user: UserSummary
    order: int
    role: str
    affiliation: Optional[str] = None
    contribution: Optional[str] = None
    is_corresponding: bool


class PaperFileResponse(CamelModel):
    id: int
    kind: str
    filename: str
    original_name: str
    size: int
    mime_type: str
    description: Optional[str] = None
    caption: Optional[str] = None
    order: int = 0
    version: Optional[int] = None
    uploaded_at: Optional[UtcDatetime] = None


class PaperVersionResponse(CamelModel):
    version: int
    filename: str
    changes: Optional[str] = None
    uploaded_at: Optional[UtcDatetime] = None


class AssignmentOut(CamelModel):
    id: int
    reviewer: UserSummary
    status: str
    assigned_at: Optional[UtcDatetime] = None
    due_date: Optional[UtcDatetime] = None
    accepted_at: Optional[UtcDatetime] = None
    completed_at: Optional[UtcDatetime] = None


class ReviewOut(CamelModel):
    id: int
    reviewer: Optional[UserSummary] = None
    overall_rating: int
    recommendation: str
    comments_overall: str
    comments_methodology: Optional[str] = None
    comments_results: Optional[str] = None
    comments_presentation: Optional[str] = None
    comments_significance: Optional[str] = None
    confidential_comments: Optional[str] = None
    is_anonymous: bool
    submitted_at: Optional[UtcDatetime] = None


class EditorialDecisionOut(CamelModel):
    decision: str
    comments: Optional[str] = None
    decided_by_id: Optional[int] = None
    decided_at: Optional[UtcDatetime] = None
    revision_due_date: Optional[UtcDatetime] = None


class ReviewProcessOut(CamelModel):
    assigned_reviewers: List[AssignmentOut] = []
    reviews: List[ReviewOut] = []
    editorial_decision: Optional[EditorialDecisionOut] = None


class PaperSummary(CamelModel):
    id: int
    submission_id: str
    title: str
    abstract: str
    keywords: List[str] = []
    field: str
    research_type: str
    status: str
    completion_percentage: int
    review_status: str
    submitted_by_id: int
    is_public: bool
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class PaperTimeline(CamelModel):
    submitted_at: Optional[UtcDatetime] = None
    review_started_at: Optional[UtcDatetime] = None
    first_decision_at: Optional[UtcDatetime] = None
    revised_at: Optional[UtcDatetime] = None
    final_decision_at: Optional[UtcDatetime] = None
    published_at: Optional[UtcDatetime] = None


class PaperResponse(PaperSummary):
    subfield: Optional[str] = None
    methodology: Optional[str] = None
    submission_date: Optional[UtcDatetime] = None
    submitted_by: UserSummary
    authors: List[AuthorResponse] = []
    manuscript: Optional[PaperFileResponse] = None
    supplementary_materials: List[PaperFileResponse] = []
    figures: List[PaperFileResponse] = []
    versions: List[PaperVersionResponse] = []
    current_version: int
    submission_progress: Dict[str, StepState]
    timeline: PaperTimeline
    metrics: Dict[str, int]
    allow_comments: bool = True
    anonymous_review: bool = True
    suggested_reviewers: List[str] = []
    excluded_reviewers: List[str] = []
    review_process: Optional[ReviewProcessOut] = None
    journal: Optional[str] = None
    doi: Optional[str] = None
    published_date: Optional[UtcDatetime] = None


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class EventBase(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    short_description: Optional[str] = Field(None, max_length=300)
    type: EventType
    category: EventCategory
    start_date: UtcDatetime
    end_date: UtcDatetime
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    timezone: str = "UTC"
    venue_type: VenueType = VenueType.physical
    venue_name: Optional[str] = None
    venue_address: Optional[Dict[str, Any]] = None
    virtual_link: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1)
    organizers: List[Dict[str, Any]] = []
    speakers: List[Dict[str, Any]] = []
    agenda: List[Dict[str, Any]] = []
    tags: List[str] = []
    registration_required: bool = False
    registration_deadline: Optional[UtcDatetime] = None
    registration_fee: float = Field(0, ge=0)
    registration_currency: str = "USD"
    max_attendees: Optional[int] = Field(None, ge=1)
    status: EventStatus = EventStatus.draft
    is_public: bool = True
    is_featured: bool = False


class EventCreate(EventBase):
    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("End date must be after start date.")
        if self.registration_deadline and self.registration_deadline > self.start_date:
            raise ValueError("Registration deadline must be before the event starts.")
        return self


class EventUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    short_description: Optional[str] = Field(None, max_length=300)
    type: Optional[EventType] = None
    category: Optional[EventCategory] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    venue_type: Optional[VenueType] = None
    venue_name: Optional[str] = None
    venue_address: Optional[Dict[str, Any]] = None
    virtual_link: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1)
    organizers: Optional[List[Dict[str, Any]]] = None
    speakers: Optional[List[Dict[str, Any]]] = None
    agenda: Optional[List[Dict[str, Any]]] = None
    tags: Optional[List[str]] = None
    registration_required: Optional[bool] = None
    registration_deadline: Optional[UtcDatetime] = None
    max_attendees: Optional[int] = Field(None, ge=1)
    status: Optional[EventStatus] = None
    is_public: Optional[bool] = None
    is_featured: Optional[bool] = None


class EventResponse(EventBase):
    id: int
    registered_count: int
    is_archived: bool
    created_by_id: int
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class EventRegistration(CamelModel):
    reminder_preferences: List[ReminderPreference] = [ReminderPreference.one_day, ReminderPreference.one_hour]


class CustomReminderCreate(CamelModel):
    run_at: UtcDatetime
    message: Optional[str] = Field(None, max_length=1000)
    user_id: Optional[int] = None


class ReminderResponse(CamelModel):
    id: int
    event_id: int
    user_id: Optional[int] = None
    reminder_type: str
    run_at: UtcDatetime
    message: Optional[str] = None
    status: str
    sent_at: Optional[UtcDatetime] = None
    last_error: Optional[str] = None


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

class JobBase(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    department: str = Field(..., min_length=1, max_length=50)
    location: str = Field(..., min_length=1, max_length=100)
    type: JobType
    experience: JobExperience
    description: str = Field(..., min_length=1)
    requirements: List[str] = []
    responsibilities: List[str] = []
    skills: List[str] = []
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    salary_currency: str = "INR"
    salary_negotiable: bool = False
    application_deadline: Optional[UtcDatetime] = None


class JobCreate(JobBase):
    @model_validator(mode="after")
    def check_salary(self):
        if self.salary_min is not None and self.salary_max is not None and self.salary_max < self.salary_min:
            raise ValueError("Maximum salary must be greater than minimum salary.")
        return self


class JobUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    department: Optional[str] = None
    location: Optional[str] = None
    type: Optional[JobType] = None
    experience: Optional[JobExperience] = None
    description: Optional[str] = None
    requirements: Optional[List[str]] = None
    responsibilities: Optional[List[str]] = None
    skills: Optional[List[str]] = None
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    salary_negotiable: Optional[bool] = None
    application_deadline: Optional[UtcDatetime] = None
    is_active: Optional[bool] = None


class JobResponse(JobBase):
    id: int
    is_active: bool
    applications_count: int
    created_at: Optional[UtcDatetime] = None


class JobApplicationCreate(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: str = Field(..., min_length=5, max_length=30)
    address: Optional[Dict[str, Any]] = None
    experience_type: str = Field(..., pattern=r"^(Fresher|Experienced)$")
    total_experience_years: int = Field(0, ge=0)
    work_experience: List[Dict[str, Any]] = []
    education: List[Dict[str, Any]] = []
    skills: List[str] = []
    languages: List[Dict[str, Any]] = []
    cover_letter: Optional[str] = Field(None, max_length=2000)
    additional_info: Optional[Dict[str, Any]] = None
    resume_url: Optional[str] = None

    @field_validator("email")
    def normalize_email(cls, v):
        return v.lower()


class JobApplicationResponse(JobApplicationCreate):
    id: int
    job_id: int
    status: str
    review_notes: List[Dict[str, Any]] = []
    applied_at: Optional[UtcDatetime] = None


class ApplicationStatusUpdate(CamelModel):
    status: ApplicationStatus
    note: Optional[str] = Field(None, max_length=1000)


# ---------------------------------------------------------------------------
# Collaborations
# ---------------------------------------------------------------------------

class CollaborationCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    type: CollaborationType
    visibility: Visibility = Visibility.institute
    research_areas: List[str] = []
    keywords: List[str] = []
    expected_end_date: Optional[UtcDatetime] = None
    milestones: List["MilestoneCreate"] = []


class CollaborationUpdateRequest(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[CollaborationStatus] = None
    visibility: Optional[Visibility] = None
    research_areas: Optional[List[str]] = None
    keywords: Optional[List[str]] = None
    expected_end_date: Optional[UtcDatetime] = None


class MilestoneCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: Optional[UtcDatetime] = None


class MilestoneStatusUpdate(CamelModel):
    status: MilestoneStatus


class CollaboratorInvite(CamelModel):
    email: EmailStr
    role: CollaboratorRole = CollaboratorRole.contributor
    can_edit: bool = False
    can_invite: bool = False
    can_manage: bool = False
    message: Optional[str] = Field(None, max_length=1000)


class InvitationResponse(CamelModel):
    response: AssignmentResponse


class CollaborationPost(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    type: UpdateType = UpdateType.general


class CollaboratorOut(CamelModel):
    id: int
    user: UserSummary
    role: str
    status: str
    can_edit: bool
    can_invite: bool
    can_manage: bool
    joined_at: Optional[UtcDatetime] = None


class MilestoneOut(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    due_date: Optional[UtcDatetime] = None
    status: str
    completed_at: Optional[UtcDatetime] = None


class CollaborationPostOut(CamelModel):
    id: int
    author: UserSummary
    title: str
    content: str
    type: str
    created_at: Optional[UtcDatetime] = None


class CollaborationResponse(CamelModel):
    id: int
    title: str
    description: str
    type: str
    status: str
    visibility: str
    initiator: UserSummary
    research_areas: List[str] = []
    keywords: List[str] = []
    start_date: Optional[UtcDatetime] = None
    expected_end_date: Optional[UtcDatetime] = None
    completed_at: Optional[UtcDatetime] = None
    collaborators: List[CollaboratorOut] = []
    milestones: List[MilestoneOut] = []
    updates: List[CollaborationPostOut] = []
    created_at: Optional[UtcDatetime] = None


# ---------------------------------------------------------------------------
# Contact
# ---------------------------------------------------------------------------

class ContactCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=10, max_length=5000)
    category: ContactCategory = ContactCategory.general_inquiry


class ContactStatusUpdate(CamelModel):
    status: ContactStatus


class ContactReply(CamelModel):
    response: str = Field(..., min_length=1, max_length=5000)


class ContactResponse(CamelModel):
    id: int
    name: str
    email: str
    subject: str
    message: str
    category: str
    status: str
    response: Optional[str] = None
    responded_by_id: Optional[int] = None
    responded_at: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class RelatedEntity(CamelModel):
    entity_type: EntityType
    entity_id: int


class NotificationResponse(CamelModel):
    id: int
    recipient_id: int
    sender_id: Optional[int] = None
    type: str
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    related_entity: Optional[RelatedEntity] = None
    priority: str
    category: str
    is_read: bool
    read_at: Optional[UtcDatetime] = None
    email_sent: bool
    created_at: Optional[UtcDatetime] = None


class AnnouncementCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    recipient_ids: Optional[List[int]] = None
    priority: NotificationPriority = NotificationPriority.medium
    send_email: bool = False


# ---------------------------------------------------------------------------
# Email management
# ---------------------------------------------------------------------------

class EmailTemplateCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9_\-]+$")
    category: EmailCategory = EmailCategory.custom
    subject: str = Field(..., min_length=1, max_length=200)
    html_content: str = Field(..., min_length=1)
    text_content: Optional[str] = None
    variables: List[str] = []
    description: Optional[str] = Field(None, max_length=500)
    is_active: bool = True


class EmailTemplateUpdate(CamelModel):
    category: Optional[EmailCategory] = None
    subject: Optional[str] = Field(None, min_length=1, max_length=200)
    html_content: Optional[str] = None
    text_content: Optional[str] = None
    variables: Optional[List[str]] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class EmailTemplateResponse(EmailTemplateCreate):
    id: int
    is_system: bool
    version: int
    usage_count: int
    last_used_at: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None


class TemplatePreview(CamelModel):
    variables: Dict[str, Any] = {}


class SendEmailRequest(CamelModel):
    recipient_ids: List[int] = []
    recipient_emails: List[EmailStr] = []
    template_name: Optional[str] = None
    variables: Dict[str, Any] = {}
    subject: Optional[str] = Field(None, max_length=300)
    html_content: Optional[str] = None

    @model_validator(mode="after")
    def check_content(self):
        if not self.recipient_ids and not self.recipient_emails:
            raise ValueError("At least one recipient is required.")
        if not self.template_name and not (self.subject and self.html_content):
            raise ValueError("Provide a templateName or both subject and htmlContent.")
        return self


class EmailLogResponse(CamelModel):
    id: int
    message_id: str
    template_name: Optional[str] = None
    category: str
    recipient_email: str
    recipient_name: Optional[str] = None
    subject: str
    status: str
    attempts: int
    last_error: Optional[str] = None
    queued_at: Optional[UtcDatetime] = None
    sent_at: Optional[UtcDatetime] = None


CollaborationCreate.model_rebuild()
