"""
Record models for payloads returned by the LMS API.

The API speaks camelCase JSON. Each model is a plain dataclass with a
`from_dict(data)` classmethod that maps the API fields onto snake_case
attributes, fills defaults for anything missing and parses timestamps
into timezone-aware datetimes. Models carry no behaviour beyond small
derived properties used by templates and list views.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_datetime(value) -> Optional[datetime]:
    """Convert a value to an aware datetime. Accepts datetime objects,
    ISO-format strings (with or without trailing Z) and epoch millis."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        value = value.replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(value)
        except (ValueError, TypeError):
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _float(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _list(value) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ===========================================================================
# Notifications
# ===========================================================================

@dataclass
class Notification:
    id: str = ""
    title: str = ""
    message: str = ""
    type: str = "info"
    category: str = "system"
    priority: str = "medium"
    is_read: bool = False
    is_important: bool = False
    is_favorite: bool = False
    action_url: Optional[str] = None
    action_text: Optional[str] = None
    sender_name: Optional[str] = None
    course_id: Optional[str] = None
    course_name: Optional[str] = None
    created_at: Optional[datetime] = None
    read_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Notification:
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            message=data.get("message") or "",
            type=data.get("type") or "info",
            category=data.get("category") or "system",
            priority=data.get("priority") or "medium",
            is_read=bool(data.get("isRead", False)),
            is_important=bool(data.get("isImportant", False)),
            is_favorite=bool(data.get("isFavorite", False)),
            action_url=data.get("actionUrl"),
            action_text=data.get("actionText"),
            sender_name=data.get("senderName"),
            course_id=data.get("courseId"),
            course_name=data.get("courseName"),
            created_at=_parse_datetime(data.get("createdAt")),
            read_at=_parse_datetime(data.get("readAt")),
        )


@dataclass
class NotificationSettings:
    email_notifications: bool = True
    push_notifications: bool = True
    sms_notifications: bool = False
    in_app_notifications: bool = True
    course_updates: bool = True
    assignment_reminders: bool = True
    grade_notifications: bool = True
    message_notifications: bool = True
    achievement_notifications: bool = True
    system_notifications: bool = True
    marketing_notifications: bool = False
    quiet_hours_enabled: bool = True
    quiet_hours_start: str = "22:00"
    quiet_hours_end: str = "07:00"
    frequency: str = "instant"

    _FIELDS = {
        "email_notifications": "emailNotifications",
        "push_notifications": "pushNotifications",
        "sms_notifications": "smsNotifications",
        "in_app_notifications": "inAppNotifications",
        "course_updates": "courseUpdates",
        "assignment_reminders": "assignmentReminders",
        "grade_notifications": "gradeNotifications",
        "message_notifications": "messageNotifications",
        "achievement_notifications": "achievementNotifications",
        "system_notifications": "systemNotifications",
        "marketing_notifications": "marketingNotifications",
    }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> NotificationSettings:
        settings = cls()
        if not data:
            return settings
        for attr, key in cls._FIELDS.items():
            if key in data:
                setattr(settings, attr, bool(data[key]))
        quiet = data.get("quietHours") or {}
        settings.quiet_hours_enabled = bool(quiet.get("enabled", settings.quiet_hours_enabled))
        settings.quiet_hours_start = quiet.get("startTime") or settings.quiet_hours_start
        settings.quiet_hours_end = quiet.get("endTime") or settings.quiet_hours_end
        settings.frequency = data.get("frequency") or settings.frequency
        return settings

    def to_dict(self) -> Dict[str, Any]:
        payload = {key: getattr(self, attr) for attr, key in self._FIELDS.items()}
        payload["quietHours"] = {
            "enabled": self.quiet_hours_enabled,
            "startTime": self.quiet_hours_start,
            "endTime": self.quiet_hours_end,
        }
        payload["frequency"] = self.frequency
        return payload


# ===========================================================================
# Announcements
# ===========================================================================

@dataclass
class Announcement:
    id: str = ""
    teacher_id: str = ""
    title: str = ""
    content: str = ""
    course_id: Optional[str] = None
    course_name: Optional[str] = None
    target_audience: str = "all_students"
    specific_student_ids: List[str] = field(default_factory=list)
    priority: str = "medium"
    status: str = "draft"
    tags: List[str] = field(default_factory=list)
    attachments: List[str] = field(default_factory=list)
    allow_comments: bool = True
    send_email: bool = False
    send_push: bool = False
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    scheduled_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Announcement:
        return cls(
            id=str(data.get("id", "")),
            teacher_id=data.get("teacherId") or "",
            title=data.get("title") or "",
            content=data.get("content") or "",
            course_id=data.get("courseId"),
            course_name=data.get("courseName"),
            target_audience=data.get("targetAudience") or "all_students",
            specific_student_ids=[str(s) for s in _list(data.get("specificStudentIds"))],
            priority=data.get("priority") or "medium",
            status=data.get("status") or "draft",
            tags=_list(data.get("tags")),
            attachments=_list(data.get("attachments")),
            allow_comments=bool(data.get("allowComments", True)),
            send_email=bool(data.get("sendEmail", False)),
            send_push=bool(data.get("sendPush", False)),
            view_count=_int(data.get("viewCount")),
            like_count=_int(data.get("likeCount")),
            comment_count=_int(data.get("commentCount")),
            scheduled_at=_parse_datetime(data.get("scheduledAt")),
            published_at=_parse_datetime(data.get("publishedAt")),
            expires_at=_parse_datetime(data.get("expiresAt")),
            created_at=_parse_datetime(data.get("createdAt")),
            updated_at=_parse_datetime(data.get("updatedAt")),
        )

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and self.expires_at < _now()


# ===========================================================================
# AI recommendations
# ===========================================================================

@dataclass
class Recommendation:
    id: str = ""
    title: str = ""
    description: str = ""
    recommendation_type: str = "next_lesson"
    priority: str = "medium"
    confidence: float = 0.0
    is_active: bool = True
    dismissed_at: Optional[datetime] = None
    target_url: Optional[str] = None
    reasoning: Optional[str] = None
    estimated_minutes: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Recommendation:
        metadata = data.get("metadata") or {}
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            description=data.get("description") or "",
            recommendation_type=data.get("recommendationType") or data.get("type") or "next_lesson",
            priority=data.get("priority") or "medium",
            confidence=_float(data.get("confidence")),
            is_active=bool(data.get("isActive", True)),
            dismissed_at=_parse_datetime(data.get("dismissedAt")),
            target_url=metadata.get("targetUrl") or data.get("href"),
            reasoning=data.get("reasoning"),
            estimated_minutes=metadata.get("estimatedTime"),
            created_at=_parse_datetime(data.get("createdAt")),
        )


# ===========================================================================
# AI models (admin)
# ===========================================================================

@dataclass
class AIModel:
    id: str = ""
    name: str = ""
    description: str = ""
    type: str = "prediction"
    version: str = ""
    status: str = "inactive"
    accuracy: float = 0.0
    training_progress: Optional[float] = None
    environment: str = "development"
    instances: int = 0
    endpoint: Optional[str] = None
    traffic: float = 0.0
    total_predictions: int = 0
    avg_response_time: float = 0.0
    error_rate: float = 0.0
    accuracy_trend: str = "stable"
    auto_retrain: bool = False
    confidence_threshold: float = 0.0
    tags: List[str] = field(default_factory=list)
    created_by: Optional[str] = None
    last_trained: Optional[datetime] = None
    next_training: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AIModel:
        deployment = data.get("deploymentInfo") or {}
        metrics = data.get("metrics") or {}
        configuration = data.get("configuration") or {}
        progress = data.get("trainingProgress")
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            description=data.get("description") or "",
            type=data.get("type") or "prediction",
            version=str(data.get("version") or ""),
            status=data.get("status") or "inactive",
            accuracy=_float(data.get("accuracy")),
            training_progress=_float(progress) if progress is not None else None,
            environment=deployment.get("environment") or "development",
            instances=_int(deployment.get("instances")),
            endpoint=deployment.get("endpoint"),
            traffic=_float(deployment.get("traffic")),
            total_predictions=_int(metrics.get("totalPredictions")),
            avg_response_time=_float(metrics.get("avgResponseTime")),
            error_rate=_float(metrics.get("errorRate")),
            accuracy_trend=metrics.get("accuracyTrend") or "stable",
            auto_retrain=bool(configuration.get("autoRetrain", False)),
            confidence_threshold=_float(configuration.get("confidenceThreshold")),
            tags=_list(data.get("tags")),
            created_by=data.get("createdBy"),
            last_trained=_parse_datetime(data.get("lastTrained")),
            next_training=_parse_datetime(data.get("nextTraining")),
            created_at=_parse_datetime(data.get("createdAt")),
            updated_at=_parse_datetime(data.get("updatedAt")),
        )


# ===========================================================================
# Assignments
# ===========================================================================

@dataclass
class SubmissionFile:
    id: str = ""
    name: str = ""
    url: str = ""
    size: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SubmissionFile:
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            url=data.get("url") or "",
            size=_int(data.get("size")),
        )


@dataclass
class Submission:
    id: str = ""
    assignment_id: str = ""
    status: str = "not_submitted"
    text_submission: Optional[str] = None
    files: List[SubmissionFile] = field(default_factory=list)
    score: Optional[float] = None
    feedback: Optional[str] = None
    is_late: bool = False
    attempt_number: int = 1
    submitted_at: Optional[datetime] = None
    graded_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional[Submission]:
        if not data:
            return None
        score = data.get("score")
        return cls(
            id=str(data.get("id", "")),
            assignment_id=data.get("assignmentId") or "",
            status=data.get("status") or "not_submitted",
            text_submission=data.get("textSubmission"),
            files=[SubmissionFile.from_dict(f) for f in _list(data.get("files"))],
            score=_float(score) if score is not None else None,
            feedback=data.get("feedback"),
            is_late=bool(data.get("isLate", False)),
            attempt_number=_int(data.get("attemptNumber"), 1),
            submitted_at=_parse_datetime(data.get("submittedAt")),
            graded_at=_parse_datetime(data.get("gradedAt")),
        )


@dataclass
class Assignment:
    id: str = ""
    title: str = ""
    description: Optional[str] = None
    instructions: Optional[str] = None
    course_id: str = ""
    course_name: str = ""
    instructor_name: str = ""
    status: str = "published"
    max_points: float = 0
    due_date: Optional[datetime] = None
    submission: Optional[Submission] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Assignment:
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            description=data.get("description"),
            instructions=data.get("instructions"),
            course_id=data.get("courseId") or "",
            course_name=data.get("courseName") or "",
            instructor_name=data.get("instructorName") or "",
            status=data.get("status") or "published",
            max_points=_float(data.get("maxPoints")),
            due_date=_parse_datetime(data.get("dueDate")),
            submission=Submission.from_dict(data.get("submission")),
            created_at=_parse_datetime(data.get("createdAt")),
        )


# ===========================================================================
# Messaging
# ===========================================================================

@dataclass
class Participant:
    id: str = ""
    name: str = ""
    email: str = ""
    role: str = "student"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Participant:
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            email=data.get("email") or "",
            role=data.get("role") or "student",
        )


@dataclass
class Message:
    id: str = ""
    conversation_id: str = ""
    content: str = ""
    sender_id: str = ""
    sender_name: str = ""
    message_type: str = "text"
    is_read: bool = False
    attachments: List[Dict[str, Any]] = field(default_factory=list)
    reply_to_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    edited_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Message:
        return cls(
            id=str(data.get("id", "")),
            conversation_id=data.get("conversationId") or "",
            content=data.get("content") or "",
            sender_id=str(data.get("senderId") or ""),
            sender_name=data.get("senderName") or "",
            message_type=data.get("messageType") or "text",
            is_read=bool(data.get("isRead", False)),
            attachments=_list(data.get("attachments")),
            reply_to_id=data.get("replyToId"),
            sent_at=_parse_datetime(data.get("sentAt")),
            edited_at=_parse_datetime(data.get("editedAt")),
        )

    def to_event(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "content": self.content,
            "sender_id": self.sender_id,
            "sender_name": self.sender_name,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
        }


@dataclass
class Conversation:
    id: str = ""
    subject: Optional[str] = None
    course_id: Optional[str] = None
    course_name: Optional[str] = None
    participants: List[Participant] = field(default_factory=list)
    last_message: Optional[Message] = None
    unread_count: int = 0
    is_archived: bool = False
    last_activity_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Conversation:
        last = data.get("lastMessage")
        return cls(
            id=str(data.get("id", "")),
            subject=data.get("subject"),
            course_id=data.get("courseId"),
            course_name=data.get("courseName"),
            participants=[Participant.from_dict(p) for p in _list(data.get("participants"))],
            last_message=Message.from_dict(last) if last else None,
            unread_count=_int(data.get("unreadCount")),
            is_archived=bool(data.get("isArchived", False)),
            last_activity_at=_parse_datetime(data.get("lastActivityAt")),
            created_at=_parse_datetime(data.get("createdAt")),
        )

    @property
    def participant_names(self) -> List[str]:
        return [p.name for p in self.participants]

    def has_participant(self, user_id) -> bool:
        return any(p.id == str(user_id) for p in self.participants)


# ===========================================================================
# Subscriptions
# ===========================================================================

@dataclass
class PaymentRecord:
    id: str = ""
    amount: float = 0.0
    currency: str = "USD"
    status: str = "paid"
    paid_at: Optional[datetime] = None
    invoice_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PaymentRecord:
        return cls(
            id=str(data.get("id", "")),
            amount=_float(data.get("amount")),
            currency=data.get("currency") or "USD",
            status=data.get("status") or "paid",
            paid_at=_parse_datetime(data.get("paidAt")),
            invoice_url=data.get("invoiceUrl"),
        )


@dataclass
class Subscription:
    id: str = ""
    course_id: str = ""
    course_name: str = ""
    course_slug: str = ""
    teacher_name: str = ""
    plan: str = "monthly"
    price: float = 0.0
    currency: str = "USD"
    status: str = "active"
    cancel_at_period_end: bool = False
    payment_method: Optional[str] = None
    total_paid: float = 0.0
    features: List[str] = field(default_factory=list)
    payment_history: List[PaymentRecord] = field(default_factory=list)
    lessons_completed: int = 0
    total_lessons: int = 0
    start_date: Optional[datetime] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    next_payment_date: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Subscription:
        usage = data.get("usageStats") or {}
        return cls(
            id=str(data.get("id", "")),
            course_id=data.get("courseId") or "",
            course_name=data.get("courseName") or "",
            course_slug=data.get("courseSlug") or "",
            teacher_name=data.get("teacherName") or "",
            plan=data.get("plan") or "monthly",
            price=_float(data.get("price")),
            currency=data.get("currency") or "USD",
            status=data.get("status") or "active",
            cancel_at_period_end=bool(data.get("cancelAtPeriodEnd", False)),
            payment_method=data.get("paymentMethod"),
            total_paid=_float(data.get("totalPaid")),
            features=_list(data.get("features")),
            payment_history=[PaymentRecord.from_dict(p) for p in _list(data.get("paymentHistory"))],
            lessons_completed=_int(usage.get("lessonsCompleted")),
            total_lessons=_int(usage.get("totalLessons")),
            start_date=_parse_datetime(data.get("startDate")),
            current_period_start=_parse_datetime(data.get("currentPeriodStart")),
            current_period_end=_parse_datetime(data.get("currentPeriodEnd")),
            next_payment_date=_parse_datetime(data.get("nextPaymentDate")),
        )

    @property
    def progress_percent(self) -> int:
        if not self.total_lessons:
            return 0
        return round(self.lessons_completed / self.total_lessons * 100)

    @property
    def can_pause(self) -> bool:
        return self.status == "active"

    @property
    def can_resume(self) -> bool:
        return self.status == "paused"

    @property
    def can_cancel(self) -> bool:
        return self.status in ("active", "paused", "past_due") and not self.cancel_at_period_end


# ===========================================================================
# Course catalog
# ===========================================================================

@dataclass
class Lesson:
    id: str = ""
    title: str = ""
    duration: int = 0  # minutes
    is_preview: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Lesson:
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            duration=_int(data.get("duration")),
            is_preview=bool(data.get("isPreview", False)),
        )


@dataclass
class CourseSection:
    id: str = ""
    title: str = ""
    lessons: List[Lesson] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CourseSection:
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            lessons=[Lesson.from_dict(l) for l in _list(data.get("lessons"))],
        )

    @property
    def total_duration(self) -> int:
        return sum(lesson.duration for lesson in self.lessons)


@dataclass
class CourseDetail:
    id: str = ""
    slug: str = ""
    title: str = ""
    short_description: str = ""
    description: str = ""
    teacher_name: str = ""
    category_name: Optional[str] = None
    level: Optional[str] = None
    price: float = 0.0
    original_price: Optional[float] = None
    currency: str = "USD"
    is_free: bool = False
    rating: float = 0.0
    total_reviews: int = 0
    total_students: int = 0
    thumbnail_url: Optional[str] = None
    what_you_will_learn: List[str] = field(default_factory=list)
    requirements: List[str] = field(default_factory=list)
    sections: List[CourseSection] = field(default_factory=list)
    is_enrolled: bool = False
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CourseDetail:
        teacher = data.get("teacher") or {}
        category = data.get("category") or {}
        original = data.get("originalPrice")
        return cls(
            id=str(data.get("id", "")),
            slug=data.get("slug") or "",
            title=data.get("title") or "",
            short_description=data.get("shortDescription") or "",
            description=data.get("description") or "",
            teacher_name=teacher.get("name") or data.get("teacherName") or "",
            category_name=category.get("name"),
            level=data.get("level"),
            price=_float(data.get("price")),
            original_price=_float(original) if original is not None else None,
            currency=data.get("currency") or "USD",
            is_free=bool(data.get("isFree", False)),
            rating=_float(data.get("rating")),
            total_reviews=_int(data.get("totalReviews")),
            total_students=_int(data.get("totalStudents")),
            thumbnail_url=data.get("thumbnailUrl"),
            what_you_will_learn=_list(data.get("whatYouWillLearn")),
            requirements=_list(data.get("requirements")),
            sections=[CourseSection.from_dict(s) for s in _list(data.get("sections"))],
            is_enrolled=bool(data.get("isEnrolled", False)),
            updated_at=_parse_datetime(data.get("updatedAt")),
        )

    @property
    def total_sections(self) -> int:
        return len(self.sections)

    @property
    def total_lessons(self) -> int:
        return sum(len(s.lessons) for s in self.sections)

    @property
    def total_duration(self) -> int:
        return sum(s.total_duration for s in self.sections)


# ===========================================================================
# AI tutoring
# ===========================================================================

@dataclass
class TutoringSession:
    id: str = ""
    mode: str = "adaptive"
    topic: str = ""
    status: str = "active"
    message_count: int = 0
    course_id: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TutoringSession:
        return cls(
            id=str(data.get("id", "")),
            mode=data.get("mode") or data.get("sessionType") or "adaptive",
            topic=data.get("topic") or "",
            status=data.get("status") or "active",
            message_count=_int(data.get("messageCount")),
            course_id=(data.get("context") or {}).get("currentCourse") or data.get("courseId"),
            started_at=_parse_datetime(data.get("startedAt") or data.get("createdAt")),
            ended_at=_parse_datetime(data.get("endedAt")),
        )
