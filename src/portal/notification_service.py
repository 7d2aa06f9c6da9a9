"""
notification_service.py

One dispatcher method per portal event. Each method writes Notification rows
in the caller's session and, where the event warrants it, queues an email
through portal.email_service. Nothing here commits; the caller's transaction
covers the primary change and its notifications together.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from portal import email_service, models
from portal.schemas import EntityType, NotificationCategory, NotificationPriority, NotificationType
from portal.settings import settings

logger = logging.getLogger(__name__)

REMINDER_LABELS = {
    "1w": "in one week",
    "24h": "tomorrow",
    "1h": "in one hour",
    "custom": "soon",
}

DECISION_LABELS = {
    "accept": "accepted",
    "minor_revision": "returned for minor revisions",
    "major_revision": "returned for major revisions",
    "reject": "rejected",
}


class NotificationService:

    @staticmethod
    async def create(
        db: AsyncSession,
        recipient: models.User,
        type: NotificationType,
        title: str,
        message: str,
        *,
        sender: Optional[models.User] = None,
        related: Optional[Tuple[EntityType, int]] = None,
        priority: NotificationPriority = NotificationPriority.medium,
        category: NotificationCategory = NotificationCategory.info,
        data: Optional[Dict[str, Any]] = None,
        send_email: bool = False,
        action_path: Optional[str] = None,
        email_template: str = "notification",
        email_context: Optional[Dict[str, Any]] = None,
    ) -> models.Notification:
        notification = models.Notification(
            recipient_id=recipient.id,
            sender_id=sender.id if sender else None,
            type=type.value,
            title=title,
            message=message,
            data=data,
            related_entity_type=related[0].value if related else None,
            related_entity_id=related[1] if related else None,
            priority=priority.value,
            category=category.value,
            created_at=datetime.utcnow(),
        )
        db.add(notification)

        if send_email and recipient.is_active:
            await db.flush()
            context = {
                "user_name": recipient.full_name,
                "title": title,
                "message": message,
                "action_url": f"{settings.frontend_url}{action_path}" if action_path else None,
            }
            context.update(email_context or {})
            await email_service.queue_template_email(
                db,
                email_template,
                recipient.email,
                context,
                recipient_name=recipient.full_name,
                recipient_user_id=recipient.id,
                sender_user_id=sender.id if sender else None,
                notification_id=notification.id,
            )
        return notification

    # Research papers

    @classmethod
    async def paper_draft_created(cls, db: AsyncSession, paper: models.ResearchPaper, user: models.User):
        return await cls.create(
            db, user, NotificationType.paper_draft_created,
            "Research paper draft created",
            f'Your draft "{paper.title}" ({paper.submission_id}) has been saved. '
            "Complete the remaining steps to submit it.",
            related=(EntityType.research_paper, paper.id),
            priority=NotificationPriority.low,
            data={"submissionId": paper.submission_id},
        )

    @classmethod
    async def paper_author_added(
        cls, db: AsyncSession, paper: models.ResearchPaper, author: models.User, added_by: models.User
    ):
        return await cls.create(
            db, author, NotificationType.paper_author_added,
            "You were added as a co-author",
            f'{added_by.full_name} added you as an author of "{paper.title}".',
            sender=added_by,
            related=(EntityType.research_paper, paper.id),
            send_email=True,
            action_path=f"/research/{paper.id}",
        )

    @classmethod
    async def manuscript_uploaded(
        cls, db: AsyncSession, paper: models.ResearchPaper, uploader: models.User, version: int
    ):
        return await cls.create(
            db, uploader, NotificationType.paper_manuscript_uploaded,
            "Manuscript uploaded",
            f'Version {version} of the manuscript for "{paper.title}" was uploaded.',
            related=(EntityType.research_paper, paper.id),
            priority=NotificationPriority.low,
            category=NotificationCategory.success,
            data={"version": version},
        )

    @classmethod
    async def paper_submitted(
        cls,
        db: AsyncSession,
        paper: models.ResearchPaper,
        submitter: models.User,
        co_authors: Iterable[models.User],
    ):
        """One notification to the submitter plus one to every co-author."""
        sent = [
            await cls.create(
                db, submitter, NotificationType.paper_submission,
                "Research paper submitted",
                f'Your paper "{paper.title}" ({paper.submission_id}) was submitted for review.',
                related=(EntityType.research_paper, paper.id),
                category=NotificationCategory.success,
                priority=NotificationPriority.high,
                send_email=True,
                action_path=f"/research/{paper.id}",
            )
        ]
        for author in co_authors:
            if author.id == submitter.id:
                continue
            sent.append(
                await cls.create(
                    db, author, NotificationType.paper_submission,
                    "A paper you co-authored was submitted",
                    f'"{paper.title}" ({paper.submission_id}) was submitted by {submitter.full_name}.',
                    sender=submitter,
                    related=(EntityType.research_paper, paper.id),
                    send_email=True,
                    action_path=f"/research/{paper.id}",
                )
            )
        return sent

    @classmethod
    async def review_assigned(
        cls, db: AsyncSession, paper: models.ResearchPaper, reviewer: models.User,
        assigned_by: models.User, due_date: Optional[datetime],
    ):
        due = f" Reviews are due by {due_date:%Y-%m-%d}." if due_date else ""
        return await cls.create(
            db, reviewer, NotificationType.paper_review_assigned,
            "New review assignment",
            f'You have been asked to review "{paper.title}".{due}',
            sender=assigned_by,
            related=(EntityType.research_paper, paper.id),
            priority=NotificationPriority.high,
            send_email=True,
            action_path=f"/research/{paper.id}",
        )

    @classmethod
    async def review_submitted(
        cls, db: AsyncSession, paper: models.ResearchPaper, review: models.Review, submitter: models.User
    ):
        return await cls.create(
            db, submitter, NotificationType.paper_review_completed,
            "A review was submitted",
            f'A reviewer submitted a review of "{paper.title}".',
            related=(EntityType.review, review.id),
            data={"paperId": paper.id},
        )

    @classmethod
    async def paper_status_changed(
        cls, db: AsyncSession, paper: models.ResearchPaper, recipients: Iterable[models.User],
        old_status: str, actor: models.User, comments: Optional[str] = None,
    ):
        label = paper.status.replace("_", " ")
        message = f'The status of "{paper.title}" changed to {label}.'
        if comments:
            message += f" Comments: {comments}"
        return [
            await cls.create(
                db, user, NotificationType.paper_status_update,
                "Paper status updated", message,
                sender=actor,
                related=(EntityType.research_paper, paper.id),
                data={"oldStatus": old_status, "newStatus": paper.status},
                send_email=True,
                action_path=f"/research/{paper.id}",
            )
            for user in recipients
        ]

    @classmethod
    async def editorial_decision(
        cls, db: AsyncSession, paper: models.ResearchPaper, recipients: Iterable[models.User],
        actor: models.User,
    ):
        outcome = DECISION_LABELS.get(paper.decision, paper.decision)
        message = f'"{paper.title}" has been {outcome}.'
        if paper.revision_due_date:
            message += f" Revisions are due by {paper.revision_due_date:%Y-%m-%d}."
        category = NotificationCategory.success if paper.decision == "accept" else NotificationCategory.warning
        return [
            await cls.create(
                db, user, NotificationType.paper_decision,
                "Editorial decision", message,
                sender=actor,
                related=(EntityType.research_paper, paper.id),
                priority=NotificationPriority.high,
                category=category,
                data={"decision": paper.decision},
                send_email=True,
                action_path=f"/research/{paper.id}",
            )
            for user in recipients
        ]

    # Events

    @classmethod
    async def event_registration(cls, db: AsyncSession, event: models.Event, user: models.User):
        return await cls.create(
            db, user, NotificationType.event_registration,
            "Event registration confirmed",
            f'You are registered for "{event.title}" on {event.start_date:%Y-%m-%d}.',
            related=(EntityType.event, event.id),
            category=NotificationCategory.success,
            send_email=True,
            action_path=f"/events/{event.id}",
        )

    @classmethod
    async def event_reminder(
        cls, db: AsyncSession, event: models.Event, user: models.User, reminder_type: str,
        message: Optional[str] = None,
    ):
        when = REMINDER_LABELS.get(reminder_type, "soon")
        return await cls.create(
            db, user, NotificationType.event_reminder,
            f"Reminder: {event.title}",
            message or f'"{event.title}" starts {when}.',
            related=(EntityType.event, event.id),
            priority=NotificationPriority.high if reminder_type == "1h" else NotificationPriority.medium,
            category=NotificationCategory.reminder,
            data={"reminderType": reminder_type},
            send_email=True,
            email_template="event_reminder",
            email_context={
                "event_id": event.id,
                "event_title": event.title,
                "when": when,
                "start_date": f"{event.start_date:%Y-%m-%d}",
                "start_time": event.start_time,
                "venue": event.venue_name or event.virtual_link,
                "message": message,
            },
        )

    # Collaborations

    @classmethod
    async def collaboration_invitation(
        cls, db: AsyncSession, collaboration: models.Collaboration, invitee: models.User,
        inviter: models.User, role: str, message: Optional[str] = None,
    ):
        return await cls.create(
            db, invitee, NotificationType.collaboration_invitation,
            "Collaboration invitation",
            f'{inviter.full_name} invited you to collaborate on "{collaboration.title}".',
            sender=inviter,
            related=(EntityType.collaboration, collaboration.id),
            priority=NotificationPriority.high,
            data={"role": role},
            send_email=True,
            email_template="collaboration_invitation",
            email_context={
                "inviter_name": inviter.full_name,
                "collaboration_title": collaboration.title,
                "role": role,
                "message": message,
            },
        )

    @classmethod
    async def collaboration_response(
        cls, db: AsyncSession, collaboration: models.Collaboration, responder: models.User,
        initiator: models.User, accepted: bool,
    ):
        verb = "accepted" if accepted else "declined"
        return await cls.create(
            db, initiator, NotificationType.collaboration_response,
            f"Collaboration invitation {verb}",
            f'{responder.full_name} {verb} your invitation to "{collaboration.title}".',
            sender=responder,
            related=(EntityType.collaboration, collaboration.id),
            category=NotificationCategory.success if accepted else NotificationCategory.info,
        )

    @classmethod
    async def collaboration_update(
        cls, db: AsyncSession, collaboration: models.Collaboration, author: models.User,
        title: str, recipients: Iterable[models.User],
    ):
        return [
            await cls.create(
                db, user, NotificationType.collaboration_update,
                f"New update in {collaboration.title}",
                f"{author.full_name} posted: {title}",
                sender=author,
                related=(EntityType.collaboration, collaboration.id),
                priority=NotificationPriority.low,
            )
            for user in recipients
            if user.id != author.id
        ]

    @classmethod
    async def collaboration_completed(
        cls, db: AsyncSession, collaboration: models.Collaboration, actor: models.User,
        recipients: Iterable[models.User],
    ):
        return [
            await cls.create(
                db, user, NotificationType.collaboration_completion,
                "Collaboration completed",
                f'"{collaboration.title}" has been marked as completed.',
                sender=actor,
                related=(EntityType.collaboration, collaboration.id),
                category=NotificationCategory.success,
                send_email=True,
                action_path="/collaboration",
            )
            for user in recipients
        ]

    # Accounts

    @classmethod
    async def account_approved(cls, db: AsyncSession, user: models.User, admin: models.User):
        return await cls.create(
            db, user, NotificationType.account_approved,
            "Account approved",
            "Your account has been approved. You now have full access to the platform.",
            sender=admin,
            related=(EntityType.user, user.id),
            category=NotificationCategory.success,
            send_email=True,
            email_template="account_approved",
        )

    @classmethod
    async def account_rejected(cls, db: AsyncSession, user: models.User, admin: models.User):
        return await cls.create(
            db, user, NotificationType.account_rejected,
            "Registration not approved",
            f"Your registration was not approved. Reason: {user.rejection_reason}",
            sender=admin,
            related=(EntityType.user, user.id),
            priority=NotificationPriority.high,
            category=NotificationCategory.warning,
            send_email=True,
            email_template="account_rejected",
            email_context={"reason": user.rejection_reason},
        )

    # System

    @classmethod
    async def system_announcement(
        cls, db: AsyncSession, recipients: Iterable[models.User], title: str, message: str,
        sender: models.User, priority: NotificationPriority, send_email: bool,
    ):
        return [
            await cls.create(
                db, user, NotificationType.system_announcement, title, message,
                sender=sender, priority=priority, send_email=send_email,
            )
            for user in recipients
        ]
