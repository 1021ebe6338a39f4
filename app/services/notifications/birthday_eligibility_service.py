from datetime import datetime, timedelta
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.db.models import DeviceInfo, Friend, Notification, User, UserProfile
from app.schemas.notification_schemas import EligibleNotification, ResolutionResult
from app.services.notifications.birthday_utils import BirthdayCalculator
from app.utils.datetime_utils import get_zone, to_naive_utc, to_utc, utc_now
from app.utils.errors import DatabaseError
from app.utils.logging import get_logger

logger = get_logger()


class BirthdayEligibilityService:
    """
    Finds the (user, friend) pairs that should be alerted about an approaching birthday.

    A pair is eligible when the user has at least one notification channel enabled,
    the friend's next birthday (in the user's timezone) is at most cutoff_hours away,
    and the user has not been notified about that friend within clearance_hours.
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    async def resolve(
        self,
        cutoff_hours: int = settings.BIRTHDAY_CUTOFF_HOURS,
        clearance_hours: int = settings.NOTIFICATION_CLEARANCE_HOURS,
        now: Optional[datetime] = None,
    ) -> ResolutionResult:
        """
        Resolve eligible notifications without raising.

        A failed resolution is reported through ResolutionResult.error so callers
        can tell it apart from a run that simply found nothing.
        """
        current_datetime = to_utc(now) if now else utc_now()
        clearance_threshold = current_datetime - timedelta(hours=clearance_hours)

        try:
            rows = await self._get_candidate_rows(current_datetime, clearance_threshold)

            notifications = []
            for row in rows:
                zone = self._resolve_zone(row.timezone, row.user_id)
                hours_until = BirthdayCalculator.hours_until_birthday(
                    row.friend_dob, current_datetime, zone
                )
                if hours_until > cutoff_hours:
                    continue

                notifications.append(
                    EligibleNotification(
                        user_id=str(row.user_id),
                        email=row.email,
                        device_token=row.device_token,
                        friend_id=str(row.friend_id),
                        friend_name=row.friend_name,
                        hours_until=hours_until,
                        email_notifications=bool(row.email_notifications),
                        push_notifications=bool(row.push_notifications),
                    )
                )

            return ResolutionResult(notifications=notifications)

        except Exception as e:
            logger.error(
                "Failed to resolve approaching birthdays",
                cutoff_hours=cutoff_hours,
                clearance_hours=clearance_hours,
                error=str(e),
            )
            return ResolutionResult(error=str(e))

    async def get_approaching_birthdays(
        self,
        cutoff_hours: int = settings.BIRTHDAY_CUTOFF_HOURS,
        clearance_hours: int = settings.NOTIFICATION_CLEARANCE_HOURS,
        now: Optional[datetime] = None,
    ) -> List[EligibleNotification]:
        """Eligible notifications, or an empty list if resolution failed."""
        result = await self.resolve(cutoff_hours, clearance_hours, now)
        return result.notifications

    async def _get_candidate_rows(
        self, current_datetime: datetime, clearance_threshold: datetime
    ):
        """
        One row per (opted-in user, friend) pair without a recent notification.

        The device token is the user's most recently registered device, or None.
        Birthday distance is computed afterwards in Python.
        """
        latest_device_token = (
            select(DeviceInfo.device_token)
            .where(DeviceInfo.user_id == User.id)
            .order_by(DeviceInfo.created_at.desc(), DeviceInfo.id.desc())
            .limit(1)
            .correlate(User)
            .scalar_subquery()
        )

        recently_notified = (
            select(Notification.id)
            .where(
                and_(
                    Notification.user_id == User.id,
                    Notification.friend_id == Friend.id,
                    Notification.date_sent > to_naive_utc(clearance_threshold),
                )
            )
            .exists()
        )

        stmt = (
            select(
                User.id.label("user_id"),
                User.email,
                UserProfile.timezone,
                UserProfile.email_notifications,
                UserProfile.push_notifications,
                Friend.id.label("friend_id"),
                Friend.name.label("friend_name"),
                Friend.dob.label("friend_dob"),
                latest_device_token.label("device_token"),
            )
            .join(UserProfile, UserProfile.user_id == User.id)
            .join(Friend, Friend.user_id == User.id)
            .where(
                and_(
                    or_(
                        UserProfile.email_notifications.is_(True),
                        UserProfile.push_notifications.is_(True),
                    ),
                    ~recently_notified,
                )
            )
            .order_by(User.id, Friend.id)
        )

        try:
            return self.db.execute(stmt).all()
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Approaching birthday query failed: {str(e)}",
                error_code="BIRTHDAY_QUERY_FAILED",
            ) from e

    @staticmethod
    def _resolve_zone(name: Optional[str], user_id) -> ZoneInfo:
        try:
            return get_zone(name)
        except ZoneInfoNotFoundError:
            logger.warning(
                "Unknown user timezone, falling back to UTC",
                user_id=str(user_id),
                timezone=name,
            )
            return get_zone(None)


async def get_approaching_birthdays(
    db_session: Session,
    cutoff_hours: int = settings.BIRTHDAY_CUTOFF_HOURS,
    clearance_hours: int = settings.NOTIFICATION_CLEARANCE_HOURS,
    now: Optional[datetime] = None,
) -> List[EligibleNotification]:
    service = BirthdayEligibilityService(db_session)
    return await service.get_approaching_birthdays(cutoff_hours, clearance_hours, now)


async def resolve_approaching_birthdays(
    db_session: Session,
    cutoff_hours: int = settings.BIRTHDAY_CUTOFF_HOURS,
    clearance_hours: int = settings.NOTIFICATION_CLEARANCE_HOURS,
    now: Optional[datetime] = None,
) -> ResolutionResult:
    """Like get_approaching_birthdays, but a failed resolution is reported instead of returning []"""
    service = BirthdayEligibilityService(db_session)
    return await service.resolve(cutoff_hours, clearance_hours, now)
