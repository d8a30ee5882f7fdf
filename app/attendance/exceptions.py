from __future__ import annotations


class AttendanceError(Exception):
    """Base class for failures surfaced to the caller of a check-in operation."""

    code = "ATTENDANCE_ERROR"
    status_code = 400
    default_message = "Attendance operation failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def detail(self) -> str:
        return str(self)

    def as_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class UnrecognizedTag(AttendanceError):
    code = "UNRECOGNIZED_TAG"
    status_code = 404
    default_message = "Unrecognized tag"


class TagDeactivated(AttendanceError):
    code = "TAG_DEACTIVATED"
    status_code = 403
    default_message = "Tag deactivated"


class NotAMember(AttendanceError):
    code = "NOT_A_MEMBER"
    status_code = 403
    default_message = "You are not a member of this organization"


class TeamNotInOrganization(AttendanceError):
    code = "TEAM_NOT_IN_ORGANIZATION"
    status_code = 400
    default_message = "Team does not belong to this organization"


class NotAuthorizedForProxy(AttendanceError):
    code = "NOT_AUTHORIZED_FOR_PROXY"
    status_code = 403
    default_message = "Not authorized to check in this user"


class NotAuthorizedToReview(AttendanceError):
    code = "NOT_AUTHORIZED_TO_REVIEW"
    status_code = 403
    default_message = "Only owners, admins, managers, or coaches can review ad-hoc check-ins"


class NoEventsToday(AttendanceError):
    code = "NO_EVENTS_TODAY"
    status_code = 404
    default_message = "No events today"


class TooEarly(AttendanceError):
    code = "TOO_EARLY"
    status_code = 409

    def __init__(self, title: str, start_time: str):
        self.title = title
        self.start_time = start_time
        super().__init__(f"Too early to check in to {title} (starts at {start_time})")

    def as_dict(self) -> dict:
        return {**super().as_dict(), "title": self.title, "start_time": self.start_time}


class AlreadyCheckedOut(AttendanceError):
    code = "ALREADY_CHECKED_OUT"
    status_code = 409
    default_message = "Already checked out"


class CheckInConflict(AttendanceError):
    code = "CHECK_IN_CONFLICT"
    status_code = 409
    default_message = "A check-in for this event is already being recorded"


class CheckInNotFound(AttendanceError):
    code = "CHECK_IN_NOT_FOUND"
    status_code = 404
    default_message = "Check-in not found"


class InvalidEventTime(AttendanceError, ValueError):
    code = "INVALID_EVENT_TIME"
    status_code = 422

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid event time: {value!r}")


class RateLimited(AttendanceError):
    code = "RATE_LIMITED"
    status_code = 429

    def __init__(self, retry_after_seconds: float):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Too many requests, retry in {int(retry_after_seconds) + 1}s")

    def as_dict(self) -> dict:
        return {**super().as_dict(), "retry_after_seconds": round(self.retry_after_seconds, 3)}


class EventNotFound(AttendanceError):
    code = "EVENT_NOT_FOUND"
    status_code = 404
    default_message = "Event not found"


class InvalidCheckInTimes(AttendanceError):
    code = "INVALID_CHECK_IN_TIMES"
    status_code = 400
    default_message = "Check-out time must come after a check-in time"
