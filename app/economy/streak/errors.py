class StreakError(Exception):
    kind = "validation"
    status_code = 400
    code = "E_STREAK"
    message = "Streak operation failed"

    def __init__(self, message: str | None = None, *, context: dict[str, object] | None = None) -> None:
        self.message = message or self.message
        self.context = context or {}
        super().__init__(self.message)


class StreakNotFoundError(StreakError):
    kind = "not_found"
    status_code = 404
    code = "E_STREAK_NOT_FOUND"
    message = "Streak not found"


class StreakAlreadyCheckedInError(StreakError):
    kind = "conflict"
    status_code = 403
    code = "E_STREAK_ALREADY_CHECKED_IN"
    message = "Check-in already made today. Try again later."


class StreakUserNotFoundError(StreakError):
    kind = "not_found"
    status_code = 404
    code = "E_STREAK_USER_NOT_FOUND"
    message = "User not found"


class StreakInfrastructureError(StreakError):
    kind = "infrastructure"
    status_code = 500
    code = "E_INTERNAL"
    message = "Streak storage failure"
