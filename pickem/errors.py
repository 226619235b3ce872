"""
Error taxonomy for Pick'em

Every error carries a stable ``code`` and ``message`` so clients can tell
"too late to pick" apart from "invalid selection" or "not logged in".
"""


class PickemError(Exception):
    """Base class for recoverable application errors"""

    status_code = 400
    code = "error"
    message = "Request failed"

    def __init__(self, message=None, details=None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        data = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            data["details"] = self.details
        return data


class ValidationFailed(PickemError):
    code = "validation_failed"
    message = "Invalid request"


class Conflict(PickemError):
    status_code = 409
    code = "conflict"
    message = "Resource already exists"


class NotFound(PickemError):
    status_code = 404
    code = "not_found"
    message = "Resource not found"


class GameNotFound(NotFound):
    code = "game_not_found"
    message = "Game not found"


class PickNotFound(NotFound):
    code = "pick_not_found"
    message = "Pick not found"


class GameAlreadyStarted(PickemError):
    code = "game_already_started"
    message = "Cannot make picks for games that have already started"


class InvalidTeamSelection(PickemError):
    code = "invalid_team_selection"
    message = "Selected team is not playing in this game"


class StorageFailure(PickemError):
    status_code = 500
    code = "storage_failure"
    message = "Storage operation failed"
