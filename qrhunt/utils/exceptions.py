"""Domain exceptions for the hunt engine.

Every exception carries a stable ``code`` that is safe to hand to clients.
Routers translate these into HTTP errors; the scan path turns
:class:`ScanRuleViolation` subclasses into a failed ``ScanResult`` instead of
raising.
"""


class QRHuntException(Exception):
    """Base exception for all hunt engine errors."""

    code = "error"
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# Not found

class NotFoundError(QRHuntException):
    """Raised when a referenced game, team, or node does not exist."""

    code = "not_found"


class GameNotFoundError(NotFoundError):
    code = "game_not_found"
    default_message = "Game not found"


class TeamNotFoundError(NotFoundError):
    code = "team_not_found"
    default_message = "Team not found"


class NodeNotFoundError(NotFoundError):
    code = "node_not_found"
    default_message = "Node not found"


class FeedbackNotFoundError(NotFoundError):
    code = "feedback_not_found"
    default_message = "Feedback not found"


# Business rules

class BusinessRuleError(QRHuntException):
    """Raised when a well-formed request breaks a game rule."""

    code = "business_rule_violation"


class ScanRuleViolation(BusinessRuleError):
    """A scan was rejected by one of the ordered scan checks."""

    code = "scan_rejected"
    default_message = "Scan rejected"

    def __init__(self, message: str | None = None, node=None):
        # Client-safe node summary to echo back, if any
        self.node = node
        super().__init__(message)


class GameNotActiveError(ScanRuleViolation):
    code = "game_not_active"
    default_message = "Game is not active"


class InvalidCodeError(ScanRuleViolation):
    code = "invalid_code"
    default_message = "Invalid QR code"


class MustStartAtStartNodeError(ScanRuleViolation):
    code = "must_start_at_start_node"
    default_message = "You must start with a starting QR code"


class AlreadyScannedError(ScanRuleViolation):
    code = "already_scanned"
    default_message = "You have already scanned this QR code"


class PasswordRequiredError(ScanRuleViolation):
    """Soft failure: the client should resubmit with a password."""

    code = "password_required"
    default_message = "Password required"


class IncorrectPasswordError(ScanRuleViolation):
    code = "incorrect_password"
    default_message = "Incorrect password"


class NoHintAvailableError(BusinessRuleError):
    code = "no_hint_available"
    default_message = "No hint available for this node"


class NodeNotInTeamGameError(BusinessRuleError):
    code = "node_not_in_team_game"
    default_message = "Node does not belong to this team's game"


class InvalidTeamCodeError(BusinessRuleError):
    code = "invalid_team_code"
    default_message = "Invalid team code"


class GameNotJoinableError(BusinessRuleError):
    code = "game_not_joinable"
    default_message = "Game is not open for teams"


class InvalidFeedbackError(BusinessRuleError):
    code = "invalid_feedback"
    default_message = "Rating must be 1 to 5 and comments at most 1000 characters"


class DuplicateTeamCodeError(BusinessRuleError):
    code = "duplicate_team_code"
    default_message = "Team code is already used in this game"


class TeamCodeGenerationError(QRHuntException):
    code = "team_code_generation_failed"
    default_message = "Failed to generate a unique team code"


class InvalidChatMessageError(BusinessRuleError):
    code = "invalid_chat_message"
    default_message = "Invalid chat message"


class InvalidTransitionError(BusinessRuleError):
    code = "invalid_transition"
    default_message = "Invalid game status transition"

    def __init__(self, current_status: str, target_status: str):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(f"Cannot move game from {current_status} to {target_status}")


# Validation

class GameValidationError(QRHuntException):
    """Raised when a game fails its activation preconditions.

    ``missing`` lists every unmet precondition so the designer can fix them
    all in one pass.
    """

    code = "validation_error"

    MESSAGES = {
        "no_nodes": "Game has no nodes",
        "no_start_node": "Game has no start node",
        "no_end_node": "Game has no end node",
        "no_activated_node": "Game has no activated node",
    }

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        details = "; ".join(self.MESSAGES.get(key, key) for key in self.missing)
        super().__init__(f"Cannot change game status: {details}")
