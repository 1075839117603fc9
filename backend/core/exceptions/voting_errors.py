"""
Custom exceptions for Q.Vote functionality.

Every exception carries a stable ``error_code`` that API and WebSocket
clients branch on, plus optional ``extra`` fields (attempts remaining,
lockout expiry, retry hints) that are merged into the error payload.
"""


class QVoteError(Exception):
    """
    Base exception for Q.Vote errors.

    All custom Q.Vote exceptions inherit from this.
    """

    default_status_code = 400
    default_message = "A voting error occurred"
    error_code = "QVOTE_ERROR"

    def __init__(self, message=None, status_code=None, **extra):
        """
        Initialize exception.

        Args:
            message: Error message (defaults to default_message)
            status_code: HTTP status code (defaults to default_status_code)
            **extra: Additional fields exposed to the caller
        """
        self.message = message or self.default_message
        self.status_code = status_code or self.default_status_code
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self):
        """Serialize the error the way API clients receive it."""
        data = {
            "success": False,
            "error": self.message,
            "errorCode": self.error_code,
        }
        data.update(self.extra)
        return data


# Lookup errors


class CodeNotFoundError(QVoteError):
    default_status_code = 404
    default_message = "Code not found"
    error_code = "CODE_NOT_FOUND"


class CandidateNotFoundError(QVoteError):
    default_status_code = 404
    default_message = "Candidate not found"
    error_code = "CANDIDATE_NOT_FOUND"


# Vote submission


class VotingClosedError(QVoteError):
    """Raised when the current phase does not accept votes."""

    default_status_code = 403
    default_message = "Voting is closed"
    error_code = "VOTING_CLOSED"


class EmptySelectionError(QVoteError):
    default_status_code = 400
    default_message = "At least one candidate must be selected"
    error_code = "EMPTY_SELECTION"


class TooManySelectionsError(QVoteError):
    default_status_code = 400
    default_message = "Too many candidates selected"
    error_code = "TOO_MANY_SELECTIONS"


class InvalidCandidateError(QVoteError):
    """Raised when a selected candidate cannot receive votes in this round."""

    default_status_code = 400
    default_message = "Invalid candidate selection"
    error_code = "INVALID_CANDIDATE"


class AlreadyVotedError(QVoteError):
    default_status_code = 409
    default_message = "You have already voted"
    error_code = "ALREADY_VOTED"


class AlreadyVotedCategoryError(AlreadyVotedError):
    default_message = "You have already voted in this category"
    error_code = "ALREADY_VOTED_CATEGORY"


class AlreadyVotedAllError(AlreadyVotedError):
    default_message = "You have already voted in all categories"
    error_code = "ALREADY_VOTED_ALL"


class VoteChangesNotAllowedError(QVoteError):
    default_status_code = 403
    default_message = "Vote changes are not allowed"
    error_code = "VOTE_CHANGES_NOT_ALLOWED"


class VoteChangeLimitError(QVoteError):
    default_status_code = 403
    default_message = "Maximum vote changes reached"
    error_code = "VOTE_CHANGE_LIMIT"


# Verification session (checked while voting)


class VerificationRequiredError(QVoteError):
    default_status_code = 401
    default_message = "Phone verification required"
    error_code = "VERIFICATION_REQUIRED"


class NotVerifiedError(QVoteError):
    default_status_code = 401
    default_message = "Phone number is not verified"
    error_code = "NOT_VERIFIED"


class InvalidSessionError(QVoteError):
    default_status_code = 401
    default_message = "Invalid verification session"
    error_code = "INVALID_SESSION"


class SessionExpiredError(QVoteError):
    default_status_code = 401
    default_message = "Verification session expired"
    error_code = "SESSION_EXPIRED"


class VoteLimitReachedError(QVoteError):
    default_status_code = 403
    default_message = "Vote limit reached for this phone number"
    error_code = "VOTE_LIMIT_REACHED"


# OTP issuance and validation


class VerificationDisabledError(QVoteError):
    default_status_code = 400
    default_message = "Verification is not enabled for this code"
    error_code = "VERIFICATION_DISABLED"


class InvalidPhoneError(QVoteError):
    default_status_code = 400
    default_message = "Invalid phone number"
    error_code = "INVALID_PHONE"


class UnauthorizedPhoneError(QVoteError):
    default_status_code = 403
    default_message = "This phone number is not authorized to vote"
    error_code = "UNAUTHORIZED_PHONE"


class QuotaExceededError(QVoteError):
    default_status_code = 402
    default_message = "Message quota exceeded"
    error_code = "QUOTA_EXCEEDED"


class RateLimitedError(QVoteError):
    default_status_code = 429
    default_message = "Too many requests. Please try again later."
    error_code = "RATE_LIMITED"


class SendFailedError(QVoteError):
    default_status_code = 502
    default_message = "Failed to send verification code"
    error_code = "SEND_FAILED"


class NoCodeError(QVoteError):
    default_status_code = 400
    default_message = "No pending verification code"
    error_code = "NO_CODE"


class CodeExpiredError(QVoteError):
    default_status_code = 400
    default_message = "Verification code expired"
    error_code = "EXPIRED"


class InvalidCodeError(QVoteError):
    default_status_code = 400
    default_message = "Invalid verification code"
    error_code = "INVALID_CODE"


class BlockedError(QVoteError):
    """Raised while a phone is locked out after too many failed attempts."""

    default_status_code = 429
    default_message = "Too many failed attempts"
    error_code = "BLOCKED"


# Candidates and configuration


class AlreadyRegisteredError(QVoteError):
    default_status_code = 409
    default_message = "You have already registered a candidate"
    error_code = "ALREADY_REGISTERED"


class RegistrationClosedError(QVoteError):
    default_status_code = 403
    default_message = "Registration is closed"
    error_code = "REGISTRATION_CLOSED"


class TooManyPhotosError(QVoteError):
    default_status_code = 400
    default_message = "A candidate can have at most 2 photos"
    error_code = "TOO_MANY_PHOTOS"


class InvalidScheduleError(QVoteError):
    default_status_code = 400
    default_message = "Phase schedule must follow phase order"
    error_code = "INVALID_SCHEDULE"
