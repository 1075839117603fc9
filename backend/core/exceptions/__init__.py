from .voting_errors import (  # noqa: F401
    AlreadyRegisteredError,
    AlreadyVotedAllError,
    AlreadyVotedCategoryError,
    AlreadyVotedError,
    BlockedError,
    CandidateNotFoundError,
    CodeExpiredError,
    CodeNotFoundError,
    EmptySelectionError,
    InvalidCandidateError,
    InvalidCodeError,
    InvalidPhoneError,
    InvalidScheduleError,
    InvalidSessionError,
    NoCodeError,
    NotVerifiedError,
    QuotaExceededError,
    QVoteError,
    RateLimitedError,
    RegistrationClosedError,
    SendFailedError,
    SessionExpiredError,
    TooManyPhotosError,
    TooManySelectionsError,
    UnauthorizedPhoneError,
    VerificationDisabledError,
    VerificationRequiredError,
    VoteChangeLimitError,
    VoteChangesNotAllowedError,
    VoteLimitReachedError,
    VotingClosedError,
)

__all__ = [
    "QVoteError",
    "CodeNotFoundError",
    "CandidateNotFoundError",
    "VotingClosedError",
    "EmptySelectionError",
    "TooManySelectionsError",
    "InvalidCandidateError",
    "AlreadyVotedError",
    "AlreadyVotedCategoryError",
    "AlreadyVotedAllError",
    "VoteChangesNotAllowedError",
    "VoteChangeLimitError",
    "VerificationRequiredError",
    "NotVerifiedError",
    "InvalidSessionError",
    "SessionExpiredError",
    "VoteLimitReachedError",
    "VerificationDisabledError",
    "InvalidPhoneError",
    "UnauthorizedPhoneError",
    "QuotaExceededError",
    "RateLimitedError",
    "SendFailedError",
    "NoCodeError",
    "CodeExpiredError",
    "InvalidCodeError",
    "BlockedError",
    "AlreadyRegisteredError",
    "RegistrationClosedError",
    "TooManyPhotosError",
    "InvalidScheduleError",
]
