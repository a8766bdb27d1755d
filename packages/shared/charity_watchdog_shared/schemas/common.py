from enum import Enum


class IngestionOutcome(str, Enum):
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"


class RejectionReason(str, Enum):
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"
    UNKNOWN_SUBSCRIPTION = "UNKNOWN_SUBSCRIPTION"
