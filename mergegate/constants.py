MERGE_ACTOR = "submit-queue"
MESSAGE_LOG_LIMIT = 50
DEFAULT_POLL_INTERVAL_S = 30.0

STATUS_STABLE = "Stable"
STATUS_NOT_STABLE = "Not Stable"
STATUS_UNKNOWN = "Unknown"
STATUS_ERROR_PREFIX = "Error checking: "

VALIDATION_REQUEST_BODY = (
    "@k8s-bot test this [submit-queue is verifying that this PR is safe to merge]"
)
