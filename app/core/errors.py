from fastapi import status


class DomainError(Exception):
    """
    Base class for client-facing errors with a stable machine-readable code.
    Rendered by the exception handlers as {code, title, detail}.
    """
    def __init__(self, code: str, title: str, detail: str = None, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(detail or title)
        self.code = code
        self.title = title
        self.detail = detail
        self.status_code = status_code


class MissingIdempotencyKey(DomainError):
    def __init__(self):
        super().__init__(
            "MISSING_IDEMPOTENCY_KEY",
            "Missing Idempotency Key",
            "The Idempotency-Key header is required for this operation",
            status.HTTP_400_BAD_REQUEST,
        )


class IdempotencyConflict(DomainError):
    def __init__(self):
        super().__init__(
            "IDEMPOTENCY_CONFLICT",
            "Idempotency Key Conflict",
            "This idempotency key was already used with a different request payload",
            status.HTTP_409_CONFLICT,
        )


class RequestInProgress(DomainError):
    def __init__(self):
        super().__init__(
            "REQUEST_IN_PROGRESS",
            "Request In Progress",
            "This request is already being processed. Please wait.",
            status.HTTP_409_CONFLICT,
        )


class NotFoundError(DomainError):
    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} Not Found",
            f"{resource} with id '{resource_id}' was not found",
            status.HTTP_404_NOT_FOUND,
        )


class UnknownEventType(ValueError):
    """Raised when an event type has no registered payload contract or topic."""


class DuplicateDelivery(Exception):
    """
    Raised when the inbox insert loses a uniqueness race. The surrounding
    transaction must be rolled back; the message counts as already processed.
    """
    def __init__(self, consumer_group: str, topic: str, partition: int, offset: int):
        super().__init__(f"{consumer_group}/{topic}/{partition}@{offset} already processed")
        self.consumer_group = consumer_group
        self.topic = topic
        self.partition = partition
        self.offset = offset
