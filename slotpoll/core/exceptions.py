class NotFoundError(Exception):
    def __init__(self, resource: str, identifier: object):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class PollValidationError(ValueError):
    """Input that passed schema validation but contradicts stored state."""


class InvalidReferenceError(PollValidationError):
    def __init__(self, poll_id: int, event_ids: list[int]):
        self.poll_id = poll_id
        self.event_ids = event_ids
        super().__init__(
            f"Events {', '.join(str(i) for i in event_ids)} do not belong to poll {poll_id}"
        )
