from __future__ import annotations


class ChatError(Exception):
    """Base class for every outcome the chat core reports to its caller."""


class ValidationError(ChatError, ValueError):
    """Malformed input: a field is missing or outside its length bounds."""


class InvalidMessageType(ValidationError):
    pass


class DuplicateName(ChatError):
    """The name is already taken by an active participant."""


class UnknownParticipant(ChatError):
    """The operation targets a name that is not currently in the room."""


class UnauthorizedSender(ChatError):
    """A message was posted by someone who is not an active participant."""


class StorageUnavailable(ChatError):
    """Redis could not be reached or did not answer in time."""


class LockBusy(ChatError):
    pass

