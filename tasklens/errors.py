"""Error taxonomy for tasklens.

Only three conditions are exceptions. The syntax extractor never fails and an
empty filter result is a normal outcome, so neither has an exception type.
"""

from typing import Optional


class TaskLensError(Exception):
    """Base class for all tasklens errors."""


class ConfigurationInvalid(TaskLensError):
    """Settings are unusable (missing credentials, unknown provider, rejected key).

    Always reported to the caller; never degraded into a fallback.
    """


class ModelUnavailable(TaskLensError):
    """The language model could not be reached or refused to answer."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ModelResponseMalformed(TaskLensError):
    """No usable JSON object could be recovered from a model response."""

    def __init__(self, message: str, *, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text
