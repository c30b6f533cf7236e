"""Failure taxonomy for the abalone pipeline.

Every error is terminal for a run; nothing in the package retries.
"""


class AbaloneError(Exception):
    pass


class AuthenticationError(AbaloneError):
    pass


class FetchError(AbaloneError):
    pass


class ParseError(AbaloneError, ValueError):
    pass


class UploadError(AbaloneError):
    pass


class UnsupportedRegionError(AbaloneError):
    pass


class TrainingFailedError(AbaloneError):
    pass


class DeploymentError(AbaloneError):
    pass


class InvocationError(AbaloneError):
    pass


class RangeError(AbaloneError, ValueError):
    pass


class Cancelled(AbaloneError):
    pass


class StepFailed(AbaloneError):
    """Raised by the pipeline when a step fails; wraps the underlying cause."""

    def __init__(self, step: str, cause: BaseException, completed_steps: list):
        super().__init__(f"step '{step}' failed: {type(cause).__name__}: {cause}")
        self.step = step
        self.cause = cause
        self.completed_steps = list(completed_steps)

    def to_dict(self) -> dict:
        return {
            "failed_step": self.step,
            "error_type": type(self.cause).__name__,
            "error": str(self.cause),
            "completed_steps": self.completed_steps,
        }
