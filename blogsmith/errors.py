"""
Error taxonomy for article generation.

Gateway errors are raised once, at the HTTP boundary, from structured status
codes. Pipeline errors wrap whatever upstream cause made a stage fatal so the
caller can tell credential, quota and contract problems apart.
"""
from typing import Optional


class BlogsmithError(Exception):
    """Base class for every error raised by this package."""


# =============================================================================
# COMPLETION GATEWAY
# =============================================================================

class CompletionError(BlogsmithError):
    """
    A call to the text-generation service did not produce usable text.

    `usage` is set when the service answered (and billed) before the failure
    was detected; transport failures leave it as None.
    """

    def __init__(self, message: str, usage=None, status_code: Optional[int] = None):
        super().__init__(message)
        self.usage = usage
        self.status_code = status_code


class AuthenticationFailed(CompletionError):
    """Credentials were missing or rejected (HTTP 401/403)."""


class RateLimited(CompletionError):
    """Quota or rate limit rejection (HTTP 429)."""


class ServiceUnavailable(CompletionError):
    """Transport failure, timeout, or an unexpected error status."""


class EmptyResponse(CompletionError):
    """The service answered but returned no text."""


# =============================================================================
# CONTRACTS
# =============================================================================

class ContractViolation(BlogsmithError):
    """A response was received but does not satisfy its JSON contract."""


class MalformedResponse(ContractViolation):
    """No JSON object could be extracted, or it failed schema validation."""


class ImageSearchFailed(BlogsmithError):
    """The image-search provider rejected or failed a query."""


# =============================================================================
# PIPELINE
# =============================================================================

class PipelineAborted(BlogsmithError):
    """
    A fatal stage failure. No partial article is returned.

    `kind` classifies the root cause:
    - credentials: fix configuration before retrying
    - quota: retry later
    - contract: the model output was unusable, retrying may help
    - service: transport problem, retry later
    """

    def __init__(self, message: str, stage: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.stage = stage
        self.cause = cause
        # UsageTotals up to the failure, attached by the pipeline
        self.usage = None

    @property
    def kind(self) -> str:
        cause = self.cause
        if isinstance(cause, AuthenticationFailed):
            return "credentials"
        if isinstance(cause, RateLimited):
            return "quota"
        if isinstance(cause, (ServiceUnavailable, EmptyResponse)):
            return "service"
        return "contract"

    @property
    def retryable(self) -> bool:
        return self.kind in ("quota", "service")

    def __str__(self) -> str:
        base = super().__str__()
        if self.cause is not None:
            return f"{base} [{self.kind}]: {self.cause}"
        return f"{base} [{self.kind}]"


class StructureGenerationFailed(PipelineAborted):
    """The outline could not be generated or failed validation."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, stage="structure", cause=cause)


class IntroductionGenerationFailed(PipelineAborted):
    """The introduction could not be generated."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, stage="introduction", cause=cause)


class AssemblyFailed(PipelineAborted):
    """No body section produced real content."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, stage="assembly", cause=cause)
