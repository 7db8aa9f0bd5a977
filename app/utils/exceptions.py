"""Exception taxonomy for the gatekeeper and the provisioning pipeline."""

from typing import Any


class GatekeeperError(Exception):
    """Base class for request-boundary denials.

    These are the only failures that turn into a non-2xx HTTP status.

    Args:
        message: Human readable reason, returned to the caller
        meta: Extra context recorded in the audit log
    """

    status_code: int = 401
    reason: str = "unauthorized"

    def __init__(self, message: str, meta: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.meta = meta or {}


class Unauthorized(GatekeeperError):
    """Missing or mismatched credential."""

    status_code = 401
    reason = "unauthorized"


class RateLimited(GatekeeperError):
    """Caller exceeded its request quota for the current window."""

    status_code = 429
    reason = "rate_limited"

    def __init__(self, message: str, retry_after: int, meta: dict[str, Any] | None = None):
        super().__init__(message, meta)
        self.retry_after = retry_after


class Forbidden(GatekeeperError):
    """Repository owner is not on the allowlist."""

    status_code = 403
    reason = "owner_not_allowed"


class Misconfigured(GatekeeperError):
    """Required server configuration is missing."""

    status_code = 500
    reason = "misconfigured"


class PipelineError(Exception):
    """Base class for failures inside a tool invocation.

    Args:
        message: Error message
        stage: Name of the pipeline stage that failed
        details: Optional additional error details
    """

    stage: str = "pipeline"

    def __init__(self, message: str, stage: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": type(self).__name__,
            "stage": self.stage,
            "message": self.message,
            "details": self.details,
        }


class SourceFetchError(PipelineError):
    """Source host unreachable or returned a non-success status."""

    stage = "resolve"

    def __init__(self, message: str, path: str, status_code: int | None = None):
        super().__init__(message, details={"path": path, "status_code": status_code})
        self.path = path
        self.status_code = status_code


class SourceShapeError(PipelineError):
    """A file was returned where a directory was expected, or vice versa."""

    stage = "resolve"

    def __init__(self, message: str, path: str):
        super().__init__(message, details={"path": path})
        self.path = path


class PublishError(PipelineError):
    """A repository publisher stage failed. The branch ref was not changed."""

    stage = "publish"


class EmptyFileSetError(PublishError):
    stage = "validate"


class RepoCreateError(PublishError):
    stage = "ensure_repository"


class BaseResolveError(PublishError):
    """The destination branch tip or its commit could not be read."""

    stage = "resolve_base"


class BlobCreateError(PublishError):
    stage = "create_blobs"


class TreeCreateError(PublishError):
    stage = "create_tree"


class CommitCreateError(PublishError):
    stage = "create_commit"


class RefUpdateError(PublishError):
    stage = "update_ref"


class RefConflictError(RefUpdateError):
    """Branch moved (or appeared) between reading the tip and writing the ref."""


class HostingError(PipelineError):
    """Hosting provider returned a non-success status."""

    stage = "provision"


class UpstreamAPIError(Exception):
    """Non-success response from an outbound HTTP API.

    Args:
        message: Error message
        status_code: HTTP status code, or None when the call never got a response
        body: Response body text (truncated)
    """

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body
