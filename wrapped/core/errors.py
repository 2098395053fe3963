"""Error taxonomy surfaced by the fetch layer and the stats service."""

from __future__ import annotations


class DevOpsError(Exception):
    """Base class for every failure the service reports to callers."""

    category = "api_error"
    status_code = 502

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def details(self) -> list[str] | None:
        return None


class AuthenticationError(DevOpsError):
    category = "authentication_failed"
    status_code = 401

    def __init__(self, message: str = "Authentication failed. Please check your Personal Access Token (PAT).") -> None:
        super().__init__(message)


class PermissionDeniedError(DevOpsError):
    category = "permission_denied"
    status_code = 403

    def __init__(self, message: str = "Access denied. Your PAT may not have the required permissions.") -> None:
        super().__init__(message)


class NotFoundError(DevOpsError):
    category = "not_found"
    status_code = 404

    def __init__(
        self,
        message: str = "Resource not found. Please verify your organization, project, and repository names.",
    ) -> None:
        super().__init__(message)


class RateLimitError(DevOpsError):
    category = "rate_limited"
    status_code = 429

    def __init__(self, retry_after_seconds: int = 60) -> None:
        super().__init__(f"Rate limit exceeded. Please retry after {retry_after_seconds} seconds.")
        self.retry_after_seconds = retry_after_seconds


class ServiceUnavailableError(DevOpsError):
    category = "service_unavailable"
    status_code = 503

    def __init__(
        self, message: str = "Azure DevOps service is temporarily unavailable. Please try again later."
    ) -> None:
        super().__init__(message)


class NetworkError(DevOpsError):
    category = "network_error"
    status_code = 502

    def __init__(
        self, message: str = "No response from Azure DevOps. Please check your internet connection."
    ) -> None:
        super().__init__(message)


class DevOpsAPIError(DevOpsError):
    """Any platform status code outside the named categories."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"Azure DevOps API error ({status}): {message}")
        self.status = status


class UnresolvableIdentityError(DevOpsError):
    category = "unresolvable_identity"
    status_code = 422

    def __init__(self, email: str | None) -> None:
        if email:
            message = f"Could not resolve an Azure DevOps identity for {email}"
        else:
            message = "A user email is required to resolve an Azure DevOps identity"
        super().__init__(message)
        self.email = email


class ScopeValidationError(DevOpsError):
    """Raised before any network activity when required scope is missing."""

    category = "missing_parameters"
    status_code = 400

    def __init__(self, missing: list[str]) -> None:
        super().__init__("Missing required parameters: " + ", ".join(missing))
        self.missing = missing

    def details(self) -> list[str] | None:
        return list(self.missing)


class NoDataFoundError(NotFoundError):
    """Every project failed and nothing at all was collected."""

    category = "no_data"

    def __init__(self, project_errors: list[tuple[str, str]]) -> None:
        if project_errors:
            summary = "; ".join(f"{project}: {error}" for project, error in project_errors)
            message = f"No data found in any of the selected projects. Errors: {summary}"
        else:
            message = (
                "No data found in any of the selected projects. "
                "No commits, PRs, or work items found for the specified criteria"
            )
        super().__init__(message)
        self.project_errors = project_errors

    def details(self) -> list[str] | None:
        return [f"{project}: {error}" for project, error in self.project_errors]


def map_http_error(status: int, message: str | None = None, retry_after: str | None = None) -> DevOpsError:
    """Translate a raw platform status code into the closed error set."""

    match status:
        case 401:
            return AuthenticationError()
        case 403:
            return PermissionDeniedError()
        case 404:
            return NotFoundError()
        case 429:
            try:
                seconds = int(float(retry_after)) if retry_after else 60
            except (ValueError, OverflowError):
                seconds = 60
            return RateLimitError(seconds)
    if 500 <= status < 600:
        return ServiceUnavailableError()
    return DevOpsAPIError(status, message or "An unknown error occurred")
