"""Error kinds raised by the reconciliation core.

API-client implementations raise the azure-core exception family
(ResourceNotFoundError, HttpResponseError, AzureError). The lifecycle layer
converts those at the boundary with classify_api_error() so the rest of the
code deals with RemoteNotFound and RemoteAPIError only.
"""

from __future__ import annotations

from azure.core.exceptions import AzureError, HttpResponseError, ResourceNotFoundError

HTTP_NOT_FOUND = 404


class ProviderError(Exception):
    """Base class for reconciliation errors."""

    pass


class FieldValidationError(ProviderError):
    """Raised when a value fails the attribute store's type or shape check.

    Recoverable: the failing field is reported and sibling fields are still
    written.
    """

    def __init__(self, attribute: str, message: str) -> None:
        super().__init__(f"{attribute}: {message}")
        self.attribute = attribute
        self.message = message


class RemoteNotFound(ProviderError):
    """The remote resource does not exist (or no longer exists)."""

    def __init__(self, kind: str, resource_id: str, cause: BaseException | None = None) -> None:
        super().__init__(f"{kind} {resource_id} not found")
        self.kind = kind
        self.resource_id = resource_id
        self.cause = cause


class RemoteAPIError(ProviderError):
    """Any other failure reported by the remote API.

    Fatal to the current step. The message carries the resource kind and
    identifier so it can be reported verbatim.
    """

    def __init__(
        self,
        kind: str,
        action: str,
        resource_id: str | None,
        cause: BaseException,
    ) -> None:
        where = f" ({resource_id})" if resource_id else ""
        super().__init__(f"Error {action} {kind}{where}: {cause}")
        self.kind = kind
        self.action = action
        self.resource_id = resource_id
        self.cause = cause
        self.status_code: int | None = getattr(cause, "status_code", None)


class PollTimeout(ProviderError):
    """A status wait exceeded its deadline.

    Distinct from RemoteAPIError: the API answered, but never with the
    target status.
    """

    def __init__(self, target: str, last_status: str | None, timeout: float) -> None:
        super().__init__(
            f"timeout while waiting for state to become '{target}' "
            f"(last state: '{last_status or ''}', timeout: {timeout:g}s)"
        )
        self.target = target
        self.last_status = last_status
        self.timeout = timeout


class UnexpectedState(ProviderError):
    """A status wait observed a status outside {pending, target}."""

    def __init__(self, status: str, pending: str, target: str) -> None:
        super().__init__(
            f"unexpected state '{status}', wanted target '{target}' (pending: '{pending}')"
        )
        self.status = status
        self.pending = pending
        self.target = target


def is_not_found(error: BaseException) -> bool:
    """Check whether an API-client exception means "resource missing"."""
    if isinstance(error, (ResourceNotFoundError, RemoteNotFound)):
        return True
    return isinstance(error, HttpResponseError) and error.status_code == HTTP_NOT_FOUND


def classify_api_error(
    error: AzureError,
    kind: str,
    action: str,
    resource_id: str | None = None,
) -> RemoteNotFound | RemoteAPIError:
    """Convert an azure-core exception into a reconciliation error.

    Args:
        error: Exception raised by the API-client collaborator.
        kind: Resource-kind label, e.g. "Cloud IP".
        action: Verb describing the failed step, e.g. "creating".
        resource_id: Remote identifier, if one is known.

    Returns:
        RemoteNotFound for a missing resource, RemoteAPIError otherwise.
    """
    if resource_id and is_not_found(error):
        return RemoteNotFound(kind, resource_id, error)
    return RemoteAPIError(kind, action, resource_id, error)
