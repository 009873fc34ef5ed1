"""Exception hierarchy for druva-msp."""

from __future__ import annotations


class DruvaMspError(Exception):
    """Base exception for all druva-msp errors."""
    pass


class AuthenticationError(DruvaMspError):
    """
    The client-credentials grant did not produce an access token.

    Common causes:
    - Invalid DRUVA_MSP_CLIENT_ID or DRUVA_MSP_CLIENT_SECRET
    - Revoked API credentials
    - Network connectivity to the token endpoint

    Raised before any page request is attempted for the call that needed
    the token.
    """
    pass


class ApiError(DruvaMspError):
    """
    A request against the Druva MSP API failed.

    Covers transport failures (status_code is None) and non-2xx responses.
    The endpoint path and status code are available on this exception.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        endpoint: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(
            f"Druva MSP API request error [{status_code if status_code is not None else 'no response'}]: "
            f"{message} - {endpoint}"
        )


class ResponseShapeError(ApiError):
    """
    A page response did not contain the expected items key.

    This is distinct from an empty items list, which is a normal end of
    pagination. Aggregation stops without issuing further requests.
    """

    def __init__(
        self,
        items_key: str,
        endpoint: str | None = None,
        keys=None,
        detail: str | None = None,
    ):
        self.items_key = items_key
        self.response_keys = sorted(keys) if keys is not None else []
        detail = detail or f'Response does not contain key "{items_key}"'
        super().__init__(
            f"{detail} (response keys: {', '.join(self.response_keys) or 'none'})",
            status_code=200,
            endpoint=endpoint,
        )


class TaskTimeoutError(DruvaMspError):
    """
    A background task did not finish within the timeout period.

    The task keeps running on the Druva side; poll it again later or
    increase the timeout parameter.
    """

    def __init__(self, message: str, task_id: str | None = None):
        self.task_id = task_id
        super().__init__(message)
