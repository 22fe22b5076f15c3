"""
JSend-shaped errors raised by the datastore facade.

Every failure surfaced by :class:`BodyTrackDatastore` is a
:class:`DatastoreError`. Two concrete classes exist:

- :class:`ClientValidationError` for rejected input (HTTP 422). It is always
  raised before any datastore executable is spawned.
- :class:`ServerError` for subprocess, parse and filesystem failures (HTTP 500).
  The underlying exception, exit status or parsed response is kept as
  ``context`` and chained as ``__cause__`` where there is one.

Both can be rendered as a JSend response object with ``to_jsend()`` so a web
layer can hand them straight back to a client.

Examples
--------
>>> try:
...     await datastore.get_tile(1, "speck", "bad..name", 10, 2639)
... except ClientValidationError as e:
...     print(e.fields)
{'channel_name': 'Invalid channel name'}
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any


def create_jsend_success(data: Any, http_status: int = HTTPStatus.OK) -> dict[str, Any]:
    """Create a JSend success object wrapping ``data``."""
    return {"code": int(http_status), "status": "success", "data": data}


def create_jsend_client_error(
    message: str, data: Any, http_status: int = HTTPStatus.BAD_REQUEST
) -> dict[str, Any]:
    """
    Create a JSend object for a rejected client request.

    Parameters
    ----------
    message : str
        End-user readable explanation of what went wrong.
    data : Any
        Details of the failure. Keys should name the offending parameters.
    http_status : int, default 400
        Status code in the 4xx range.

    Returns
    -------
    dict
        ``{"code", "status", "data", "message"}`` with ``status="error"``.

    Notes
    -----
    JSend calls for ``"fail"`` here. The datastore has always reported
    client errors as ``"error"`` and server errors as ``"fail"``, and
    consumers depend on that.
    """
    return {
        "code": int(http_status),
        "status": "error",
        "data": data,
        "message": message,
    }


def create_jsend_client_validation_error(message: str, data: Any) -> dict[str, Any]:
    """Create a JSend client error with status code 422 (Unprocessable Entity)."""
    return create_jsend_client_error(message, data, HTTPStatus.UNPROCESSABLE_ENTITY)


def create_jsend_server_error(
    message: str,
    data: Any = None,
    http_status: int = HTTPStatus.INTERNAL_SERVER_ERROR,
) -> dict[str, Any]:
    """Create a JSend object for a server-side failure (``status="fail"``)."""
    return {
        "code": int(http_status),
        "status": "fail",
        "data": data,
        "message": message,
    }


class DatastoreError(Exception):
    """
    Base class for all errors raised by the datastore facade.

    Parameters
    ----------
    message : str, optional
        Human readable message. Defaults to ``"Datastore error"``.
    data : Any, optional
        Extra data about the error, typically a JSend object.

    Attributes
    ----------
    message : str
        The error message.
    data : Any
        Extra data about the error.
    code : int
        HTTP-style status code for the error class.
    """

    code: int = int(HTTPStatus.INTERNAL_SERVER_ERROR)

    def __init__(self, message: str | None = None, data: Any = None) -> None:
        self.message = message or "Datastore error"
        self.data = data
        super().__init__(self.message)

    def to_jsend(self) -> dict[str, Any]:
        return create_jsend_server_error(self.message, self.data, self.code)


class ClientValidationError(DatastoreError):
    """
    Raised when caller-supplied parameters fail validation.

    Parameters
    ----------
    message : str
        Description of the failure.
    fields : dict, optional
        Mapping of offending field name to message. Defaults to mapping
        nothing.

    Examples
    --------
    >>> err = ClientValidationError("Invalid device name", {"device_name": "Invalid device name"})
    >>> err.to_jsend()["code"]
    422
    """

    code = int(HTTPStatus.UNPROCESSABLE_ENTITY)

    def __init__(self, message: str, fields: dict[str, Any] | None = None) -> None:
        self.fields = dict(fields or {})
        super().__init__(message, self.fields)

    @classmethod
    def for_field(cls, field: str, message: str) -> ClientValidationError:
        """Build an error that names exactly one offending field."""
        return cls(message, {field: message})

    def to_jsend(self) -> dict[str, Any]:
        return create_jsend_client_validation_error(self.message, self.fields)


class ServerError(DatastoreError):
    """
    Raised when a datastore executable, its output, or the filesystem fails.

    Parameters
    ----------
    message : str
        Description of the failure.
    context : Any, optional
        The underlying native error, exit status, raw output, or parsed
        response that explains the failure.
    """

    code = int(HTTPStatus.INTERNAL_SERVER_ERROR)

    def __init__(self, message: str, context: Any = None) -> None:
        self.context = context
        super().__init__(message, context)

    def to_jsend(self) -> dict[str, Any]:
        context = self.context
        if isinstance(context, BaseException):
            context = str(context)
        return create_jsend_server_error(self.message, context, self.code)
