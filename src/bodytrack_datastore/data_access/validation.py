"""
Parameter validation for the BodyTrack Datastore executables.

Every device name, channel name and user id that reaches a datastore argv
passes through the predicates in this module first. Keys double as path
components inside the datastore's data directory, so an invalid key must never
make it into a command line or a filesystem path.

Key Functions
-------------
is_valid_key : Device/channel name predicate
is_valid_user_id : Strictly positive integer predicate
is_int : Integer predicate used for tile level and offset
is_numeric : Finite number predicate used for time bounds
validate_channel_requests : Validate and dedupe multi-channel requests

Examples
--------
>>> is_valid_key("a.b.c")
True
>>> is_valid_key("a.b..c")
False
>>> validate_channel_requests([
...     {"user_id": 1, "device_name": "speck", "channel_names": ["particles", "humidity"]},
...     {"user_id": 1, "device_name": "speck", "channel_names": ["particles"]},
... ])
['1.speck.particles', '1.speck.humidity']
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from typing import Any

from .errors import ClientValidationError

VALID_KEY_CHARACTERS_PATTERN = re.compile(r"[a-zA-Z0-9_.\-]+")
INTEGER_PATTERN = re.compile(r"-?\d+", re.ASCII)


def is_valid_key(key: Any) -> bool:
    """
    Return True if ``key`` is usable as a device or channel name.

    A valid key is a non-empty string made only of letters, digits,
    underscores, dots and dashes. It must not start or end with a dot and
    must not contain two consecutive dots.

    Parameters
    ----------
    key : Any
        Candidate key. Anything other than a ``str`` is invalid.

    Returns
    -------
    bool
        Whether the key is valid.
    """
    return (
        isinstance(key, str)
        and len(key) > 0
        and not key.startswith(".")
        and not key.endswith(".")
        and ".." not in key
        and VALID_KEY_CHARACTERS_PATTERN.fullmatch(key) is not None
    )


def _as_int(value: Any) -> int | None:
    # bool is an int subclass but never a valid id, level or offset
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value.is_integer() else None
    if isinstance(value, str) and INTEGER_PATTERN.fullmatch(value):
        return int(value)
    return None


def is_int(value: Any) -> bool:
    """True for ints, integral floats, and decimal integer strings like ``"-3"``."""
    return _as_int(value) is not None


def is_valid_user_id(value: Any) -> bool:
    """True if ``value`` is a strictly positive integer in any form accepted by :func:`is_int`."""
    as_int = _as_int(value)
    return as_int is not None and as_int > 0


def to_int(value: Any) -> int:
    """Normalise an already-validated integer value to ``int``."""
    as_int = _as_int(value)
    if as_int is None:
        raise ValueError(f"Not an integer: {value!r}")
    return as_int


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        # float() also takes "1_000" and non-ASCII digits
        if "_" in text or not text.isascii():
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def is_numeric(value: Any) -> bool:
    """True for finite numbers and strings that parse as finite numbers."""
    return _as_float(value) is not None


def format_number(value: Any) -> str:
    """
    Format a validated numeric value for a datastore argv.

    Integral values are written without a fractional part so epoch seconds
    stay readable, e.g. ``1384355116`` rather than ``1384355116.0``.
    """
    number = _as_float(value)
    if number is None:
        raise ValueError(f"Not a finite number: {value!r}")
    if number.is_integer():
        return str(int(number))
    return repr(number)


def build_channel_locator(user_id: Any, device_name: str, channel_name: str) -> str:
    """Join an already-validated user, device and channel into ``uid.device.channel``."""
    return f"{to_int(user_id)}.{device_name}.{channel_name}"


def _pick(request: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if request.get(name) is not None:
            return request[name]
    return None


def validate_channel_requests(requests: Any) -> list[str]:
    """
    Validate a list of channel requests and return unique channel locators.

    Each request is a mapping with a user id, a device name and either a list
    of channel names or a single channel name. Both snake_case and the
    datastore's historical camelCase keys are accepted:

    - ``user_id`` / ``userId``
    - ``device_name`` / ``deviceName``
    - ``channel_names`` / ``channelNames`` (non-empty list of names)
    - ``channel_name`` / ``channelName`` (single name, legacy form)

    Parameters
    ----------
    requests : list of dict
        The channel requests. Must be a non-empty list.

    Returns
    -------
    list of str
        ``uid.device.channel`` locators in first-seen order, without
        duplicates.

    Raises
    ------
    ClientValidationError
        On the first invalid request. The error names exactly one field:
        ``channel_requests``, ``user_id``, ``device_name`` or
        ``channel_names``.
    """
    if (
        isinstance(requests, (str, bytes, Mapping))
        or not isinstance(requests, Sequence)
        or len(requests) == 0
    ):
        raise ClientValidationError.for_field(
            "channel_requests",
            "channel_requests must be a non-empty list of objects",
        )

    seen: dict[str, None] = {}
    for request in requests:
        if not isinstance(request, Mapping):
            raise ClientValidationError.for_field(
                "channel_requests", "channel_requests must contain only objects"
            )

        user_id = _pick(request, "user_id", "userId")
        device_name = _pick(request, "device_name", "deviceName")
        channel_names = _pick(request, "channel_names", "channelNames")
        if channel_names is None:
            single = _pick(request, "channel_name", "channelName")
            channel_names = [single] if single is not None else None

        if user_id is None or device_name is None or channel_names is None:
            raise ClientValidationError.for_field(
                "channel_requests",
                "Each channel request must have a user ID, device name and channel names",
            )

        if not is_valid_user_id(user_id):
            msg = f"User ID [{user_id}] must be a positive integer"
            raise ClientValidationError.for_field("user_id", msg)

        if not is_valid_key(device_name):
            msg = f"Invalid device name [{device_name}]"
            raise ClientValidationError.for_field("device_name", msg)

        if (
            isinstance(channel_names, (str, bytes))
            or not isinstance(channel_names, Sequence)
            or len(channel_names) == 0
        ):
            raise ClientValidationError.for_field(
                "channel_names", "channel_names must be a non-empty list of strings"
            )

        for channel_name in channel_names:
            if not is_valid_key(channel_name):
                msg = (
                    f"Invalid channel name [{channel_name}] in "
                    f"[{to_int(user_id)}.{device_name}]"
                )
                raise ClientValidationError.for_field("channel_names", msg)
            seen.setdefault(build_channel_locator(user_id, device_name, channel_name))

    return list(seen)
