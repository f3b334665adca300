"""Small helpers shared by the outbound client and the webhook handler."""

from __future__ import annotations

import math
import platform
from typing import Any

from switchboard import __version__

PACKAGE_NAME = "switchboard"


def package_identifier() -> str:
    """Identify this library, its version and its runtime.

    Used as the outbound User-Agent and as the inbound identification header.

    Returns:
        e.g. "switchboard/0.1.0 Linux/6.1.0 python/3.12.4"
    """
    return (
        f"{PACKAGE_NAME}/{__version__} {platform.system()}/{platform.release()} "
        f"python/{platform.python_version()}"
    )


def is_falsy(value: Any) -> bool:
    """Test a value for the platform's notion of "missing".

    Zero, empty string, None and NaN are falsy. Empty containers and False are
    not: they are real values a caller chose to send.
    """
    if value is None or value == "":
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == 0 or (isinstance(value, float) and math.isnan(value))
    return False
