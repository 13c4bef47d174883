"""HTTP smoke check run after every deploy."""

import time
from typing import Callable, Optional, TextIO

import httpx

from app.deploy.commands import DeployError

SMOKE_ATTEMPTS = 20
SMOKE_INTERVAL_SECONDS = 3.0
SMOKE_REQUEST_TIMEOUT = 10.0


def smoke_check(
    url: str,
    attempts: int = SMOKE_ATTEMPTS,
    interval: float = SMOKE_INTERVAL_SECONDS,
    client: Optional[httpx.Client] = None,
    sleep: Callable[[float], None] = time.sleep,
    out: Optional[TextIO] = None
) -> int:
    """
    Poll ``url`` until it answers HTTP 200.

    Any other status, a timeout or a connection error counts as a failed
    attempt. Waits ``interval`` seconds between attempts, not after the last.

    Returns:
        The 1-based attempt that succeeded

    Raises:
        DeployError: No attempt returned 200
    """
    owns_client = client is None
    client = client or httpx.Client(timeout=SMOKE_REQUEST_TIMEOUT, follow_redirects=True)
    last_error = ""

    try:
        for attempt in range(1, attempts + 1):
            try:
                response = client.get(url)
                if response.status_code == 200:
                    return attempt
                last_error = f"HTTP {response.status_code}"
            except httpx.HTTPError as e:
                last_error = f"{type(e).__name__}: {e}"

            if out is not None:
                print(f"    attempt {attempt}/{attempts} failed ({last_error})", file=out)

            if attempt < attempts:
                sleep(interval)
    finally:
        if owns_client:
            client.close()

    raise DeployError(f"Smoke check failed for {url}", output=last_error)
