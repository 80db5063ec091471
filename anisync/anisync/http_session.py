import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from . import constants as c
from .logging import APIError

logger = logging.getLogger(__name__)


def create_retry_session(
    retries: int = c.HTTP_RETRY_COUNT,
    backoff_factor: float = c.HTTP_RETRY_BACKOFF_FACTOR,
    status_forcelist: tuple = (500, 502, 503, 504),
) -> requests.Session:
    """Creates a requests session with retry logic."""
    session = requests.Session()
    retry = Retry(
        total=retries,
        read=retries,
        connect=retries,
        backoff_factor=backoff_factor,
        status_forcelist=status_forcelist,
        allowed_methods=None,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": c.HTTP_USER_AGENT})
    return session


def parse_json(response: requests.Response, provider: str) -> dict:
    """Raises APIError on a non-2xx status or a body that isn't JSON."""
    if not response.ok:
        raise APIError(
            f"{provider} API error: {response.status_code} {response.text[:200]}",
            status_code=response.status_code,
        )
    try:
        return response.json()
    except ValueError as e:
        raise APIError(f"{provider} returned invalid JSON: {e}", status_code=response.status_code) from e
