"""
QuestDB client over the HTTP ``/exec`` endpoint.

Only connection errors and timeouts are retried; an HTTP error status or a
query error reported by QuestDB is raised as DestinationError at once.
"""

import logging
import time

import requests

from exceptions import ConfigurationError, DestinationError

logger = logging.getLogger(__name__)

MAX_RETRIES = 3


def sql_string(value) -> str:
    """Quote a value as a SQL string literal; None becomes ''."""
    if value is None:
        return "''"
    return "'" + str(value).replace("'", "''") + "'"


def sql_timestamp(value) -> str:
    """ISO-8601 timestamp literal, or NULL."""
    if value is None:
        return "NULL"
    if hasattr(value, "isoformat"):
        value = value.isoformat()
    return sql_string(value)


class QuestDBClient:
    def __init__(self, url, timeout: float = 30.0, readiness_timeout: float = 5.0,
                 session=None, sleep=time.sleep):
        self.url = url.rstrip("/") if url else None
        self.timeout = timeout
        self.readiness_timeout = readiness_timeout
        self.session = session or requests.Session()
        self.sleep = sleep

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    def _get(self, query: str, timeout: float) -> dict:
        if not self.is_configured:
            raise ConfigurationError("QuestDB is not configured; set QUESTDB_HTTP")

        response = self.session.get(f"{self.url}/exec", params={"query": query}, timeout=timeout)
        if response.status_code != 200:
            raise DestinationError(f"QuestDB HTTP {response.status_code}: {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if isinstance(payload, dict) and payload.get("error"):
            raise DestinationError(f"QuestDB query error: {payload['error']}")
        return payload

    def execute(self, query: str, max_retries: int = MAX_RETRIES) -> dict:
        """
        Run one statement, retrying transient failures with 2^attempt second
        backoff. The last transient error is raised once retries run out.
        """
        last_error = None
        for attempt in range(1, max_retries + 1):
            try:
                return self._get(query, self.timeout)
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = e
                logger.warning(f"QuestDB attempt {attempt}/{max_retries} failed: {e}")
                if attempt < max_retries:
                    self.sleep(2 ** attempt)
        raise last_error

    def ping(self) -> bool:
        """Trivial readiness query; raises on any failure."""
        self._get("SELECT 1", self.readiness_timeout)
        return True

    def status(self) -> dict:
        if not self.is_configured:
            return {
                "is_configured": False,
                "is_available": False,
                "url": None,
                "error": "QUESTDB_HTTP is not set",
            }
        try:
            self.ping()
            return {"is_configured": True, "is_available": True, "url": self.url, "error": None}
        except (requests.RequestException, DestinationError) as e:
            return {"is_configured": True, "is_available": False, "url": self.url, "error": str(e)}
