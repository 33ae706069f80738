from datetime import datetime

import pytest
import requests

from exceptions import ConfigurationError, DestinationError
from questdb import QuestDBClient, sql_string, sql_timestamp


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload if payload is not None else {"ddl": "OK"}
        self.text = text

    def json(self):
        return self._payload


class FakeSession:
    """Replays a script of responses / exceptions for successive GETs."""

    def __init__(self, *script):
        self.script = list(script)
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        return item


def client_with(*script, url="http://questdb:9000/"):
    slept = []
    session = FakeSession(*script)
    client = QuestDBClient(url, timeout=30.0, readiness_timeout=5.0, session=session, sleep=slept.append)
    return client, session, slept


def test_execute_hits_exec_endpoint():
    client, session, slept = client_with(FakeResponse(payload={"count": 1}))

    assert client.execute("SELECT 1") == {"count": 1}
    url, params, timeout = session.requests[0]
    assert url == "http://questdb:9000/exec"
    assert params == {"query": "SELECT 1"}
    assert timeout == 30.0
    assert slept == []


def test_transient_errors_are_retried_with_backoff():
    client, session, slept = client_with(
        requests.ConnectionError("refused"),
        requests.Timeout("slow"),
        FakeResponse(),
    )

    client.execute("INSERT ...")

    assert len(session.requests) == 3
    assert slept == [2, 4]


def test_retries_exhausted_raise_last_error():
    client, session, slept = client_with(requests.ConnectionError("refused"))

    with pytest.raises(requests.ConnectionError):
        client.execute("INSERT ...")
    assert len(session.requests) == 3
    assert slept == [2, 4]


def test_http_error_is_not_retried():
    client, session, slept = client_with(FakeResponse(status_code=400, text="bad sql"))

    with pytest.raises(DestinationError):
        client.execute("INSERT nonsense")
    assert len(session.requests) == 1
    assert slept == []


def test_query_error_in_payload():
    client, _, _ = client_with(FakeResponse(payload={"error": "table does not exist"}))
    with pytest.raises(DestinationError, match="table does not exist"):
        client.execute("SELECT * FROM nope")


def test_unconfigured_client():
    client = QuestDBClient(None)
    assert client.is_configured is False
    with pytest.raises(ConfigurationError):
        client.execute("SELECT 1")


def test_ping_uses_readiness_timeout():
    client, session, _ = client_with(FakeResponse())
    assert client.ping() is True
    assert session.requests[0][2] == 5.0


def test_status():
    assert QuestDBClient(None).status()["is_configured"] is False

    up, _, _ = client_with(FakeResponse())
    assert up.status() == {"is_configured": True, "is_available": True,
                           "url": "http://questdb:9000", "error": None}

    down, _, _ = client_with(requests.ConnectionError("refused"))
    status = down.status()
    assert status["is_available"] is False
    assert "refused" in status["error"]


def test_sql_literals():
    assert sql_string("O'Brien St") == "'O''Brien St'"
    assert sql_string(None) == "''"
    assert sql_timestamp(None) == "NULL"
    assert sql_timestamp(datetime(2024, 6, 12, 8, 0)) == "'2024-06-12T08:00:00'"
