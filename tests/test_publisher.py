from __future__ import annotations

from types import SimpleNamespace

import pytest
import requests

from hardware_report.config import PublishConfig
from hardware_report.errors import InvalidConfiguration, PublishAuthenticationError, PublishNetworkError
from hardware_report.model import Report
from hardware_report.publisher import HttpPublisher, build_payload


class RecordingSession:
    def __init__(self, status_code: int = 200, error: Exception | None = None) -> None:
        self.status_code = status_code
        self.error = error
        self.requests = []

    def _respond(self, method: str, url: str, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return SimpleNamespace(status_code=self.status_code, text="body")

    def post(self, url: str, **kwargs):
        return self._respond("POST", url, **kwargs)

    def head(self, url: str, **kwargs):
        return self._respond("HEAD", url, **kwargs)


def _config(**overrides) -> PublishConfig:
    values = {"endpoint": "https://collector.example/api/reports", "auth_token": "s3cret", "labels": {"rack": "r12"}}
    values.update(overrides)
    return PublishConfig(**values)


def test_publish_posts_json_with_labels_and_token() -> None:
    session = RecordingSession(status_code=201)
    publisher = HttpPublisher(timeout=12, skip_tls_verify=True, session=session)

    publisher.publish(Report(hostname="node01", fqdn="node01"), _config())

    method, url, kwargs = session.requests[0]
    assert (method, url) == ("POST", "https://collector.example/api/reports")
    assert kwargs["json"]["labels"] == {"rack": "r12"}
    assert kwargs["json"]["hostname"] == "node01"
    assert kwargs["headers"]["Authorization"] == "Bearer s3cret"
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert kwargs["timeout"] == 12
    assert kwargs["verify"] is False


@pytest.mark.parametrize("status", [401, 403])
def test_publish_rejected_credentials(status: int) -> None:
    publisher = HttpPublisher(session=RecordingSession(status_code=status))

    with pytest.raises(PublishAuthenticationError):
        publisher.publish(Report(hostname="node01", fqdn="node01"), _config())


def test_publish_server_error_is_network_failure() -> None:
    publisher = HttpPublisher(session=RecordingSession(status_code=500))

    with pytest.raises(PublishNetworkError, match="500"):
        publisher.publish(Report(hostname="node01", fqdn="node01"), _config())


def test_publish_transport_error_is_network_failure() -> None:
    publisher = HttpPublisher(session=RecordingSession(error=requests.ConnectionError("refused")))

    with pytest.raises(PublishNetworkError, match="refused"):
        publisher.publish(Report(hostname="node01", fqdn="node01"), _config())


def test_publish_without_endpoint_makes_no_request() -> None:
    session = RecordingSession()
    publisher = HttpPublisher(session=session)

    with pytest.raises(PublishNetworkError) as excinfo:
        publisher.publish(Report(hostname="node01", fqdn="node01"), _config(endpoint=""))

    assert isinstance(excinfo.value.domain, InvalidConfiguration)
    assert session.requests == []


@pytest.mark.parametrize(("status", "expected"), [(200, True), (204, True), (405, True), (404, False), (500, False)])
def test_connectivity_probe(status: int, expected: bool) -> None:
    session = RecordingSession(status_code=status)

    assert HttpPublisher(session=session).test_connectivity(_config()) is expected
    assert session.requests[0][0] == "HEAD"


def test_connectivity_probe_swallows_transport_errors() -> None:
    publisher = HttpPublisher(session=RecordingSession(error=requests.Timeout("slow")))

    assert publisher.test_connectivity(_config()) is False


def test_payload_without_labels_has_no_labels_key() -> None:
    assert "labels" not in build_payload(Report(hostname="node01", fqdn="node01"))
