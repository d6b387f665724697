"""HTTP publishing of reports to a remote collector."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from .collectors.snapshot import report_to_dict
from .config import PublishConfig
from .errors import InvalidConfiguration, PublishAuthenticationError, PublishNetworkError, PublishSerializationError
from .model import Report

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


def build_payload(report: Report, labels: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    payload = report_to_dict(report)
    if labels:
        payload["labels"] = dict(labels)
    return payload


class HttpPublisher:
    """POSTs JSON reports; timeout and TLS verification are fixed at construction."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        skip_tls_verify: bool = False,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout
        self.verify = not skip_tls_verify
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: PublishConfig) -> "HttpPublisher":
        return cls(timeout=config.timeout_seconds, skip_tls_verify=config.skip_tls_verify)

    def publish(self, report: Report, config: PublishConfig) -> None:
        if not config.endpoint:
            raise PublishNetworkError.from_domain(InvalidConfiguration("No endpoint configured"))
        try:
            payload = build_payload(report, config.labels)
        except (TypeError, ValueError) as exc:
            raise PublishSerializationError(f"Unable to serialize report: {exc}") from exc

        try:
            response = self.session.post(
                config.endpoint,
                json=payload,
                headers=self._headers(config),
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.RequestException as exc:
            raise PublishNetworkError(f"POST {config.endpoint} failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise PublishAuthenticationError(f"Endpoint rejected credentials (HTTP {response.status_code})")
        if not 200 <= response.status_code < 300:
            raise PublishNetworkError(f"Endpoint returned HTTP {response.status_code}: {response.text[:200]}")
        LOGGER.info("Report posted to %s (HTTP %s)", config.endpoint, response.status_code)

    def test_connectivity(self, config: PublishConfig) -> bool:
        if not config.endpoint:
            raise PublishNetworkError.from_domain(InvalidConfiguration("No endpoint configured"))
        try:
            response = self.session.head(
                config.endpoint,
                headers=self._headers(config),
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.RequestException as exc:
            LOGGER.debug("Connectivity probe to %s failed: %s", config.endpoint, exc)
            return False
        return 200 <= response.status_code < 300 or response.status_code == 405

    @staticmethod
    def _headers(config: PublishConfig) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if config.auth_token:
            headers["Authorization"] = f"Bearer {config.auth_token}"
        return headers
