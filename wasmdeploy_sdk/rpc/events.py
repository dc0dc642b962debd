"""
Client for the node's server-sent event stream.

The node publishes one JSON object per event, e.g.
``data:{"DeployProcessed": {"deploy_hash": "...", "execution_result": {...}}}``.
"""
import json
import logging
import time
from typing import Any, Dict, Iterable, Iterator, Optional, Union

import requests

from ..config import NetworkConfig
from ..exceptions import DeployTimeout, NetworkError
from ..models import DeployStatus
from .http_transport import parse_execution_result

# Configure logger
logger = logging.getLogger(__name__)


def parse_sse_lines(lines: Iterable[Union[str, bytes]]) -> Iterator[Dict[str, Any]]:
    """
    Turn raw event-stream lines into decoded JSON events.

    Only ``data`` fields are used; multi-line data is joined with newlines and
    payloads that are not JSON objects are skipped.
    """
    data_lines = []

    def _flush():
        payload = "\n".join(data_lines)
        data_lines.clear()
        try:
            event = json.loads(payload)
        except ValueError:
            logger.debug(f"Skipping non-JSON event payload: {payload[:80]}")
            return None
        return event if isinstance(event, dict) else None

    for line in lines:
        if line is None:
            continue
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        line = line.rstrip("\r")

        if not line:
            if data_lines:
                event = _flush()
                if event is not None:
                    yield event
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            data_lines.append(value)

    if data_lines:
        event = _flush()
        if event is not None:
            yield event


class EventStreamClient:
    """
    Reads events from the configured event-stream endpoint.
    """

    def __init__(self, config: NetworkConfig, session: Optional[requests.Session] = None):
        self.url = config.event_stream_endpoint
        self.connect_timeout = config.request_timeout
        self.session = session or requests.Session()

    def iter_events(self, read_timeout: Optional[float] = None, start_from: Optional[int] = None) -> Iterator[Dict[str, Any]]:
        """
        Yield decoded events until the stream closes.

        Raises:
            NetworkError: If the stream cannot be opened or breaks
        """
        params = {"start_from": start_from} if start_from is not None else None
        try:
            with self.session.get(
                self.url,
                params=params,
                stream=True,
                timeout=(self.connect_timeout, read_timeout),
                headers={"Accept": "text/event-stream"},
            ) as response:
                if response.status_code >= 400:
                    raise NetworkError(f"Event stream returned HTTP {response.status_code}")
                yield from parse_sse_lines(response.iter_lines(decode_unicode=True))
        except requests.RequestException as e:
            raise NetworkError(f"Event stream at {self.url} failed: {e}")

    def wait_for_deploy(self, deploy_hash: str, timeout: float) -> DeployStatus:
        """
        Block until the node reports the deploy as processed.

        Returns:
            The deploy's execution status

        Raises:
            DeployTimeout: If no matching event arrives within ``timeout`` seconds
            NetworkError: If the stream fails or closes first
        """
        deadline = time.monotonic() + timeout
        logger.info(f"Waiting for deploy {deploy_hash} on {self.url}")
        try:
            for event in self.iter_events(read_timeout=timeout):
                processed = event.get("DeployProcessed")
                if processed and processed.get("deploy_hash") == deploy_hash:
                    return parse_execution_result(processed.get("execution_result") or {})
                if time.monotonic() >= deadline:
                    break
        except NetworkError:
            if time.monotonic() < deadline:
                raise
        else:
            if time.monotonic() < deadline:
                raise NetworkError("Event stream closed before the deploy was processed")
        raise DeployTimeout(f"Deploy {deploy_hash} was not processed within {timeout}s")

    def close(self) -> None:
        self.session.close()
