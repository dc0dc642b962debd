"""
Tests for the event stream client.
"""
import json

import pytest
import requests

from wasmdeploy_sdk.exceptions import DeployTimeout, NetworkError
from wasmdeploy_sdk.models import StatusKind
from wasmdeploy_sdk.rpc.events import EventStreamClient, parse_sse_lines

from conftest import TEST_EVENTS_URL

DEPLOY_HASH = "ab" * 32
CONTRACT = "hash-" + "22" * 32


def _event(payload):
    return f"data:{json.dumps(payload)}\n\n"


def _processed(deploy_hash, result):
    return _event({"DeployProcessed": {"deploy_hash": deploy_hash, "execution_result": result}})


SUCCESS = {"Success": {"effect": {"transforms": [{"key": CONTRACT, "transform": "WriteContract"}]}, "cost": "1"}}


class TestParseSse:
    """Tests for server-sent event parsing."""

    def test_data_lines(self):
        lines = ['data:{"ApiVersion": "1.5.2"}', "", "id:1", 'data: {"Step": {}}', ""]
        assert list(parse_sse_lines(lines)) == [{"ApiVersion": "1.5.2"}, {"Step": {}}]

    def test_multi_line_data_is_joined(self):
        lines = ['data:{"a":', "data:1}", ""]
        assert list(parse_sse_lines(lines)) == [{"a": 1}]

    def test_comments_and_garbage_are_skipped(self):
        lines = [":keep-alive", "", "data:not json", "", "data:[1, 2]", "", b'data:{"b": 2}']
        assert list(parse_sse_lines(lines)) == [{"b": 2}]


class TestWaitForDeploy:
    """Tests for waiting on DeployProcessed events."""

    def test_matching_event(self, config, requests_mock):
        body = _event({"ApiVersion": "1.5.2"}) + _processed("cd" * 32, SUCCESS) + _processed(DEPLOY_HASH, SUCCESS)
        requests_mock.get(TEST_EVENTS_URL, text=body)
        client = EventStreamClient(config)
        status = client.wait_for_deploy(DEPLOY_HASH, timeout=5)
        assert status.kind == StatusKind.EXECUTED
        assert status.contract_address == CONTRACT
        client.close()

    def test_failed_execution(self, config, requests_mock):
        failure = {"Failure": {"error_message": "User error: 1", "cost": "1"}}
        requests_mock.get(TEST_EVENTS_URL, text=_processed(DEPLOY_HASH, failure))
        status = EventStreamClient(config).wait_for_deploy(DEPLOY_HASH, timeout=5)
        assert status.success is False
        assert status.message == "User error: 1"

    def test_stream_closed_before_event(self, config, requests_mock):
        requests_mock.get(TEST_EVENTS_URL, text=_processed("cd" * 32, SUCCESS))
        with pytest.raises(NetworkError, match="closed"):
            EventStreamClient(config).wait_for_deploy(DEPLOY_HASH, timeout=5)

    def test_http_error(self, config, requests_mock):
        requests_mock.get(TEST_EVENTS_URL, status_code=503)
        with pytest.raises(NetworkError):
            EventStreamClient(config).wait_for_deploy(DEPLOY_HASH, timeout=5)

    def test_connection_error(self, config, requests_mock):
        requests_mock.get(TEST_EVENTS_URL, exc=requests.exceptions.ConnectionError)
        with pytest.raises(NetworkError):
            list(EventStreamClient(config).iter_events())

    def test_deadline_passed(self, config, requests_mock):
        requests_mock.get(TEST_EVENTS_URL, text=_processed("cd" * 32, SUCCESS))
        with pytest.raises(DeployTimeout):
            EventStreamClient(config).wait_for_deploy(DEPLOY_HASH, timeout=0)

    def test_start_from_is_sent(self, config, requests_mock):
        adapter = requests_mock.get(TEST_EVENTS_URL, text=_event({"Step": {}}))
        assert list(EventStreamClient(config).iter_events(start_from=7)) == [{"Step": {}}]
        assert adapter.last_request.qs == {"start_from": ["7"]}
