"""
RPC module for the wasmdeploy SDK.

This module provides the transports used to submit deploys to a node, poll
their status and read contract state, plus a client for the node's event
stream.
"""
from .transport import RpcTransport, backoff_delay, get_transport
from .http_transport import HttpTransport
from .stub_transport import StubTransport
from .events import EventStreamClient

__all__ = [
    'RpcTransport',
    'HttpTransport',
    'StubTransport',
    'EventStreamClient',
    'backoff_delay',
    'get_transport',
]
