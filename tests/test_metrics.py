import json

from gephclient.address import SocketAddress
from gephclient.metrics import BridgeMetrics, ConnEstablished


def _event():
    return ConnEstablished(
        bridges=[
            BridgeMetrics(SocketAddress("127.0.0.1", 8080), "udp", 0.5),
            BridgeMetrics(SocketAddress("::1", 443), "tcp", None),
        ],
        total_latency=1.25,
    )


def test_tag_and_field_order():
    data = _event().to_dict()
    assert data["type"] == "conn_established"
    assert list(data) == ["type", "bridges", "total_latency"]


def test_addresses_serialized_as_strings():
    bridges = _event().to_dict()["bridges"]
    assert bridges[0]["address"] == "127.0.0.1:8080"
    assert bridges[1]["address"] == "[::1]:443"


def test_bridge_fields_carried():
    bridge = _event().to_dict()["bridges"][0]
    assert bridge["protocol"] == "udp"
    assert bridge["pipe_latency"] == 0.5


def test_json_round_trip():
    event = _event()
    assert json.loads(event.to_json()) == event.to_dict()


def test_missing_latency_is_null():
    decoded = json.loads(_event().to_json())
    assert decoded["bridges"][1]["pipe_latency"] is None


def test_json_is_compact():
    assert " " not in ConnEstablished([], 2.0).to_json()