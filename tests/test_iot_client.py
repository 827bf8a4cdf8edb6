import pytest
import json
import os
from unittest.mock import patch, AsyncMock
from winemint.iot_client import IotStorageClient, format_for_minting


def make_response(status=200, reason="OK", body=None):
    mock_resp = AsyncMock()
    mock_resp.status = status
    mock_resp.reason = reason
    mock_resp.json.return_value = body
    return mock_resp


@pytest.mark.asyncio
async def test_unconfigured_url_returns_error_snapshot():
    with patch.dict(os.environ, {}, clear=True):
        client = IotStorageClient()
    snapshot = await client.get_snapshot()
    assert snapshot["status"] == "error"
    assert snapshot["data"] is None
    assert snapshot["timestamp"].endswith("Z")
    assert await client.fetch_mint_data() == {}


@pytest.mark.asyncio
async def test_snapshot_unwraps_data():
    client = IotStorageClient(url="https://iot.example.com/sensors")
    with patch("aiohttp.ClientSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.__aenter__.return_value = mock_session
        mock_session.get.return_value.__aenter__.return_value = make_response(
            body={"data": {"temperature": 14.2, "humidity": 71}}
        )

        snapshot = await client.get_snapshot()
        assert snapshot["status"] == "success"
        assert snapshot["data"] == {"temperature": 14.2, "humidity": 71}

        data = await client.fetch_mint_data()
        assert data == {"temperature": 14.2, "humidity": 71}


@pytest.mark.asyncio
async def test_http_error_falls_back_to_empty():
    client = IotStorageClient(url="https://iot.example.com/sensors")
    with patch("aiohttp.ClientSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.__aenter__.return_value = mock_session
        mock_session.get.return_value.__aenter__.return_value = make_response(502, "Bad Gateway")

        assert await client.fetch_mint_data() == {}


@pytest.mark.asyncio
async def test_connection_failure_never_raises():
    client = IotStorageClient(url="https://iot.example.com/sensors")
    with patch("aiohttp.ClientSession", side_effect=Exception("refused")):
        snapshot = await client.get_snapshot()
    assert snapshot["status"] == "error"


@pytest.mark.asyncio
async def test_non_object_body_is_error():
    client = IotStorageClient(url="https://iot.example.com/sensors")
    with patch("aiohttp.ClientSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.__aenter__.return_value = mock_session
        mock_session.get.return_value.__aenter__.return_value = make_response(body=[1, 2, 3])

        snapshot = await client.get_snapshot()
    assert snapshot["status"] == "error"


def test_format_for_minting():
    assert json.loads(format_for_minting({"t": 1})) == {"t": 1}
    assert json.loads(format_for_minting({})) == {"error": "Invalid IoT data"}
    assert json.loads(format_for_minting(None)) == {"error": "Invalid IoT data"}
