"""Unit tests for storage transports."""

import hashlib

import pytest
import requests
from unittest.mock import MagicMock
from dshare.core.exceptions import TransportError
from dshare.network.transport import DEFAULT_GATEWAYS, GatewayTransport, LocalTransport

CID = "bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"


def _response(ok=True, content=b"", status=200, json_data=None):
    resp = MagicMock()
    resp.ok = ok
    resp.status_code = status
    resp.content = content
    resp.json.return_value = json_data
    if ok:
        resp.raise_for_status.return_value = None
    else:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status}")
    return resp


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


# ==============================================================================
# Gateway downloads
# ==============================================================================

def test_download_first_gateway_wins(session):
    session.get.return_value = _response(content=b"cipher")
    transport = GatewayTransport(session=session)

    assert transport.download(CID) == b"cipher"
    session.get.assert_called_once_with(f"https://{CID}.ipfs.w3s.link", timeout=transport.timeout)


def test_download_falls_back_in_order(session):
    session.get.side_effect = [
        requests.ConnectionError("down"),
        _response(ok=False, status=504),
        _response(content=b"cipher"),
        _response(content=b"never reached"),
    ]
    transport = GatewayTransport(session=session)

    assert transport.download(CID) == b"cipher"
    urls = [call.args[0] for call in session.get.call_args_list]
    assert urls == [g.format(cid=CID) for g in DEFAULT_GATEWAYS[:3]]


def test_download_exhausted_is_transport_error(session):
    session.get.side_effect = requests.Timeout("slow")
    transport = GatewayTransport(session=session)

    with pytest.raises(TransportError):
        transport.download(CID)
    assert session.get.call_count == len(DEFAULT_GATEWAYS)


@pytest.mark.parametrize("locator", ["", "../etc/passwd", "abc/def", "a b"])
def test_download_rejects_odd_locators(session, locator):
    transport = GatewayTransport(session=session)
    with pytest.raises(TransportError):
        transport.download(locator)
    session.get.assert_not_called()


def test_gateway_list_required():
    with pytest.raises(ValueError):
        GatewayTransport(gateways=[])


# ==============================================================================
# Gateway uploads
# ==============================================================================

def test_upload_returns_hash(session):
    session.post.return_value = _response(json_data={"Hash": CID})
    transport = GatewayTransport(upload_endpoints=["https://up.example/add"], session=session)

    assert transport.upload(b"cipher", "encrypted-a.txt") == CID
    _, kwargs = session.post.call_args
    assert kwargs["files"]["file"][0] == "encrypted-a.txt"
    assert kwargs["files"]["file"][1] == b"cipher"


def test_upload_falls_back_to_next_endpoint(session):
    session.post.side_effect = [
        _response(ok=False, status=500),
        _response(json_data={"no": "hash"}),
        _response(json_data={"Hash": CID}),
    ]
    transport = GatewayTransport(upload_endpoints=["https://a", "https://b", "https://c"], session=session)

    assert transport.upload(b"x", "n") == CID
    assert session.post.call_count == 3


def test_upload_exhausted_is_transport_error(session):
    session.post.side_effect = requests.ConnectionError("down")
    transport = GatewayTransport(upload_endpoints=["https://a"], session=session)
    with pytest.raises(TransportError):
        transport.upload(b"x", "n")


# ==============================================================================
# Local transport
# ==============================================================================

def test_local_roundtrip(tmp_path):
    transport = LocalTransport(tmp_path)
    locator = transport.upload(b"cipher", "n")

    assert locator == hashlib.sha256(b"cipher").hexdigest()
    assert transport.download(locator) == b"cipher"


def test_local_upload_is_idempotent(tmp_path):
    transport = LocalTransport(tmp_path)
    assert transport.upload(b"same", "a") == transport.upload(b"same", "b")
    assert len(list(transport.blob_root.iterdir())) == 1


def test_local_missing_blob(tmp_path):
    with pytest.raises(TransportError):
        LocalTransport(tmp_path).download("00" * 32)


def test_local_corrupted_blob(tmp_path):
    transport = LocalTransport(tmp_path)
    locator = transport.upload(b"cipher", "n")
    transport.blob_path(locator).write_bytes(b"cipheR")
    with pytest.raises(TransportError):
        transport.download(locator)
