from http.client import RemoteDisconnected
from unittest import mock

import requests
from urllib3.exceptions import MaxRetryError, NewConnectionError, ProtocolError

from wager_ledger.services.transfer_service import HttpTransferClient, TransferStatus


def _response(status_code, body=None, text=""):
    r = mock.Mock()
    r.status_code = status_code
    r.text = text
    if isinstance(body, Exception):
        r.json.side_effect = body
    else:
        r.json.return_value = body
    return r


def _client(response=None, error=None):
    session = mock.Mock()
    if error is not None:
        session.post.side_effect = error
    else:
        session.post.return_value = response
    return HttpTransferClient("http://payout.local/api", timeout=3, session=session), session


def test_confirmed_transfer():
    client, session = _client(_response(200, {"status": "confirmed", "signature": "5xyz"}))

    result = client.transfer("W1", 500, reference="wd-1")

    assert result.status == TransferStatus.SUCCESS
    assert result.reference == "5xyz"
    session.post.assert_called_once_with(
        "http://payout.local/api/transfers",
        json={"wallet_address": "W1", "amount": 500, "reference": "wd-1"},
        timeout=3,
    )


def test_reported_failure():
    client, _ = _client(_response(200, {"status": "failed", "error": "insufficient treasury"}))

    result = client.transfer("W1", 500, reference="wd-1")

    assert result.status == TransferStatus.FAILURE
    assert result.detail == "insufficient treasury"


def test_client_error_is_a_failure():
    client, _ = _client(_response(422, text="bad wallet"))
    assert client.transfer("W1", 1, reference="wd-1").status == TransferStatus.FAILURE


def test_server_error_is_ambiguous():
    client, _ = _client(_response(503))
    assert client.transfer("W1", 1, reference="wd-1").status == TransferStatus.AMBIGUOUS


def test_unconfirmed_status_is_ambiguous():
    client, _ = _client(_response(202, {"status": "submitted"}))
    assert client.transfer("W1", 1, reference="wd-1").status == TransferStatus.AMBIGUOUS


def test_unreadable_body_is_ambiguous():
    client, _ = _client(_response(200, ValueError("no json")))
    assert client.transfer("W1", 1, reference="wd-1").status == TransferStatus.AMBIGUOUS


def test_read_timeout_is_ambiguous():
    client, _ = _client(error=requests.ReadTimeout("read timed out"))
    assert client.transfer("W1", 1, reference="wd-1").status == TransferStatus.AMBIGUOUS


def test_unreachable_service_is_a_failure():
    refused = MaxRetryError(None, "/api/transfers", reason=NewConnectionError(None, "Connection refused"))
    client, _ = _client(error=requests.ConnectionError(refused))
    assert client.transfer("W1", 1, reference="wd-1").status == TransferStatus.FAILURE

    client, _ = _client(error=requests.ConnectTimeout("connect timed out"))
    assert client.transfer("W1", 1, reference="wd-1").status == TransferStatus.FAILURE


def test_connection_dropped_after_sending_is_ambiguous():
    aborted = ProtocolError(
        "Connection aborted.", RemoteDisconnected("Remote end closed connection without response")
    )
    client, _ = _client(error=requests.ConnectionError(aborted))
    assert client.transfer("W1", 1, reference="wd-1").status == TransferStatus.AMBIGUOUS

    reset = MaxRetryError(
        None, "/api/transfers", reason=ProtocolError("Connection aborted.", ConnectionResetError(104, "reset"))
    )
    client, _ = _client(error=requests.ConnectionError(reset))
    assert client.transfer("W1", 1, reference="wd-1").status == TransferStatus.AMBIGUOUS


def test_connection_error_without_a_cause_is_ambiguous():
    client, _ = _client(error=requests.ConnectionError("connection broke"))
    assert client.transfer("W1", 1, reference="wd-1").status == TransferStatus.AMBIGUOUS


def test_unconfigured_service_never_sends():
    session = mock.Mock()
    client = HttpTransferClient(None, session=session)

    assert client.transfer("W1", 1, reference="wd-1").status == TransferStatus.FAILURE
    session.post.assert_not_called()
