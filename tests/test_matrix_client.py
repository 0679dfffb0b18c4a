"""
Unit tests for the httpx-backed Matrix client.
Focuses on request shapes and the mapping of HTTP failures to monitor errors.
"""

# pylint: disable=redefined-outer-name

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from room_monitor.core.errors import (
    AccessDeniedError,
    MalformedResponseError,
    NotifyError,
    TransientFetchError,
)
from room_monitor.services.matrix import HttpMatrixClient

HOMESERVER = "https://matrix.example.org"


@pytest.fixture
def matrix_client() -> HttpMatrixClient:
    return HttpMatrixClient(HOMESERVER + "/", "secret-token", timeout=5.0, page_limit=50)


def make_response(body=None, status_code=200, json_error=None) -> MagicMock:
    """Builds a fake httpx response."""
    response = MagicMock()
    response.status_code = status_code
    if status_code >= 400:
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            f"HTTP {status_code}", request=MagicMock(), response=response
        )
    if json_error:
        response.json.side_effect = json_error
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def mock_http():
    """
    Patches httpx.AsyncClient with an async context manager mock.
    Tests set mock_http.request.return_value / side_effect.
    """
    mock_http_client = AsyncMock()
    mock_http_client.__aenter__.return_value = mock_http_client
    mock_http_client.__aexit__.return_value = None
    mock_client_cls = MagicMock(return_value=mock_http_client)

    with patch("httpx.AsyncClient", new=mock_client_cls):
        mock_http_client.client_cls = mock_client_cls
        yield mock_http_client


@pytest.mark.asyncio
async def test_hierarchy_request_and_parsing(matrix_client, mock_http):
    mock_http.request.return_value = make_response(
        {
            "rooms": [
                {"room_id": "!space:hs", "room_type": "m.space", "name": "Space"},
                {
                    "room_id": "!r1:hs",
                    "name": "General",
                    "canonical_alias": "#general:hs",
                    "topic": "Hi",
                    "num_joined_members": 4,
                    "children_state": [],
                },
                {"name": "no id"},
                "not an object",
            ],
            "next_batch": "tok2",
        }
    )

    page = await matrix_client.get_hierarchy_page("!space:hs")

    mock_http.request.assert_called_once_with(
        "GET",
        f"{HOMESERVER}/_matrix/client/v1/rooms/%21space%3Ahs/hierarchy",
        params={"limit": 50, "max_depth": 1},
    )
    _, kwargs = mock_http.client_cls.call_args
    assert kwargs["headers"] == {"Authorization": "Bearer secret-token"}
    assert kwargs["timeout"] == 5.0

    assert [e.room_id for e in page.entries] == ["!space:hs", "!r1:hs"]
    assert page.entries[0].is_space
    assert page.entries[1].to_room().member_count == 4
    assert page.next_token == "tok2"


@pytest.mark.asyncio
async def test_hierarchy_passes_continuation_token(matrix_client, mock_http):
    mock_http.request.return_value = make_response({"rooms": []})

    page = await matrix_client.get_hierarchy_page("!space:hs", "tok2")

    _, kwargs = mock_http.request.call_args
    assert kwargs["params"]["from"] == "tok2"
    assert page.entries == []
    assert page.next_token is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code,expected",
    [
        (401, AccessDeniedError),
        (403, AccessDeniedError),
        (404, TransientFetchError),
        (429, TransientFetchError),
        (502, TransientFetchError),
    ],
)
async def test_hierarchy_status_errors(matrix_client, mock_http, status_code, expected):
    mock_http.request.return_value = make_response({"errcode": "M_X"}, status_code=status_code)

    with pytest.raises(expected):
        await matrix_client.get_hierarchy_page("!space:hs")


@pytest.mark.asyncio
async def test_hierarchy_transport_error(matrix_client, mock_http):
    mock_http.request.side_effect = httpx.ConnectError("Connection refused")

    with pytest.raises(TransientFetchError):
        await matrix_client.get_hierarchy_page("!space:hs")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        make_response(json_error=ValueError("Expecting value")),
        make_response(["a", "list"]),
        make_response({"rooms": {"not": "a list"}}),
    ],
)
async def test_hierarchy_malformed_body(matrix_client, mock_http, response):
    mock_http.request.return_value = response

    with pytest.raises(MalformedResponseError):
        await matrix_client.get_hierarchy_page("!space:hs")


@pytest.mark.asyncio
async def test_send_message(matrix_client, mock_http):
    mock_http.request.return_value = make_response({"event_id": "$abc"})
    content = {"msgtype": "m.text", "body": "hello"}

    event_id = await matrix_client.send_message("!notify:hs", content)

    assert event_id == "$abc"
    method, url = mock_http.request.call_args.args
    assert method == "PUT"
    assert url.startswith(f"{HOMESERVER}/_matrix/client/v3/rooms/%21notify%3Ahs/send/m.room.message/")
    assert mock_http.request.call_args.kwargs["json"] == content


@pytest.mark.asyncio
async def test_send_message_uses_fresh_transaction_ids(matrix_client, mock_http):
    mock_http.request.return_value = make_response({"event_id": "$abc"})

    await matrix_client.send_message("!notify:hs", {})
    await matrix_client.send_message("!notify:hs", {})

    urls = [c.args[1] for c in mock_http.request.call_args_list]
    assert urls[0] != urls[1]


@pytest.mark.asyncio
async def test_send_message_failure(matrix_client, mock_http):
    mock_http.request.return_value = make_response({}, status_code=500)

    with pytest.raises(NotifyError):
        await matrix_client.send_message("!notify:hs", {})


@pytest.mark.asyncio
async def test_send_message_forbidden(matrix_client, mock_http):
    mock_http.request.return_value = make_response({}, status_code=403)

    with pytest.raises(AccessDeniedError):
        await matrix_client.send_message("!notify:hs", {})


@pytest.mark.asyncio
async def test_whoami(matrix_client, mock_http):
    mock_http.request.return_value = make_response({"user_id": "@bot:hs"})

    assert await matrix_client.whoami() == "@bot:hs"
    mock_http.request.assert_called_once_with("GET", f"{HOMESERVER}/_matrix/client/v3/account/whoami")


@pytest.mark.asyncio
async def test_whoami_without_user_id(matrix_client, mock_http):
    mock_http.request.return_value = make_response({})

    with pytest.raises(MalformedResponseError):
        await matrix_client.whoami()
