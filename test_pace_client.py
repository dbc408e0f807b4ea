"""PACE client tests against a local aiohttp server."""

import asyncio
import json

import pytest
from aiohttp import web
from aiohttp import test_utils

from connectors import create_object_store, list_available_connectors
from connectors.erp_base import ID_DESCENDING
from connectors.pace.pace_auth import PaceCredentials, StaticCredentialsProvider
from connectors.pace.pace_client import (
    PaceApiClient,
    PaceApiError,
    PaceAuthenticationError,
    PaceJsonParseError,
    PaceLicenseExpiredError,
    PaceNotFoundError,
)


def run_against(handler, scenario):
    """Serve handler on a local port and run scenario(client)."""
    requests = []

    async def recording_handler(request):
        body = await request.read()
        requests.append({
            "path": request.path,
            "query": dict(request.query),
            "headers": dict(request.headers),
            "body": body,
        })
        return await handler(request)

    async def main():
        app = web.Application()
        app.router.add_route("POST", "/{tail:.*}", recording_handler)
        server = test_utils.TestServer(app)
        await server.start_server()
        try:
            credentials = PaceCredentials(
                url=str(server.make_url("/rpc/rest/services")),
                username="svc-shipments",
                password="secret",
            )
            async with PaceApiClient(StaticCredentialsProvider(credentials)) as client:
                return await scenario(client), requests
        finally:
            await server.close()

    return asyncio.run(main())


def respond(status=200, body=None, text=None):
    async def handler(request):
        return web.Response(
            status=status,
            text=text if text is not None else json.dumps(body),
            content_type="application/json",
        )
    return handler


class TestFindObjects:

    def test_request_shape(self):
        keys, requests = run_against(
            respond(body=[5003, "112823:02"]),
            lambda c: c.find_objects("JobShipment", "@job = '112823'", limit=500, sort=[ID_DESCENDING]),
        )

        assert keys == ["5003", "112823:02"]
        (request,) = requests
        assert request["path"] == "/rpc/rest/services/FindObjects/findSortAndLimit"
        assert request["query"] == {
            "type": "JobShipment",
            "xpath": "@job = '112823'",
            "offset": "0",
            "limit": "500",
        }
        assert json.loads(request["body"]) == [{"xpath": "@id", "descending": True}]
        assert request["headers"]["Authorization"].startswith("Basic ")

    def test_non_list_body(self):
        with pytest.raises(PaceApiError):
            run_against(respond(body={"oops": 1}), lambda c: c.find_objects("JobShipment", "@id > 0"))


class TestReadObject:

    def test_request_shape(self):
        body, requests = run_against(
            respond(body={"id": 5003, "job": "112823"}),
            lambda c: c.read_object("JobShipment", "5003"),
        )
        assert body == {"id": 5003, "job": "112823"}
        (request,) = requests
        assert request["path"] == "/rpc/rest/services/ReadObject/readJobShipment"
        assert request["query"] == {"primaryKey": "5003"}
        assert request["body"] == b""

    def test_invalid_json(self):
        with pytest.raises(PaceJsonParseError) as exc:
            run_against(respond(text="<html>oops</html>"), lambda c: c.read_object("JobShipment", "1"))
        assert exc.value.response_body == "<html>oops</html>"

    @pytest.mark.parametrize("status,error", [
        (401, PaceAuthenticationError),
        (403, PaceAuthenticationError),
        (404, PaceNotFoundError),
    ])
    def test_status_mapping(self, status, error):
        with pytest.raises(error) as exc:
            run_against(respond(status=status, body={}), lambda c: c.read_object("Job", "1"))
        assert exc.value.status_code == status

    def test_license_expired(self):
        with pytest.raises(PaceLicenseExpiredError):
            run_against(
                respond(status=500, body={"message": "System License Expired"}),
                lambda c: c.read_object("Job", "1"),
            )

    def test_server_error_keeps_body(self):
        body = '{"message": "ClassCastException on description"}'
        with pytest.raises(PaceApiError) as exc:
            run_against(respond(status=500, text=body), lambda c: c.read_object("JobShipment", "1"))
        assert exc.value.status_code == 500
        assert exc.value.response_body == body


class TestCreateObject:

    def test_request_shape(self):
        created, requests = run_against(
            respond(body={"id": 9001, "carton": 77}),
            lambda c: c.create_object("CartonContent", {"carton": 77, "quantity": 1, "job": "112823"}),
        )
        assert created["id"] == 9001
        (request,) = requests
        assert request["path"] == "/rpc/rest/services/CreateObject/createCartonContent"
        assert json.loads(request["body"]) == {"carton": 77, "quantity": 1, "job": "112823"}


class TestConnectorRegistry:

    def test_pace_registered(self):
        assert "pace" in list_available_connectors()

    def test_create(self, credentials_provider):
        store = create_object_store("pace", credentials_provider=credentials_provider)
        assert isinstance(store, PaceApiClient)

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_object_store("sap")
