"""Unit tests for hsdp.core.response envelope decoding."""
import pytest
import requests

from hsdp.core.exceptions import APIStatusError, DecodeError, PostCreateInvariantError
from hsdp.core.response import Response, check_response, decode_bundle, decode_resource, id_from_location
from hsdp.iam.clients import ApplicationClient
from hsdp.notification.producers import Producer

from tests.conftest import StubAdapter

URL = "https://idm.test/authorize/identity/Client"


def make_response(status, body=None, headers=None, method="GET", url=URL):
    request = requests.Request(method, url).prepare()
    return Response(StubAdapter.build_response(request, status, body, headers))


def _client_entry(client_id="demo-client"):
    return {
        "id": f"id-{client_id}",
        "clientId": client_id,
        "name": "Demo client",
        "applicationId": "app-1",
        "globalReferenceId": "ref-001",
        "scopes": ["mail", "sn"],
        "defaultScopes": ["sn"],
        "realms": ["realm-1"],
        "meta": {"versionId": "1", "lastModified": "2024-01-01T00:00:00Z"},
    }


# ---------------------------------------------------------------------------
# Status checking
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("status", [200, 201, 202, 204, 207, 304])
def test_success_statuses_pass(status):
    resp = make_response(status)
    assert check_response(resp) is resp


def test_error_status_carries_body():
    resp = make_response(400, {"issue": [{"diagnostics": "bad name"}]}, method="POST")

    with pytest.raises(APIStatusError) as excinfo:
        check_response(resp)

    err = excinfo.value
    assert err.status_code == 400
    assert err.method == "POST"
    assert err.url == URL
    assert "bad name" in err.body
    assert str(err).startswith(f"POST {URL}: StatusCode 400, Body: ")


def test_error_status_with_empty_body():
    with pytest.raises(APIStatusError) as excinfo:
        check_response(make_response(500))
    assert excinfo.value.body == "empty"
    assert str(excinfo.value).endswith("Body: empty")


# ---------------------------------------------------------------------------
# Single resources
# ---------------------------------------------------------------------------

def test_decode_resource():
    client = decode_resource(make_response(200, _client_entry()), ApplicationClient)
    assert client.client_id == "demo-client"
    assert client.meta.version_id == "1"


def test_decode_resource_invalid_json():
    with pytest.raises(DecodeError):
        decode_resource(make_response(200, "{not json"), ApplicationClient)


def test_decode_resource_non_object():
    with pytest.raises(DecodeError):
        decode_resource(make_response(200, ["a", "b"]), ApplicationClient)


# ---------------------------------------------------------------------------
# Bundles
# ---------------------------------------------------------------------------

def test_decode_bundle_of_wrapped_entries():
    body = {
        "total": 2,
        "entry": [{"resource": _client_entry("client-one")}, {"resource": _client_entry("client-two")}],
    }
    bundle = decode_bundle(make_response(200, body), ApplicationClient)

    assert bundle.total == 2
    assert [c.client_id for c in bundle.entries] == ["client-one", "client-two"]
    assert not bundle.empty


def test_decode_bundle_of_bare_entries():
    body = {"total": 1, "entry": [_client_entry()]}
    bundle = decode_bundle(make_response(200, body), ApplicationClient)
    assert bundle.entries[0].id == "id-demo-client"


def test_decode_bundle_total_zero_is_empty_not_error():
    bundle = decode_bundle(make_response(200, {"total": 0}), ApplicationClient)
    assert bundle.empty
    assert bundle.entries == []


def test_decode_bundle_no_content():
    assert decode_bundle(make_response(204)).empty


def test_decode_bundle_without_class_returns_dicts():
    body = {"total": 1, "entry": [{"resource": {"resourceType": "Patient", "id": "p1"}}]}
    assert decode_bundle(make_response(200, body)).entries == [{"resourceType": "Patient", "id": "p1"}]


def test_decode_bundle_fails_on_one_bad_entry():
    body = {"total": 2, "entry": [{"resource": _client_entry()}, {"resource": "not-an-object"}]}
    with pytest.raises(DecodeError) as excinfo:
        decode_bundle(make_response(200, body), ApplicationClient)
    assert "entry[1]" in str(excinfo.value)


def test_decode_bundle_entry_of_wrong_shape():
    body = {"total": 1, "entry": [{"resource": {"clientId": "x", "scopes": "mail"}}]}
    with pytest.raises(DecodeError):
        decode_bundle(make_response(200, body), ApplicationClient)


def test_decode_bundle_rejects_non_object_payload():
    with pytest.raises(DecodeError):
        decode_bundle(make_response(200, [1, 2]), Producer)


# ---------------------------------------------------------------------------
# Location header
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "location,expected",
    [
        ("https://idm.test/authorize/identity/Client/abc-123", "abc-123"),
        ("/authorize/identity/Client/abc-123/", "abc-123"),
        ("https://cdr.test/store/fhir/org/Patient/p1/_history/2", "p1"),
    ],
)
def test_id_from_location(location, expected):
    resp = make_response(201, headers={"Location": location}, method="POST")
    assert id_from_location(resp) == expected


def test_id_from_location_missing_header():
    with pytest.raises(PostCreateInvariantError):
        id_from_location(make_response(201, method="POST"))


def test_id_from_location_operation_segment():
    resp = make_response(201, headers={"Location": "https://idm.test/authorize/identity/Client/$scopes"})
    with pytest.raises(PostCreateInvariantError):
        id_from_location(resp)
