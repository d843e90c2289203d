import base64
import unittest

from starlette.applications import Starlette
from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from observability.tracing.request_context import (
    basic_auth_user,
    canonical_header_key,
    client_ip,
    generate_token,
    remote_addr,
    request_id,
    request_uri,
    resolve_route,
    unique_headers,
)


def make_scope(path="/", method="GET", headers=None, query=b"", client=("10.0.0.5", 4321), app=None):
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": query,
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or [])],
        "client": client,
        "server": ("testserver", 80),
        "scheme": "http",
    }
    if app is not None:
        scope["app"] = app
    return scope


def make_request(**kwargs):
    return Request(make_scope(**kwargs))


async def endpoint(request):
    return PlainTextResponse("ok")


class TestHeaders(unittest.TestCase):
    def test_canonical_header_key(self):
        self.assertEqual(canonical_header_key("content-type"), "Content-Type")
        self.assertEqual(canonical_header_key("testHeader"), "Testheader")
        self.assertEqual(canonical_header_key("x-request-id"), "X-Request-Id")

    def test_unique_headers_first_value_in_order(self):
        headers = Headers(raw=[
            (b"accept", b"text/plain"),
            (b"x-multi", b"one"),
            (b"x-multi", b"two"),
        ])
        self.assertEqual(
            list(unique_headers(headers)),
            [("Accept", "text/plain"), ("X-Multi", "one")],
        )


class TestClientAddress(unittest.TestCase):
    def test_client_ip_from_peer(self):
        self.assertEqual(client_ip(make_request()), "10.0.0.5")

    def test_client_ip_prefers_forwarded_for(self):
        request = make_request(headers=[("X-Forwarded-For", " 203.0.113.7 , 10.0.0.1")])
        self.assertEqual(client_ip(request), "203.0.113.7")

    def test_client_ip_falls_back_to_real_ip(self):
        request = make_request(headers=[("X-Real-IP", "198.51.100.2")])
        self.assertEqual(client_ip(request), "198.51.100.2")

    def test_missing_client(self):
        request = make_request(client=None)
        self.assertEqual(client_ip(request), "")
        self.assertEqual(remote_addr(request), "")

    def test_remote_addr(self):
        self.assertEqual(remote_addr(make_request()), "10.0.0.5:4321")


class TestRequestUri(unittest.TestCase):
    def test_path_only(self):
        self.assertEqual(request_uri(make_scope(path="/user/1")), "/user/1")

    def test_with_query(self):
        self.assertEqual(request_uri(make_scope(path="/a", query=b"x=1&y=2")), "/a?x=1&y=2")

    def test_without_raw_path(self):
        scope = make_scope(path="/plain")
        del scope["raw_path"]
        self.assertEqual(request_uri(scope), "/plain")


class TestResolveRoute(unittest.TestCase):
    def setUp(self):
        self.app = Starlette(routes=[
            Route("/user/{id}", endpoint, methods=["GET"]),
            Route("/files/{name}/{rev:int}", endpoint, methods=["GET"]),
        ])

    def test_full_match(self):
        template, params = resolve_route(make_scope(path="/user/42", app=self.app))
        self.assertEqual(template, "/user/{id}")
        self.assertEqual(params, {"id": "42"})

    def test_converted_params_are_strings(self):
        template, params = resolve_route(make_scope(path="/files/report/3", app=self.app))
        self.assertEqual(template, "/files/{name}/{rev:int}")
        self.assertEqual(params, {"name": "report", "rev": "3"})

    def test_method_mismatch_uses_partial_match(self):
        template, _ = resolve_route(make_scope(path="/user/42", method="DELETE", app=self.app))
        self.assertEqual(template, "/user/{id}")

    def test_no_match(self):
        self.assertEqual(resolve_route(make_scope(path="/nope", app=self.app)), ("", {}))

    def test_no_app(self):
        self.assertEqual(resolve_route(make_scope(path="/user/42")), ("", {}))


class TestBasicAuth(unittest.TestCase):
    def auth_request(self, value):
        return make_request(headers=[("Authorization", value)])

    def test_valid_credentials(self):
        token = base64.b64encode(b"alice:secret").decode()
        self.assertEqual(basic_auth_user(self.auth_request(f"Basic {token}")), "alice")

    def test_scheme_is_case_insensitive(self):
        token = base64.b64encode(b"bob:").decode()
        self.assertEqual(basic_auth_user(self.auth_request(f"basic {token}")), "bob")

    def test_missing_header(self):
        self.assertIsNone(basic_auth_user(make_request()))

    def test_other_scheme(self):
        self.assertIsNone(basic_auth_user(self.auth_request("Bearer abc")))

    def test_malformed_base64(self):
        self.assertIsNone(basic_auth_user(self.auth_request("Basic !!!")))

    def test_missing_colon(self):
        token = base64.b64encode(b"alice").decode()
        self.assertIsNone(basic_auth_user(self.auth_request(f"Basic {token}")))


class TestRequestId(unittest.TestCase):
    def test_generate_token(self):
        for _ in range(10):
            token = generate_token()
            self.assertEqual(len(token), 32)
            int(token, 16)

    def test_from_request_header(self):
        headers = Headers(raw=[(b"x-request-id", b"test")])
        self.assertEqual(request_id(headers), "test")

    def test_from_response_header(self):
        response_headers = Headers(raw=[(b"x-request-id", b"from-response")])
        self.assertEqual(request_id(Headers(), response_headers), "from-response")

    def test_generated_when_absent(self):
        self.assertEqual(len(request_id(Headers(), Headers())), 32)


if __name__ == "__main__":
    unittest.main()
