import pytest

from conftest import ALLOWED_ORIGIN


def _call(http, method, args=None):
    body = {"method": method}
    if args is not None:
        body["args"] = args
    return http.post("/rpc", json=body)


# -------------------------------------------------------------------------
# Dispatch
# -------------------------------------------------------------------------

@pytest.mark.api
def test_call_simple_method(http):
    resp = _call(http, "add", [5, 3])
    assert resp.status_code == 200
    assert resp.get_json() == {"result": 8}


@pytest.mark.api
def test_call_method_with_string_parameter(http):
    resp = _call(http, "greet", ["World"])
    assert resp.get_json() == {"result": "Hello, World!"}


@pytest.mark.api
def test_async_method_is_awaited(http):
    resp = _call(http, "asyncOperation", [])
    assert resp.status_code == 200
    assert resp.get_json() == {"result": "completed"}


@pytest.mark.api
def test_missing_args_means_no_arguments(http):
    resp = _call(http, "asyncOperation")
    assert resp.get_json() == {"result": "completed"}


@pytest.mark.api
def test_unknown_method(http):
    resp = _call(http, "nonExistent", [])
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "unknown method"}


@pytest.mark.api
def test_method_error_is_reported(http):
    resp = _call(http, "throwError", [])
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Intentional error"}


@pytest.mark.api
def test_error_example_scenario(make_app):
    def throw_error():
        raise ValueError("boom")

    http = make_app({"throwError": throw_error}).test_client()
    resp = _call(http, "throwError", [])
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "boom"}


@pytest.mark.api
def test_wrong_arity_is_invalid_arguments(http):
    resp = _call(http, "add", [1])
    assert resp.status_code == 400
    assert resp.get_json()["error"].startswith("invalid arguments")


@pytest.mark.api
def test_argument_types_are_not_checked(http):
    resp = _call(http, "add", ["a", "b"])
    assert resp.get_json() == {"result": "ab"}


@pytest.mark.api
def test_non_callable_entry_fails_at_call_time(make_app):
    http = make_app({"answer": 42}).test_client()
    resp = _call(http, "answer", [])
    assert resp.status_code == 500
    assert "not callable" in resp.get_json()["error"]


@pytest.mark.api
def test_unserializable_result_is_a_handler_error(make_app):
    http = make_app({"obj": lambda: object()}).test_client()
    resp = _call(http, "obj", [])
    assert resp.status_code == 500
    assert "error" in resp.get_json()


@pytest.mark.api
def test_result_keeps_key_order(make_app):
    http = make_app({"ordered": lambda: {"b": 1, "a": 2}}).test_client()
    resp = _call(http, "ordered", [])
    assert resp.get_data(as_text=True).replace(" ", "").startswith('{"result":{"b":1,"a":2}')


# -------------------------------------------------------------------------
# Malformed requests
# -------------------------------------------------------------------------

@pytest.mark.api
def test_invalid_json(http):
    resp = http.post("/rpc", data="invalid json", content_type="application/json")
    assert resp.status_code == 400
    assert resp.get_data(as_text=True) == "Invalid JSON"


@pytest.mark.api
@pytest.mark.parametrize("content_type", ["text/plain", "application/x-www-form-urlencoded", None])
def test_content_type_must_be_json(http, content_type):
    kwargs = {"data": '{"method": "add", "args": [1, 2]}'}
    if content_type:
        kwargs["content_type"] = content_type
    resp = http.post("/rpc", **kwargs)
    assert resp.status_code == 400
    assert resp.get_data(as_text=True) == "Bad request"


@pytest.mark.api
def test_json_content_type_with_charset(http):
    resp = http.post(
        "/rpc",
        data='{"method": "add", "args": [2, 2]}',
        content_type="application/json; charset=utf-8",
    )
    assert resp.get_json() == {"result": 4}


@pytest.mark.api
@pytest.mark.parametrize(
    "body",
    [
        "[1, 2]",
        '{"args": [1, 2]}',
        '{"method": 3, "args": []}',
        '{"method": "add", "args": {"a": 1}}',
    ],
)
def test_malformed_payload(http, body):
    resp = http.post("/rpc", data=body, content_type="application/json")
    assert resp.status_code == 400


# -------------------------------------------------------------------------
# Discovery
# -------------------------------------------------------------------------

@pytest.mark.api
def test_method_list(http, test_api):
    resp = http.get("/rpc/methods")
    assert resp.status_code == 200
    methods = resp.get_json()["methods"]
    assert {m["name"] for m in methods} == set(test_api)
    for m in methods:
        assert m["type"] == "function"
        assert isinstance(m["params"], list)


@pytest.mark.api
def test_method_list_params_from_signature(http):
    methods = {m["name"]: m for m in http.get("/rpc/methods").get_json()["methods"]}
    assert [p["name"] for p in methods["add"]["params"]] == ["a", "b"]
    assert methods["asyncOperation"]["returnType"] == "str"


@pytest.mark.api
def test_empty_registry_method_list(make_app):
    http = make_app({}).test_client()
    assert http.get("/rpc/methods").get_json() == {"methods": []}


@pytest.mark.api
def test_non_callable_is_listed_as_unknown(make_app):
    http = make_app({"answer": 42}).test_client()
    assert http.get("/rpc/methods").get_json() == {"methods": [{"name": "answer", "type": "unknown", "params": []}]}


# -------------------------------------------------------------------------
# CORS
# -------------------------------------------------------------------------

@pytest.mark.api
def test_preflight_allowed_origin(http):
    resp = http.options("/rpc", headers={"Origin": ALLOWED_ORIGIN})
    assert resp.status_code == 204
    assert resp.headers["Access-Control-Allow-Origin"] == ALLOWED_ORIGIN
    assert resp.headers["Access-Control-Allow-Methods"] == "GET, POST, OPTIONS"
    assert resp.headers["Access-Control-Allow-Headers"] == "Content-Type"


@pytest.mark.api
@pytest.mark.parametrize("headers", [{"Origin": "http://evil.example"}, {}])
def test_preflight_other_origin_gets_empty_value(http, headers):
    resp = http.options("/rpc", headers=headers)
    assert resp.status_code == 204
    assert resp.headers["Access-Control-Allow-Origin"] == ""


@pytest.mark.api
def test_preflight_on_any_path(http):
    resp = http.options("/anything/else", headers={"Origin": ALLOWED_ORIGIN})
    assert resp.status_code == 204
    assert resp.headers["Access-Control-Allow-Origin"] == ALLOWED_ORIGIN


# -------------------------------------------------------------------------
# Static file and fallthrough
# -------------------------------------------------------------------------

@pytest.mark.api
def test_get_rpc_is_not_found(http):
    resp = http.get("/rpc")
    assert resp.status_code == 404
    assert resp.get_data(as_text=True) == "Not found"


@pytest.mark.api
@pytest.mark.parametrize("method, path", [("GET", "/"), ("GET", "/missing"), ("POST", "/other"), ("PUT", "/rpc")])
def test_not_found(http, method, path):
    resp = http.open(path, method=method)
    assert resp.status_code == 404
    assert resp.get_data(as_text=True) == "Not found"


@pytest.mark.api
@pytest.mark.parametrize("path", ["/", "/rpc/methods", "/rpc"])
def test_head_is_not_found(http, path):
    assert http.head(path).status_code == 404


@pytest.fixture
def page(tmp_path):
    path = tmp_path / "client.html"
    path.write_text("<h1>hello</h1>", encoding="utf-8")
    return path


@pytest.mark.api
@pytest.mark.parametrize("url", ["/", "/client.html"])
def test_static_file(make_app, test_api, page, url):
    http = make_app(test_api, static_file=str(page)).test_client()
    resp = http.get(url)
    assert resp.status_code == 200
    assert resp.mimetype == "text/html"
    assert resp.get_data(as_text=True) == "<h1>hello</h1>"
    resp.close()


@pytest.mark.api
def test_static_file_other_name_not_found(make_app, test_api, page):
    http = make_app(test_api, static_file=str(page)).test_client()
    assert http.get("/index.html").status_code == 404


@pytest.mark.api
def test_missing_static_file_is_not_found(make_app, test_api, tmp_path):
    http = make_app(test_api, static_file=str(tmp_path / "nope.html")).test_client()
    assert http.get("/").status_code == 404


# -------------------------------------------------------------------------
# Connect hook
# -------------------------------------------------------------------------

@pytest.mark.api
def test_connect_hook_runs_per_page_load(make_app, test_api, page):
    visits = []
    http = make_app(test_api, static_file=str(page), on_connect=lambda: visits.append(1)).test_client()
    http.get("/").close()
    http.get("/").close()
    _call(http, "add", [1, 2])
    assert len(visits) == 2


@pytest.mark.api
@pytest.mark.parametrize("url", ["/", "/client.html"])
def test_head_does_not_run_connect_hook(make_app, test_api, page, url):
    visits = []
    http = make_app(test_api, static_file=str(page), on_connect=lambda: visits.append(1)).test_client()
    assert http.head(url).status_code == 404
    assert visits == []


@pytest.mark.api
def test_async_connect_hook(make_app, test_api, page):
    visits = []

    async def on_connect():
        visits.append(1)

    http = make_app(test_api, static_file=str(page), on_connect=on_connect).test_client()
    http.get("/").close()
    assert visits == [1]


@pytest.mark.api
def test_failing_connect_hook_does_not_break_page(make_app, test_api, page):
    def on_connect():
        raise RuntimeError("redis down")

    http = make_app(test_api, static_file=str(page), on_connect=on_connect).test_client()
    resp = http.get("/")
    assert resp.status_code == 200
    resp.close()


# -------------------------------------------------------------------------
# Registry is fixed at construction
# -------------------------------------------------------------------------

@pytest.mark.api
def test_registry_is_read_only(make_app, test_api):
    app = make_app(test_api)
    registry = app.extensions["rpc_gateway"]["registry"]
    with pytest.raises(TypeError):
        registry.registry["sneaky"] = None
    test_api["late"] = lambda: 1
    assert _call(app.test_client(), "late", []).status_code == 404
