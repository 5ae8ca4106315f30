import gzip

import pytest

from formbody import decoders
from formbody.exceptions import (
    ImproperlyConfigured,
    PayloadTooLarge,
    TooManyParameters,
    UnsupportedCharset,
)
from formbody.middleware import ExceptionMiddleware, UrlencodedMiddleware
from formbody.middleware.urlencoded import UrlencodedConfig, get_charset
from formbody.requests import Request
from tests.helpers import Recorder, collect_send, echo_app, make_receive, make_scope

pytestmark = pytest.mark.anyio

FORM = "application/x-www-form-urlencoded"


def create_app(**options):
    options.setdefault("extended", True)
    return ExceptionMiddleware(UrlencodedMiddleware(echo_app, **options))


async def post(client_factory, app, content, content_type=FORM, **headers):
    headers = {key.replace("_", "-"): value for key, value in headers.items()}
    async with client_factory(app) as client:
        return await client.post(
            "/", content=content, headers={"content-type": content_type, **headers}
        )


async def test_extended_form(client_factory):
    response = await post(
        client_factory,
        create_app(),
        b"user[name]=ana&user[tags][]=a&user[tags][]=b&page=2",
    )

    assert response.status_code == 200
    assert response.json()["body"] == {
        "user": {"name": "ana", "tags": ["a", "b"]},
        "page": "2",
    }


async def test_simple_form(client_factory):
    response = await post(
        client_factory, create_app(extended=False), b"user[name]=ana&a=1&a=2"
    )

    assert response.status_code == 200
    assert response.json()["body"] == {"user[name]": "ana", "a": ["1", "2"]}


async def test_form_sent_by_client(client_factory):
    async with client_factory(create_app()) as client:
        response = await client.post("/", data={"name": "formbody", "lang": "python"})

    assert response.json()["body"] == {"name": "formbody", "lang": "python"}


async def test_raw_body_is_replayed_downstream(client_factory):
    response = await post(client_factory, create_app(), b"a=1&b=2")

    assert response.json()["raw"] == "a=1&b=2"


async def test_gzip_form(client_factory):
    response = await post(
        client_factory, create_app(), gzip.compress(b"a=1&b=2"), content_encoding="gzip"
    )

    assert response.status_code == 200
    assert response.json()["body"] == {"a": "1", "b": "2"}


async def test_gzip_form_without_inflate(client_factory):
    response = await post(
        client_factory,
        create_app(inflate=False),
        gzip.compress(b"a=1"),
        content_encoding="gzip",
    )

    assert response.status_code == 415
    assert response.json() == {
        "detail": "content encoding unsupported",
        "type": "encoding.unsupported",
    }


@pytest.mark.parametrize(
    "content_type",
    [
        FORM,
        f"{FORM}; charset=utf-8",
        f"{FORM}; charset=UTF-8",
        "Application/X-WWW-Form-Urlencoded; Charset=\"utf-8\"",
    ],
)
async def test_utf8_charsets(client_factory, content_type):
    response = await post(client_factory, create_app(), "name=Zoë".encode(), content_type)

    assert response.status_code == 200
    assert response.json()["body"] == {"name": "Zoë"}


async def test_unsupported_charset(client_factory):
    response = await post(
        client_factory, create_app(), b"a=1", f"{FORM}; charset=latin1"
    )

    assert response.status_code == 415
    assert response.json() == {
        "detail": 'unsupported charset "LATIN1"',
        "type": "charset.unsupported",
    }


async def test_unsupported_charset_raised():
    middleware = UrlencodedMiddleware(Recorder(), extended=True)
    scope = make_scope({"content-type": f"{FORM}; charset=latin1", "content-length": "3"})

    with pytest.raises(UnsupportedCharset) as raised:
        await middleware(scope, make_receive(b"a=1"), collect_send([]))

    assert raised.value.charset == "latin1"
    assert raised.value.status_code == 415
    assert str(raised.value) == '415: unsupported charset "LATIN1"'


async def test_charset_of_skipped_request_is_not_checked():
    app = Recorder()
    middleware = UrlencodedMiddleware(app, extended=True)
    scope = make_scope({"content-type": "text/plain; charset=latin1", "content-length": "3"})

    await middleware(scope, make_receive(b"a=1"), collect_send([]))

    assert app.called


async def test_too_many_parameters(client_factory):
    response = await post(client_factory, create_app(parameter_limit=2), b"a=1&b=2&c=3")

    assert response.status_code == 413
    assert response.json() == {"detail": "too many parameters", "type": "parameters.too.many"}


async def test_parameters_within_limit(client_factory):
    response = await post(client_factory, create_app(parameter_limit=3), b"a=1&b=2&c=3")

    assert response.status_code == 200
    assert response.json()["body"] == {"a": "1", "b": "2", "c": "3"}


async def test_body_too_large(client_factory):
    response = await post(client_factory, create_app(limit="1kb"), b"a=" + b"x" * 1024)

    assert response.status_code == 413
    assert response.json()["type"] == "entity.too.large"


async def test_body_too_large_is_never_counted(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("parameters must not be counted")

    monkeypatch.setattr(decoders, "parameter_count", fail)
    app = Recorder()
    middleware = UrlencodedMiddleware(app, extended=True, limit=10)
    body = b"&".join([b"a=1"] * 10)
    scope = make_scope({"content-type": FORM, "content-length": str(len(body))})

    with pytest.raises(PayloadTooLarge):
        await middleware(scope, make_receive(body), collect_send([]))

    assert not app.called


async def test_verify(client_factory):
    seen = []

    def verify(request, send, body, encoding):
        seen.append((body, encoding))

    response = await post(client_factory, create_app(verify=verify), b"a=1")

    assert response.status_code == 200
    assert seen == [(b"a=1", "utf-8")]


async def test_verify_rejects(client_factory):
    async def verify(request, send, body, encoding):
        if b"token=" not in body:
            raise ValueError("missing token")

    response = await post(client_factory, create_app(verify=verify), b"a=1")

    assert response.status_code == 403
    assert response.json() == {"detail": "missing token", "type": "entity.verify.failed"}


async def test_already_parsed_body_is_kept():
    app = Recorder()
    middleware = UrlencodedMiddleware(app, extended=True)
    scope = make_scope({"content-type": FORM, "content-length": "3"})
    scope["body"] = {"parsed": "elsewhere"}
    scope["_body_parsed"] = True

    await middleware(scope, make_receive(b"a=1"), collect_send([]))

    assert app.calls[0]["body"] == {"parsed": "elsewhere"}
    assert app.received[0]["body"] == b"a=1"


async def test_other_media_type_is_skipped():
    app = Recorder()
    middleware = UrlencodedMiddleware(app, extended=True)
    scope = make_scope({"content-type": "application/json", "content-length": "7"})

    await middleware(scope, make_receive(b'{"a":1}'), collect_send([]))

    assert app.called
    assert app.calls[0]["body"] == {}
    assert "_body_parsed" not in app.calls[0]
    assert app.received[0]["body"] == b'{"a":1}'


async def test_request_without_body_is_skipped():
    app = Recorder()
    middleware = UrlencodedMiddleware(app, extended=True)
    scope = make_scope({"content-type": FORM}, method="GET")

    await middleware(scope, make_receive(b""), collect_send([]))

    assert app.calls[0]["body"] == {}
    assert "_body_parsed" not in app.calls[0]


async def test_zero_length_body_is_parsed():
    app = Recorder()
    middleware = UrlencodedMiddleware(app, extended=True)
    scope = make_scope({"content-type": FORM, "content-length": "0"})

    await middleware(scope, make_receive(b""), collect_send([]))

    assert app.calls[0]["body"] == {}
    assert app.calls[0]["_body_parsed"] is True


async def test_failure_leaves_request_unparsed():
    app = Recorder()
    middleware = UrlencodedMiddleware(app, extended=True, parameter_limit=1)
    scope = make_scope({"content-type": FORM, "content-length": "7"})

    with pytest.raises(TooManyParameters):
        await middleware(scope, make_receive(b"a=1&b=2"), collect_send([]))

    assert not app.called
    assert scope["body"] == {}
    assert "_body_parsed" not in scope


async def test_type_as_list(client_factory):
    app = create_app(type=["text/plain", "urlencoded"])

    response = await post(client_factory, app, b"a=1", "text/plain")

    assert response.json()["body"] == {"a": "1"}


async def test_type_as_predicate(client_factory):
    def only_put(request: Request) -> bool:
        return request.method == "PUT"

    app = create_app(type=only_put)

    async with client_factory(app) as client:
        put = await client.put("/", content=b"a=1", headers={"content-type": "text/plain"})
        post_response = await client.post("/", content=b"a=1", headers={"content-type": FORM})

    assert put.json()["body"] == {"a": "1"}
    assert post_response.json()["body"] == {}


async def test_non_http_scopes_pass_through():
    app = Recorder()
    middleware = UrlencodedMiddleware(app, extended=True)
    scope = {"type": "lifespan"}

    await middleware(scope, make_receive(), collect_send([]))

    assert app.calls == [{"type": "lifespan"}]


def test_missing_extended_warns():
    with pytest.deprecated_call(match="undefined extended: provide extended option") as record:
        UrlencodedMiddleware(echo_app)

    assert record[0].filename == __file__


@pytest.mark.parametrize("extended", [True, False])
def test_explicit_extended_does_not_warn(extended, recwarn):
    UrlencodedMiddleware(echo_app, extended=extended)

    assert not [w for w in recwarn if issubclass(w.category, DeprecationWarning)]


def test_verify_must_be_callable():
    with pytest.raises(ImproperlyConfigured) as raised:
        UrlencodedMiddleware(echo_app, extended=True, verify="not callable")

    assert str(raised.value) == "option verify must be function"


@pytest.mark.parametrize("options", [{"limit": "lots"}, {"parameter_limit": 0}])
def test_invalid_options(options):
    with pytest.raises(ImproperlyConfigured):
        UrlencodedMiddleware(echo_app, extended=True, **options)


def test_config_is_private():
    middleware = UrlencodedMiddleware(echo_app, extended=True, limit="1mb")
    public = {name for name in vars(middleware) if not name.startswith("_")}

    assert public <= {"app"}
    assert not hasattr(middleware, "config")


def test_config_defaults():
    config = UrlencodedConfig.build(extended=False)

    assert config.limit == 100 * 1024
    assert config.inflate is True
    assert config.type == FORM
    assert config.verify is None
    assert config.extended is False
    assert config.parameter_limit == 1000
    assert config.allow_dots is False


def test_config_is_frozen():
    config = UrlencodedConfig.build(extended=True)

    with pytest.raises(AttributeError):
        config.limit = 1


@pytest.mark.parametrize(
    "content_type,expected",
    [
        (FORM, None),
        (f"{FORM}; charset=UTF-8", "utf-8"),
        (f"{FORM}; charset=Latin1", "latin1"),
    ],
)
def test_get_charset(content_type, expected):
    request = Request(make_scope({"content-type": content_type}))

    assert get_charset(request) == expected
