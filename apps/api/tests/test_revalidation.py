import httpx

from app.services.revalidation import HttpRevalidator


def test_without_url_nothing_is_sent(monkeypatch):
    calls = []
    monkeypatch.setattr(httpx, "post", lambda *a, **kw: calls.append((a, kw)))

    HttpRevalidator(url=None).revalidate_path("/admin/cars")

    assert calls == []


def test_posts_path_and_secret(monkeypatch):
    calls = []

    def _post(url, **kwargs):
        calls.append((url, kwargs))
        return httpx.Response(200, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", _post)

    HttpRevalidator(url="http://web:3000/api/revalidate", secret="s3cret").revalidate_path("/admin/cars")

    url, kwargs = calls[0]
    assert url == "http://web:3000/api/revalidate"
    assert kwargs["json"] == {"path": "/admin/cars"}
    assert kwargs["headers"] == {"x-revalidate-secret": "s3cret"}


def test_transport_errors_are_not_raised(monkeypatch, caplog):
    def _post(url, **kwargs):
        raise httpx.ConnectError("connection refused", request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", _post)

    HttpRevalidator(url="http://web:3000/api/revalidate").revalidate_path("/admin/cars")

    assert "Revalidation of /admin/cars failed" in caplog.text


def test_error_status_is_logged_not_raised(monkeypatch, caplog):
    monkeypatch.setattr(
        httpx,
        "post",
        lambda url, **kw: httpx.Response(500, request=httpx.Request("POST", url)),
    )

    HttpRevalidator(url="http://web:3000/api/revalidate").revalidate_path("/admin/cars")

    assert "returned HTTP 500" in caplog.text
