from starlette.requests import Request

from hireflow.middleware.request_context import extract_client_ip


def _request(headers: dict[str, str], peer: str = "10.0.0.1") -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/functions/save-analytics",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": (peer, 12345),
    }
    return Request(scope)


def test_first_forwarded_for_entry_wins(monkeypatch):
    monkeypatch.setattr("hireflow.middleware.request_context.settings.TRUST_X_FORWARDED_FOR", True)
    monkeypatch.setattr("hireflow.middleware.request_context.settings.TRUSTED_PROXY_IPS", [])

    request = _request({"X-Forwarded-For": "203.0.113.7, 70.41.3.18, 150.172.238.178"})

    assert extract_client_ip(request) == "203.0.113.7"


def test_cf_connecting_ip_used_without_forwarded_for(monkeypatch):
    monkeypatch.setattr("hireflow.middleware.request_context.settings.TRUST_X_FORWARDED_FOR", True)
    monkeypatch.setattr("hireflow.middleware.request_context.settings.TRUSTED_PROXY_IPS", [])

    assert extract_client_ip(_request({"CF-Connecting-IP": " 198.51.100.2 "})) == "198.51.100.2"


def test_peer_used_when_headers_are_not_trusted(monkeypatch):
    monkeypatch.setattr("hireflow.middleware.request_context.settings.TRUST_X_FORWARDED_FOR", False)

    assert extract_client_ip(_request({"X-Forwarded-For": "203.0.113.7"})) == "10.0.0.1"


def test_untrusted_proxy_is_ignored(monkeypatch):
    monkeypatch.setattr("hireflow.middleware.request_context.settings.TRUST_X_FORWARDED_FOR", True)
    monkeypatch.setattr("hireflow.middleware.request_context.settings.TRUSTED_PROXY_IPS", ["10.0.0.9"])

    assert extract_client_ip(_request({"X-Forwarded-For": "203.0.113.7"})) == "10.0.0.1"
