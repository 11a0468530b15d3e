import httpx
import pytest

from hunter_client import HunterClient, extract_domain


def client_with(handler, api_key="hunter-key"):
    return HunterClient(api_key=api_key, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_find_email_returns_candidate():
    def handler(request):
        assert request.url.path == "/v2/email-finder"
        assert request.url.params["domain"] == "acme.fr"
        assert request.url.params["first_name"] == "Jean"
        assert request.url.params["last_name"] == "Dupont"
        assert request.url.params["api_key"] == "hunter-key"
        return httpx.Response(200, json={"data": {"email": "jean.dupont@acme.fr", "score": 91}})

    candidate = await client_with(handler).find_email("acme.fr", "Jean", "Dupont")

    assert candidate.email == "jean.dupont@acme.fr"
    assert candidate.score == 91
    assert candidate.raw["email"] == "jean.dupont@acme.fr"


@pytest.mark.asyncio
async def test_no_email_in_response_returns_none():
    candidate = await client_with(
        lambda request: httpx.Response(200, json={"data": {"email": None}})
    ).find_email("acme.fr", "Jean", "Dupont")
    assert candidate is None


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403, 429, 502])
async def test_error_statuses_return_none(status):
    candidate = await client_with(lambda request: httpx.Response(status)).find_email("acme.fr", "Jean", "Dupont")
    assert candidate is None


@pytest.mark.asyncio
async def test_rate_limit_returns_none_without_retrying():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(429)

    assert await client_with(handler).find_email("acme.fr", "Jean", "Dupont") is None
    assert len(requests) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [[], ["jean@acme.fr"], {"data": ["jean@acme.fr"]}, {"data": "jean@acme.fr"}])
async def test_non_object_bodies_return_none(body):
    candidate = await client_with(lambda request: httpx.Response(200, json=body)).find_email("acme.fr", "Jean", "Dupont")
    assert candidate is None


@pytest.mark.asyncio
async def test_missing_key_skips_request():
    def handler(request):
        raise AssertionError("no request expected without a key")

    assert await client_with(handler, api_key="").find_email("acme.fr", "Jean", "Dupont") is None


@pytest.mark.parametrize("website,domain", [
    ("https://www.acme.fr/contact", "acme.fr"),
    ("http://acme.fr", "acme.fr"),
    ("www.acme.fr", "acme.fr"),
    ("acme.fr", "acme.fr"),
    ("https://shop.acme.fr", "shop.acme.fr"),
])
def test_extract_domain(website, domain):
    assert extract_domain(website) == domain
