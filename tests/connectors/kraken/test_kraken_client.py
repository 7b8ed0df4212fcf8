"""Tests for the Kraken order-book client and payload parsing."""

from __future__ import annotations

import base64
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from railcost.connectors.kraken import (
    FeeLookupError,
    KrakenConfig,
    KrakenRestClient,
    PairDiscoveryError,
    find_pairs_by_wsname,
    parse_depth,
    parse_taker_fees,
)
from railcost.contracts.book import BookStatus

SECRET = base64.b64encode(b"kraken-test-secret").decode()

ASSET_PAIRS: dict[str, Any] = {
    "error": [],
    "result": {
        "USDCUSD": {"altname": "USDCUSD", "wsname": "USDC/USD"},
        "USDCGBP": {"altname": "USDCGBP", "wsname": "USDC/GBP"},
        "XXBTZUSD": {"altname": "XBTUSD", "wsname": "XBT/USD"},
    },
}

DEPTH: dict[str, Any] = {
    "error": [],
    "result": {
        "USDCUSD": {
            "asks": [["1.0002", "5000.0", 1700000001], ["1.0001", "1000.0", 1700000000]],
            "bids": [["0.9999", "2000.0", 1700000000], ["0.9998", "8000.0", 1700000002]],
        }
    },
}


def make_response(status: int = 200, payload: Any = None) -> MagicMock:
    """Create mock aiohttp response usable as an async context manager."""
    response = MagicMock()
    response.status = status
    response.headers = {}
    response.json = AsyncMock(return_value=payload if payload is not None else {})
    response.text = AsyncMock(return_value="")
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=None)
    return response


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("KRAKEN_BASE", "KRAKEN_API_KEY", "KRAKEN_API_SECRET", "CEX_REQ_DELAY_MS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def client() -> KrakenRestClient:
    return KrakenRestClient(KrakenConfig(request_delay_ms=0))


@pytest.fixture
def authed_client() -> KrakenRestClient:
    return KrakenRestClient(KrakenConfig(api_key="key", api_secret=SECRET, request_delay_ms=0))


class TestKrakenConfig:
    """Tests for KrakenConfig."""

    def test_defaults(self) -> None:
        config = KrakenConfig()
        assert config.base_url == "https://api.kraken.com"
        assert config.request_delay_ms == 200
        assert not config.has_credentials

    def test_delay_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CEX_REQ_DELAY_MS", "500")
        assert KrakenConfig().request_delay_ms == 500

    def test_bad_delay(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CEX_REQ_DELAY_MS", "fast")
        with pytest.raises(ValueError, match="CEX_REQ_DELAY_MS"):
            KrakenConfig()

    def test_credentials(self) -> None:
        assert KrakenConfig(api_key="k", api_secret=SECRET).has_credentials


class TestParsing:
    """Tests for payload parsing helpers."""

    def test_find_pairs_by_wsname(self) -> None:
        found = find_pairs_by_wsname(ASSET_PAIRS["result"], ["USDC/USD", "USDC/GBP", "GBP/USDC"])
        assert found == {"USDC/USD": "USDCUSD", "USDC/GBP": "USDCGBP"}

    def test_parse_depth_sorts_levels(self) -> None:
        snapshot = parse_depth("USDCUSD", DEPTH["result"])
        assert snapshot.best_ask == 1.0001
        assert snapshot.best_bid == 0.9999
        assert snapshot.asks[1].volume == 5000.0
        assert snapshot.mid == pytest.approx(1.0)

    def test_parse_depth_uses_first_entry(self) -> None:
        """Kraken may key the book by its own pair name."""
        snapshot = parse_depth("USDCUSD", {"USDC/USD-alt": DEPTH["result"]["USDCUSD"]})
        assert snapshot.pair == "USDCUSD"
        assert snapshot.is_usable

    def test_parse_depth_empty(self) -> None:
        assert not parse_depth("X", {}).is_usable
        assert not parse_depth("X", None).is_usable

    def test_parse_depth_malformed(self) -> None:
        with pytest.raises(ValueError, match="malformed"):
            parse_depth("X", {"X": {"asks": [["abc", "1"]], "bids": []}})

    @pytest.mark.parametrize(
        "level",
        [{"p": 1}, {"0": "1.0", "1": "5"}, "1.0", None, ["1.0"], ["inf", "5"]],
    )
    def test_parse_depth_malformed_level_shapes(self, level: Any) -> None:
        with pytest.raises(ValueError, match="malformed"):
            parse_depth("X", {"X": {"asks": [level], "bids": [["1", "1", 0]]}})

    def test_parse_taker_fees(self) -> None:
        result = {"fees": {"USDCUSD": {"fee": "0.2000"}, "USDCGBP": {"fee": "0.2600"}}}
        assert parse_taker_fees(result, ["USDCUSD", "USDCGBP"]) == {"USDCUSD": 0.2, "USDCGBP": 0.26}

    def test_parse_taker_fees_partial(self) -> None:
        result = {"fees": {"USDCUSD": {"fee": "0.2"}, "USDCGBP": {}}}
        assert parse_taker_fees(result, ["USDCUSD", "USDCGBP"]) == {"USDCUSD": 0.2}

    def test_parse_taker_fees_missing(self) -> None:
        assert parse_taker_fees({}, ["USDCUSD"]) == {}


class TestDiscoverPairs:
    """Tests for discover_pairs."""

    @pytest.mark.asyncio
    async def test_discover(self, client: KrakenRestClient) -> None:
        with patch.object(aiohttp.ClientSession, "request", return_value=make_response(payload=ASSET_PAIRS)) as request:
            found = await client.discover_pairs(["USDC/USD", "USDC/GBP"])

        assert found == {"USDC/USD": "USDCUSD", "USDC/GBP": "USDCGBP"}
        method, url = request.call_args.args
        assert method == "GET"
        assert url == "https://api.kraken.com/0/public/AssetPairs"

        await client.close()

    @pytest.mark.asyncio
    async def test_missing_pair_fatal(self, client: KrakenRestClient) -> None:
        with (
            patch.object(aiohttp.ClientSession, "request", return_value=make_response(payload=ASSET_PAIRS)),
            pytest.raises(PairDiscoveryError, match="GBP/EUR"),
        ):
            await client.discover_pairs(["USDC/USD", "GBP/EUR"])

        await client.close()

    @pytest.mark.asyncio
    async def test_missing_pair_tolerated(self, client: KrakenRestClient) -> None:
        with patch.object(aiohttp.ClientSession, "request", return_value=make_response(payload=ASSET_PAIRS)):
            found = await client.discover_pairs(["USDC/USD", "GBP/USDC"], require_all=False)

        assert found == {"USDC/USD": "USDCUSD"}

        await client.close()

    @pytest.mark.asyncio
    async def test_lookup_error_fatal(self, client: KrakenRestClient) -> None:
        payload = {"error": ["EGeneral:Invalid arguments"], "result": {}}
        with (
            patch.object(aiohttp.ClientSession, "request", return_value=make_response(payload=payload)),
            pytest.raises(PairDiscoveryError, match="AssetPairs lookup failed"),
        ):
            await client.discover_pairs(["USDC/USD"])

        await client.close()


class TestFetchBook:
    """Tests for fetch_book."""

    @pytest.mark.asyncio
    async def test_ok(self, client: KrakenRestClient) -> None:
        with patch.object(aiohttp.ClientSession, "request", return_value=make_response(payload=DEPTH)) as request:
            result = await client.fetch_book("USDCUSD")

        assert result.status == BookStatus.OK
        assert result.snapshot is not None
        assert result.snapshot.best_ask == 1.0001
        assert request.call_args.kwargs["params"] == {"pair": "USDCUSD", "count": "1000"}

        await client.close()

    @pytest.mark.asyncio
    async def test_empty_side(self, client: KrakenRestClient) -> None:
        """A book with no bids is unusable."""
        payload = {"error": [], "result": {"USDCUSD": {"asks": [["1.0", "10", 1]], "bids": []}}}
        with patch.object(aiohttp.ClientSession, "request", return_value=make_response(payload=payload)):
            result = await client.fetch_book("USDCUSD")

        assert result.status == BookStatus.EMPTY_BOOK
        assert not result.is_ok

        await client.close()

    @pytest.mark.asyncio
    async def test_throttle_payload_retried(self, client: KrakenRestClient) -> None:
        """EAPI:Rate limit exceeded arrives with HTTP 200 and is backed off like a 429."""
        throttled = {"error": ["EAPI:Rate limit exceeded"], "result": {}}
        responses = [make_response(payload=throttled), make_response(payload=DEPTH)]

        with (
            patch.object(aiohttp.ClientSession, "request", side_effect=responses) as request,
            patch("railcost.connectors.base.asyncio.sleep", new_callable=AsyncMock) as sleep,
        ):
            result = await client.fetch_book("USDCUSD")

        assert result.status == BookStatus.OK
        assert request.call_count == 2
        sleep.assert_awaited_once_with(1.0)

        await client.close()

    @pytest.mark.asyncio
    async def test_throttle_exhausted(self, client: KrakenRestClient) -> None:
        throttled = {"error": ["EAPI:Rate limit exceeded"], "result": {}}
        responses = [make_response(payload=throttled) for _ in range(6)]

        with (
            patch.object(aiohttp.ClientSession, "request", side_effect=responses),
            patch("railcost.connectors.base.asyncio.sleep", new_callable=AsyncMock),
        ):
            result = await client.fetch_book("USDCUSD")

        assert result.status == BookStatus.RATE_LIMITED

        await client.close()

    @pytest.mark.asyncio
    async def test_provider_error(self, client: KrakenRestClient) -> None:
        payload = {"error": ["EQuery:Unknown asset pair"], "result": {}}
        with patch.object(aiohttp.ClientSession, "request", return_value=make_response(payload=payload)) as request:
            result = await client.fetch_book("NOPE")

        assert result.status == BookStatus.PROVIDER_ERROR
        assert "EQuery:Unknown asset pair" in (result.error or "")
        assert request.call_count == 1

        await client.close()

    @pytest.mark.asyncio
    async def test_dict_level_is_provider_error(self, client: KrakenRestClient) -> None:
        """A level shaped as an object is reported, not raised."""
        payload = {"error": [], "result": {"X": {"asks": [{"p": 1}], "bids": [["1", "1", 0]]}}}
        with patch.object(aiohttp.ClientSession, "request", return_value=make_response(payload=payload)):
            result = await client.fetch_book("X")

        assert result.status == BookStatus.PROVIDER_ERROR
        assert result.snapshot is None
        assert "malformed" in (result.error or "")

        await client.close()

    @pytest.mark.asyncio
    async def test_transient_error_retried(self, client: KrakenRestClient) -> None:
        busy = {"error": ["EService:Unavailable"], "result": {}}
        responses = [make_response(payload=busy), make_response(payload=DEPTH)]

        with (
            patch.object(aiohttp.ClientSession, "request", side_effect=responses),
            patch("railcost.connectors.base.asyncio.sleep", new_callable=AsyncMock),
        ):
            result = await client.fetch_book("USDCUSD")

        assert result.status == BookStatus.OK

        await client.close()


class TestTakerFees:
    """Tests for get_taker_fees."""

    @pytest.mark.asyncio
    async def test_requires_credentials(self, client: KrakenRestClient) -> None:
        with pytest.raises(FeeLookupError, match="KRAKEN_API_KEY"):
            await client.get_taker_fees(["USDCUSD"])

    @pytest.mark.asyncio
    async def test_signed_request(self, authed_client: KrakenRestClient) -> None:
        """Private call carries nonce first, API-Key and API-Sign."""
        payload = {"error": [], "result": {"fees": {"USDCUSD": {"fee": "0.2"}, "USDCGBP": {"fee": "0.2"}}}}

        with patch.object(aiohttp.ClientSession, "request", return_value=make_response(payload=payload)) as request:
            fees = await authed_client.get_taker_fees(["USDCUSD", "USDCGBP"])

        assert fees == {"USDCUSD": 0.2, "USDCGBP": 0.2}

        method, url = request.call_args.args
        kwargs = request.call_args.kwargs
        assert method == "POST"
        assert url == "https://api.kraken.com/0/private/TradeVolume"
        assert list(kwargs["data"]) == ["nonce", "pair", "fee-info"]
        assert kwargs["data"]["pair"] == "USDCUSD,USDCGBP"
        assert kwargs["headers"]["API-Key"] == "key"
        assert kwargs["headers"]["API-Sign"]

        await authed_client.close()

    @pytest.mark.asyncio
    async def test_missing_pair_fee(self, authed_client: KrakenRestClient) -> None:
        payload = {"error": [], "result": {"fees": {"USDCUSD": {"fee": "0.2"}}}}

        with (
            patch.object(aiohttp.ClientSession, "request", return_value=make_response(payload=payload)),
            pytest.raises(FeeLookupError, match="USDCGBP"),
        ):
            await authed_client.get_taker_fees(["USDCUSD", "USDCGBP"])

        await authed_client.close()

    @pytest.mark.asyncio
    async def test_request_failure(self, authed_client: KrakenRestClient) -> None:
        payload = {"error": ["EAPI:Invalid key"], "result": {}}

        with (
            patch.object(aiohttp.ClientSession, "request", return_value=make_response(payload=payload)),
            pytest.raises(FeeLookupError, match="TradeVolume failed"),
        ):
            await authed_client.get_taker_fees(["USDCUSD"])

        await authed_client.close()
