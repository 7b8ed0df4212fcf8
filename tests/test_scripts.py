"""Tests for the run_fx / run_cex command-line entry points and their exit codes."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

import orjson
import pytest

from railcost.assembler import path_failure_record, quote_failure_record, summarize
from railcost.connectors.kraken import FeeLookupError, PairDiscoveryError
from railcost.connectors.wise import ProfileResolutionError
from railcost.contracts.records import CostRecord, PathCostRecord, RecordStatus
from railcost.pipeline import CexRunResult, FxRunResult
from scripts import run_cex, run_fx

TS = 1_700_000_000


class FakeClient:
    """Stands in for a REST client used as an async context manager."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        pass

    async def __aenter__(self) -> FakeClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None


def make_runner(outcome: Any) -> type:
    """Runner class whose run() returns outcome, or raises it if it is an exception."""

    class FakeRunner:
        def __init__(self, *args: Any, **kwargs: Any) -> None:
            pass

        async def run(self) -> Any:
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

    return FakeRunner


def fx_result(*statuses: RecordStatus) -> FxRunResult:
    records = [
        CostRecord(ts=TS, src="USD", tgt="EUR", mode="BALANCE", amount=10.0 * (i + 1), status=status)
        for i, status in enumerate(statuses)
    ]
    return FxRunResult(records=records, summary=summarize(records))


def cex_result(*statuses: RecordStatus) -> CexRunResult:
    records = [
        PathCostRecord(
            ts="2025-01-02T00:00:00+00:00",
            venue="kraken",
            path="USD->USDC->GBP",
            src="USD",
            tgt="GBP",
            amount=1000.0 * (i + 1),
            status=status,
        )
        for i, status in enumerate(statuses)
    ]
    return CexRunResult(records=records, summary=summarize(records), pairs=("USDCUSD", "USDCGBP"), taker_pcts=None)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("WISE_TOKEN", "WISE_PROFILE_ID", "FX_REQ_DELAY_MS", "USD_ANCHORS", "CEX_REQ_DELAY_MS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fx_args(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> argparse.Namespace:
    monkeypatch.setenv("WISE_TOKEN", "test-token")
    monkeypatch.setattr(run_fx, "WiseRestClient", FakeClient)
    return argparse.Namespace(
        pairs="USD:EUR",
        pay_outs="BALANCE",
        anchors="10,100",
        reference="USD",
        fixed_amounts=True,
        no_profile=False,
        round_digits=None,
        output=tmp_path / "fx.json",
        history_dir=tmp_path / "history",
        metrics_textfile=tmp_path / "fx.prom",
    )


@pytest.fixture
def cex_args(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> argparse.Namespace:
    monkeypatch.setattr(run_cex, "KrakenRestClient", FakeClient)
    return argparse.Namespace(
        path="USD,USDC,GBP",
        anchors="1000,10000",
        no_fees=True,
        allow_missing_fees=False,
        round_digits=None,
        output=tmp_path / "cex.json",
        history_dir=None,
        metrics_textfile=None,
    )


class TestRunFx:
    """Tests for scripts/run_fx.py run()."""

    @pytest.mark.asyncio
    async def test_ok_writes_outputs(self, fx_args: argparse.Namespace, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(run_fx, "FxRunner", make_runner(fx_result(RecordStatus.OK, RecordStatus.ERROR)))

        assert await run_fx.run(fx_args) == 0

        records = orjson.loads(fx_args.output.read_bytes())
        assert [r["status"] for r in records] == ["ok", "error"]
        assert len(list(fx_args.history_dir.glob("*.jsonl"))) == 1
        assert fx_args.metrics_textfile.exists()

    @pytest.mark.asyncio
    async def test_no_valid_records(self, fx_args: argparse.Namespace, monkeypatch: pytest.MonkeyPatch) -> None:
        """A completed run with only failures still writes its records."""
        records = [quote_failure_record(src="USD", tgt="EUR", mode="BALANCE", amount=10.0, ts=TS, error="x")]
        monkeypatch.setattr(run_fx, "FxRunner", make_runner(FxRunResult(records=records, summary=summarize(records))))

        assert await run_fx.run(fx_args) == 2
        assert len(orjson.loads(fx_args.output.read_bytes())) == 1

    @pytest.mark.asyncio
    async def test_incomplete_only_is_not_valid(
        self, fx_args: argparse.Namespace, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(run_fx, "FxRunner", make_runner(fx_result(RecordStatus.INCOMPLETE)))
        assert await run_fx.run(fx_args) == 2

    @pytest.mark.asyncio
    async def test_profile_resolution_fatal(
        self, fx_args: argparse.Namespace, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(run_fx, "FxRunner", make_runner(ProfileResolutionError("no usable profile")))

        assert await run_fx.run(fx_args) == 1
        assert not fx_args.output.exists()

    @pytest.mark.asyncio
    async def test_missing_token_fatal(self, fx_args: argparse.Namespace, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("WISE_TOKEN")
        assert await run_fx.run(fx_args) == 1

    @pytest.mark.asyncio
    async def test_bad_pairs_fatal(self, fx_args: argparse.Namespace) -> None:
        fx_args.pairs = "USDEUR"
        assert await run_fx.run(fx_args) == 1


class TestRunCex:
    """Tests for scripts/run_cex.py run()."""

    @pytest.mark.asyncio
    async def test_ok(self, cex_args: argparse.Namespace, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(run_cex, "CexRunner", make_runner(cex_result(RecordStatus.OK, RecordStatus.OK)))

        assert await run_cex.run(cex_args) == 0
        assert len(orjson.loads(cex_args.output.read_bytes())) == 2

    @pytest.mark.asyncio
    async def test_no_valid_records(self, cex_args: argparse.Namespace, monkeypatch: pytest.MonkeyPatch) -> None:
        record = path_failure_record(
            ts="t", venue="kraken", path="USD->USDC->GBP", src="USD", tgt="GBP", amount=1000.0, error="empty_book"
        )
        result = CexRunResult(records=[record], summary=summarize([record]), pairs=(), taker_pcts=None)
        monkeypatch.setattr(run_cex, "CexRunner", make_runner(result))

        assert await run_cex.run(cex_args) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [PairDiscoveryError("No kraken pair for hop USD->USDC"), FeeLookupError("no credentials")],
    )
    async def test_setup_errors_fatal(
        self, cex_args: argparse.Namespace, monkeypatch: pytest.MonkeyPatch, error: Exception
    ) -> None:
        monkeypatch.setattr(run_cex, "CexRunner", make_runner(error))

        assert await run_cex.run(cex_args) == 1
        assert not cex_args.output.exists()

    @pytest.mark.asyncio
    async def test_bad_path_fatal(self, cex_args: argparse.Namespace) -> None:
        cex_args.path = "USD"
        assert await run_cex.run(cex_args) == 1
