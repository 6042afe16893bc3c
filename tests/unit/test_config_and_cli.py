"""Unit tests for settings validation, logging bootstrap and the CLI entry point."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import ValidationError

from knowledge_engine import cli
from knowledge_engine.core.config import Settings
from knowledge_engine.core.logging_setup import is_local_environment
from knowledge_engine.models.schemas import (
    Category,
    FallbackOutcome,
    IntentAnalysis,
    KnowledgeResult,
    ResultType,
    SourceResult,
)


def test_settings_defaults() -> None:
    cfg = Settings(_env_file=None)

    assert cfg.ORCHESTRATOR_BUDGET == 6.0
    assert cfg.FALLBACK_MIN_CONFIDENCE == 0.65
    assert cfg.DEFAULT_WEATHER_LOCATION == "New York"


@pytest.mark.parametrize(
    "overrides",
    [
        {"ORCHESTRATOR_BUDGET": 0},
        {"FALLBACK_PROBE_TIMEOUT": 500},
        {"HTTP_MAX_ATTEMPTS": 0},
        {"CACHE_TTL_WEATHER": 0},
        {"CACHE_MAX_ENTRIES": 5},
        {"FALLBACK_MIN_CONFIDENCE": 1.5},
    ],
)
def test_settings_reject_out_of_range_values(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ORCHESTRATOR_BUDGET", "2.5")

    assert Settings(_env_file=None).ORCHESTRATOR_BUDGET == 2.5


@pytest.mark.parametrize(
    ("environment", "local"),
    [("local", True), ("DEV", True), ("", True), ("production", False), ("staging", False)],
)
def test_local_environment_detection(environment: str, local: bool) -> None:
    assert is_local_environment(environment) is local


def test_parser_rejects_conflicting_modes() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["--analyze-only", "--fallback-only", "x"])


def test_cli_analyze_only_prints_analysis(capsys: pytest.CaptureFixture[str]) -> None:
    with patch.object(cli, "configure_logging"):
        assert cli.main(["--analyze-only", "convert 100 usd to eur"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert "currency" in payload["categories"]
    assert payload["currency_from"] == "USD"
    assert payload["currency_amount"] == 100


def test_cli_query_runs_service_and_closes_it(capsys: pytest.CaptureFixture[str]) -> None:
    """The service is started, queried with the requested budget and always closed."""
    calc = SourceResult(
        type=ResultType.LIVE_DATA, content={"formatted": "4"}, confidence=1.0, source="Calculator"
    )
    service = MagicMock()
    service.start = AsyncMock()
    service.aclose = AsyncMock()
    service.query = AsyncMock(
        return_value=KnowledgeResult(
            query="2 + 2",
            analysis=IntentAnalysis(query="2 + 2", categories=frozenset({Category.MATH})),
            results={Category.MATH: calc},
        )
    )

    with (
        patch.object(cli, "configure_logging"),
        patch.object(cli, "build_knowledge_service", return_value=service),
    ):
        cli.main(["--budget", "1.5", "2 + 2"])

    service.query.assert_awaited_once_with("2 + 2", budget=1.5)
    service.start.assert_awaited_once()
    service.aclose.assert_awaited_once()
    payload = json.loads(capsys.readouterr().out)
    assert payload["sources_used"] == ["Calculator"]


def test_cli_fallback_only(capsys: pytest.CaptureFixture[str]) -> None:
    service = MagicMock()
    service.start = AsyncMock()
    service.aclose = AsyncMock()
    service.find_best_answer = AsyncMock(
        return_value=FallbackOutcome(found=False, message="No results found")
    )

    with (
        patch.object(cli, "configure_logging"),
        patch.object(cli, "build_knowledge_service", return_value=service),
    ):
        cli.main(["--fallback-only", "zzqx"])

    assert json.loads(capsys.readouterr().out)["found"] is False
    service.aclose.assert_awaited_once()
