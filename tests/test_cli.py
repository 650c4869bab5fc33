"""Tests for the brew-resolver CLI."""

from typer.testing import CliRunner

from brew_resolver import __version__
from brew_resolver.cli import enrich
from brew_resolver.cli.main import app
from brew_resolver.core.enums import ProcessingStatus
from brew_resolver.core.errors import EnrichmentJobError
from brew_resolver.ingestion.orchestrator import EnrichmentResult

runner = CliRunner()


def test_version() -> None:
    """Test the version command."""
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_build_guesses_pairs_hints() -> None:
    """Test brewery hints are paired by position."""
    guesses = enrich._build_guesses(["Tipopils", "Ghisa"], ["Birrificio Italiano"])

    assert [g.brewery_name_hint for g in guesses] == ["Birrificio Italiano", None]
    assert [g.slot_index for g in guesses] == [0, 1]


class TestEnrichRun:
    """Tests for the enrich run command."""

    def test_sync_run(self, monkeypatch) -> None:
        """Test a synchronous run prints the outcome."""
        seen = {}

        async def fake_sync(review_id, guesses, progress=None, config=None):
            seen["review_id"] = review_id
            seen["guesses"] = guesses
            return EnrichmentResult(success=True, review_id=review_id, status=ProcessingStatus.COMPLETED)

        monkeypatch.setattr(enrich, "_ensure_review", lambda review_id, guesses: "r1")
        monkeypatch.setattr(enrich, "process_review_sync", fake_sync)

        result = runner.invoke(app, ["enrich", "run", "--beer", "Tipopils", "--brewery", "Birrificio Italiano", "--sync"])

        assert result.exit_code == 0
        assert "completed" in result.output
        assert seen["review_id"] == "r1"
        assert seen["guesses"][0].brewery_name_hint == "Birrificio Italiano"

    def test_sync_run_failure(self, monkeypatch) -> None:
        """Test a failed job exits with an error code."""

        async def fake_sync(review_id, guesses, progress=None, config=None):
            raise EnrichmentJobError("No bottle processed successfully")

        monkeypatch.setattr(enrich, "_ensure_review", lambda review_id, guesses: "r1")
        monkeypatch.setattr(enrich, "process_review_sync", fake_sync)

        result = runner.invoke(app, ["enrich", "run", "-b", "Mystery Ale", "--sync"])

        assert result.exit_code == 1
        assert "Enrichment failed" in result.output

    def test_beer_required(self) -> None:
        """Test at least one beer must be given."""
        result = runner.invoke(app, ["enrich", "run", "--sync"])

        assert result.exit_code != 0


class TestEnrichStatus:
    """Tests for the enrich status command."""

    def test_status(self, monkeypatch) -> None:
        """Test job state and progress are printed."""

        async def fake_queue(action, *args):
            assert action == "get_job_status"
            return {
                "job_id": args[0],
                "state": "active",
                "progress": {"percent": 40, "step": "web-search", "detail": None},
                "attempts": 1,
                "result": None,
                "error": None,
            }

        monkeypatch.setattr(enrich, "_with_queue", fake_queue)

        result = runner.invoke(app, ["enrich", "status", "review-r1"])

        assert result.exit_code == 0
        assert "active" in result.output
        assert "40%" in result.output

    def test_status_not_found(self, monkeypatch) -> None:
        """Test unknown jobs exit with an error code."""

        async def fake_queue(action, *args):
            return {"state": "not_found"}

        monkeypatch.setattr(enrich, "_with_queue", fake_queue)

        result = runner.invoke(app, ["enrich", "status", "review-x"])

        assert result.exit_code == 1
        assert "not found" in result.output
