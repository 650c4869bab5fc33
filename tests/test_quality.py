"""Tests for data quality scoring."""

from brew_resolver.core.schema import BreweryFacts
from brew_resolver.ingestion.config import QualityConfig
from brew_resolver.ingestion.quality import DataQualityScorer


class TestDataQualityScorer:
    """Tests for DataQualityScorer."""

    def test_no_data(self) -> None:
        """Test None scores zero and is never acceptable."""
        result = DataQualityScorer().score(None)

        assert result.score == 0
        assert result.is_acceptable is False
        assert "website" in result.missing_fields

    def test_name_only(self) -> None:
        """Test a bare name is not enough."""
        result = DataQualityScorer().score(BreweryFacts(name="Lambrate"))

        assert result.score == 20
        assert result.is_acceptable is False
        assert result.present_fields == ["name"]
        assert "below threshold" in result.reason

    def test_threshold_reached(self) -> None:
        """Test registry data without a website reaches the threshold."""
        facts = BreweryFacts(
            name="Birrificio Italiano",
            legal_address="Via Monte Grappa 44, 22070 Lurago (CO)",
            fiscal_code="01234567890",
            rea_code="CO-123456",
        )

        result = DataQualityScorer().score(facts)

        assert result.score == 65
        assert result.is_acceptable is True
        assert result.percentage == round(65 / 110 * 100, 1)

    def test_website_always_acceptable(self) -> None:
        """Test a website alone is accepted when the rule is enabled."""
        facts = BreweryFacts(name="Lambrate", website="https://www.birrificiolambrate.com")

        assert DataQualityScorer().score(facts).is_acceptable is True
        assert DataQualityScorer(QualityConfig(website_always_acceptable=False)).score(facts).is_acceptable is False

    def test_adding_fields_never_lowers_score(self) -> None:
        """Test the score grows with every populated field."""
        scorer = DataQualityScorer()
        facts = BreweryFacts(name="Lambrate")
        previous = scorer.score(facts).score

        for name, value in [("email", "info@lambrate.it"), ("phone", "0212345678"), ("website", "https://x.it")]:
            facts = facts.model_copy(update={name: value})
            current = scorer.score(facts).score
            assert current > previous
            previous = current

    def test_custom_weights(self) -> None:
        """Test configured weights drive the score."""
        config = QualityConfig(threshold=10, weights={"name": 10, "website": 90})

        result = DataQualityScorer(config).score(BreweryFacts(name="X"))

        assert result.score == 10
        assert result.is_acceptable is True
        assert result.to_dict()["missing_fields"] == ["website"]
