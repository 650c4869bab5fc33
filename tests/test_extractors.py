"""Tests for the HTML field extractors."""

from brew_resolver.core.enums import BrewerySize
from brew_resolver.ingestion import extractors
from brew_resolver.ingestion.extractors import normalize_phone, parse_page

BASE = "https://www.birrificio-italiano.it/"


def page(body: str, head: str = "") -> extractors.ParsedPage:
    return parse_page(f"<html><head>{head}</head><body>{body}</body></html>", BASE)


class TestParsePage:
    """Tests for page parsing."""

    def test_drops_scripts_and_collapses_whitespace(self) -> None:
        """Test script bodies are not part of the visible text."""
        parsed = page("<p>Birrificio\n\n  Italiano</p><script>var x = 'hidden';</script>")

        assert parsed.text == "Birrificio Italiano"
        assert parsed.lowered == "birrificio italiano"


class TestNavigation:
    """Tests for link ranking and logo discovery."""

    def test_extract_links_ranked(self) -> None:
        """Test beer pages rank above history pages, and junk is skipped."""
        parsed = page(
            '<a href="/news">News</a>'
            '<a href="/storia">La nostra storia</a>'
            '<a href="/birre">Le nostre birre</a>'
            '<a href="/privacy-policy">Privacy</a>'
            '<a href="/listino.pdf">Listino</a>'
            '<a href="https://other.example.com/birre">Altro</a>'
            '<a href="#top">Top</a>'
        )

        links = extractors.extract_links(parsed, BASE)

        assert links == [
            "https://www.birrificio-italiano.it/birre",
            "https://www.birrificio-italiano.it/storia",
            "https://www.birrificio-italiano.it/news",
        ]

    def test_link_priority(self) -> None:
        """Test priority levels."""
        assert extractors.link_priority("/contatti", "") == 3
        assert extractors.link_priority("/team", "") == 2
        assert extractors.link_priority("/eventi", "") == 1
        assert extractors.link_priority("/", "") == 0

    def test_logo_skips_inline_images(self) -> None:
        """Test data: logos are ignored and relative sources are resolved."""
        parsed = page('<img class="logo" src="data:image/png;base64,AAAA"><header><img src="/img/logo.png"></header>')

        assert extractors.extract_logo_url(parsed, BASE) == "https://www.birrificio-italiano.it/img/logo.png"

    def test_no_logo(self) -> None:
        """Test pages without images have no logo."""
        assert extractors.extract_logo_url(page("<p>niente</p>"), BASE) is None


class TestBreweryFields:
    """Tests for brewery field extraction."""

    def test_address_with_cap_and_province(self) -> None:
        """Test a full street address is found and scored."""
        parsed = page("<p>Sede: Via Monte Grappa 44, 22070 Lurago (CO)</p>")

        address, score = extractors.extract_address(parsed)

        assert address == "Via Monte Grappa 44, 22070 Lurago (CO)"
        assert score > 1.0

    def test_no_address(self) -> None:
        """Test pages without addresses."""
        assert extractors.extract_address(page("<p>Benvenuti</p>")) is None

    def test_email_prefers_info(self) -> None:
        """Test info@ wins over personal addresses and image names are ignored."""
        parsed = page('<p>Scrivi a mario@birrificio.it oppure info@birrificio.it</p><img src="logo@2x.png">')

        assert extractors.extract_email(parsed) == "info@birrificio.it"

    def test_pec(self) -> None:
        """Test certified email detection."""
        parsed = page("<p>PEC: birrificioitaliano@pec.it, info@birrificio.it</p>")

        assert extractors.extract_pec(parsed) == "birrificioitaliano@pec.it"

    def test_normalize_phone(self) -> None:
        """Test Italian phone normalization."""
        assert normalize_phone("+39 031 8928321") == "0318928321"
        assert normalize_phone("02-1234567") == "021234567"
        assert normalize_phone("12345") is None

    def test_phone(self) -> None:
        """Test labelled phone numbers are found."""
        assert extractors.extract_phone(page("<p>Tel: +39 031 8928321</p>")) == "0318928321"

    def test_fiscal_code(self) -> None:
        """Test VAT numbers with and without the IT prefix."""
        assert extractors.extract_fiscal_code(page("<p>P.IVA 01234567890</p>")) == "01234567890"
        assert extractors.extract_fiscal_code(page("<p>P. IVA: IT01234567890</p>")) == "01234567890"
        assert extractors.extract_fiscal_code(page("<p>Partita IVA in arrivo</p>")) is None

    def test_rea_code(self) -> None:
        """Test registry codes keep the province prefix."""
        assert extractors.extract_rea_code(page("<p>REA: CO-123456</p>")) == "CO-123456"

    def test_excise_code(self) -> None:
        """Test excise codes need a digit."""
        assert extractors.extract_excise_code(page("<p>Codice accise: IT00COA00123X</p>")) == "IT00COA00123X"
        assert extractors.extract_excise_code(page("<p>Accise: pagate regolarmente</p>")) is None

    def test_founding_year(self) -> None:
        """Test plausible founding years only."""
        assert extractors.extract_founding_year(page("<p>Fondato nel 1996 a Lurago</p>")) == 1996
        assert extractors.extract_founding_year(page("<p>Since 1750</p>")) is None

    def test_description_from_meta(self) -> None:
        """Test a long meta description is used."""
        meta = '<meta name="description" content="Birrificio artigianale lombardo, pionieri delle pils in Italia dal 1996.">'

        assert extractors.extract_description(page("<p>x</p>", head=meta)).startswith("Birrificio artigianale")

    def test_history_after_heading(self) -> None:
        """Test the paragraph following a history heading is returned."""
        history = "Il birrificio nasce nel 1996 da un gruppo di homebrewer appassionati che decidono di aprire un brewpub a Lurago Marinone."
        parsed = page(f"<h2>La nostra storia</h2><p>{history}</p>")

        assert extractors.extract_history(parsed) == history

    def test_size_and_production(self) -> None:
        """Test size from keywords or from the yearly volume."""
        assert extractors.extract_size_class(page("<p>Siamo un microbirrificio</p>")) == BrewerySize.MICRO.value

        parsed = page("<p>Una produzione di 5.000 ettolitri</p>")
        assert extractors.extract_production_volume(parsed) == "produzione di 5.000 ettolitri"
        assert extractors.extract_size_class(parsed) == BrewerySize.CRAFT.value

    def test_employees_and_master_brewer(self) -> None:
        """Test employee count and master brewer name."""
        parsed = page("<p>Siamo 12 dipendenti. Mastro birraio: Agostino Arioli.</p>")

        assert extractors.extract_employee_count(parsed) == 12
        assert extractors.extract_master_brewer(parsed) == "Agostino Arioli"

    def test_social_links(self) -> None:
        """Test the first link per network is kept."""
        parsed = page(
            '<a href="https://www.facebook.com/birrificioitaliano">fb</a>'
            '<a href="https://instagram.com/birrificioitaliano">ig</a>'
            '<a href="https://www.facebook.com/other">fb2</a>'
            '<a href="https://example.com/">x</a>'
        )

        links = extractors.extract_social_links(parsed)

        assert links.facebook == "https://www.facebook.com/birrificioitaliano"
        assert links.instagram == "https://instagram.com/birrificioitaliano"
        assert links.twitter is None
        assert extractors.extract_social_links(page("<p>none</p>")) is None

    def test_main_products(self) -> None:
        """Test styles in the text and beer-like list items are collected."""
        parsed = page(
            "<p>Le nostre birre: una Pils, una IPA e una Stout.</p>"
            "<ul><li>Tipopils</li><li>Birra di Natale</li><li>Secondo uno studio dell'OMS</li></ul>"
        )

        products = extractors.extract_main_products(parsed)

        assert products[:3] == ["STOUT", "PILS", "IPA"]
        assert "Birra di Natale" in products
        assert "Tipopils" not in products

    def test_awards(self) -> None:
        """Test award list items are collected."""
        parsed = page("<ul><li>Medaglia d'oro a Birra dell'Anno 2020</li><li>Contatti</li></ul>")

        assert extractors.extract_awards(parsed) == ["Medaglia d'oro a Birra dell'Anno 2020"]


class TestBeerFields:
    """Tests for beer field extraction."""

    def test_alcohol_content(self) -> None:
        """Test ABV with a decimal comma, and out-of-range values."""
        assert extractors.extract_alcohol_content(page("<p>Alc. 5,2% vol</p>")) == 5.2
        assert extractors.extract_alcohol_content(page("<p>Gradazione alcolica: 25%</p>")) is None

    def test_ibu(self) -> None:
        """Test bitterness units."""
        assert extractors.extract_ibu(page("<p>IBU: 35</p>")) == 35

    def test_style(self) -> None:
        """Test an explicit style label, then a known style name."""
        assert extractors.extract_style(page("<p>Stile: Pilsner.</p>")) == "Pilsner"
        assert extractors.extract_style(page("<p>Una ipa luppolata</p>")) == "IPA"

    def test_sub_style(self) -> None:
        """Test sub-styles keep IPA in capitals."""
        assert extractors.extract_sub_style(page("<p>Una double IPA americana</p>")) == "Double IPA"

    def test_volume(self) -> None:
        """Test bottle sizes."""
        assert extractors.extract_volume(page("<p>Bottiglia da 33 cl</p>")) == "33 cl"

    def test_ingredients(self) -> None:
        """Test an explicit ingredient list is split."""
        parsed = page("<p>Ingredienti: acqua, malto d'orzo, luppolo e lievito.</p>")

        assert extractors.extract_ingredients(parsed) == ["acqua", "malto d'orzo", "luppolo", "lievito"]

    def test_beer_description(self) -> None:
        """Test a paragraph mentioning the beer is used."""
        text = "Tipopils è la nostra pils non filtrata, secca e luppolata con luppoli tedeschi."
        parsed = page(f"<p>Altro testo</p><p>{text}</p>")

        assert extractors.extract_beer_description(parsed, "Tipopils") == text

    def test_tasting_notes(self) -> None:
        """Test tasting paragraphs become a summary."""
        text = "Al naso un profumo erbaceo e floreale, in bocca secca."
        notes = extractors.extract_tasting_notes(page(f"<p>{text}</p>"))

        assert notes.summary == text

    def test_price_and_availability(self) -> None:
        """Test price formatting and stock keywords."""
        parsed = page("<p>Prezzo: € 3,50 - Prodotto esaurito</p>")

        assert extractors.extract_price(parsed) == "€3,50"
        assert extractors.extract_availability(parsed) == "Esaurito"

    def test_nutritional_info(self) -> None:
        """Test nutrition facts are joined."""
        parsed = page("<p>Calorie: 43 per 100 ml, carboidrati: 3,1 g</p>")

        assert extractors.extract_nutritional_info(parsed) == "Calorie: 43, carboidrati: 3,1 g"
