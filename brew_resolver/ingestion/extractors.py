"""
HTML Field Extractors
=====================

Small pure functions that mine one brewery or beer field each from a
parsed web page. None of them performs I/O; the site extractor fetches
pages and feeds them here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup

from brew_resolver.core.enums import BrewerySize
from brew_resolver.core.schema import SocialLinks, TastingNotes

_L = r"[^\W\d_]"  # any unicode letter
_NAME = rf"(?:{_L}|[\s.'’-]){{1,100}}?"
_CIVIC = r"\d+(?:[-/]\d+)?"
_STREET = r"(?:via|viale|piazza|corso|strada|contrada|località|localita|loc\.?)"

ADDRESS_PATTERNS = [
    # "Address: Via Ramella Germanin n.4 13900 Biella (BI)"
    re.compile(
        rf"address[\s:]+(?:via|viale|piazza|corso|strada)\s+{_NAME}\s*(?:n\.?\s*)?{_CIVIC}"
        rf"\s*\d{{5}}\s+{_L}+\s*\({_L}{{2}}\)",
        re.IGNORECASE,
    ),
    # "Pollein (AO) – Località L'Île-des-Lapins n. 11 – CAP 11020"
    re.compile(
        rf"{_L}(?:{_L}|\s){{0,40}}?\s*\((?-i:[A-Z]{{2}})\)\s*[–-]\s*(?:località|localita|loc\.?)\s+"
        rf"{_NAME}\s*(?:n\.\s*)?{_CIVIC}\s*[–-]\s*(?:cap\s*)?\d{{5}}",
        re.IGNORECASE,
    ),
    # Street + civic + CAP + city (+ province)
    re.compile(
        rf"{_STREET}\s+{_NAME}\s*(?:n\.?\s*)?{_CIVIC}\s*[,\s–-]*\d{{5}}\s+{_L}+"
        rf"(?:\s*\(?(?-i:[A-Z]{{2}})\)?(?!\w))?",
        re.IGNORECASE,
    ),
    # Street + civic + city (PROV), no CAP
    re.compile(
        rf"{_STREET}\s+{_NAME}\s*(?:n\.?\s*)?{_CIVIC}\s*[,\s–-]+{_L}+\s*\((?-i:[A-Z]{{2}})\)",
        re.IGNORECASE,
    ),
    # Minified markup: "via matteotti 14-22 28010 cavallirio (no)"
    re.compile(
        rf"(?:via|viale|piazza|corso|strada)\s+{_L}+\s+{_CIVIC}\s*(?:\d{{5}})?\s*{_L}+\s*\({_L}{{2}}\)",
        re.IGNORECASE,
    ),
]

PHONE_PATTERNS = [
    re.compile(r"(?:phone|tel|telefono)[\s.:]+\+?(?:39)?\s*\(?0?\)?\s*\d{2,4}[\s.-]?\d{5,8}", re.IGNORECASE),
    re.compile(r"\+39\s*\(?0?\)?\s*\d{2,4}[\s.-]?\d{5,8}"),
    re.compile(r"\b0\d{2,3}[\s.-]\d{5,8}\b"),
    re.compile(r"\b\d{3,4}[\s.-]\d{5,7}\b"),
]

EMAIL_RE = re.compile(r"[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}", re.IGNORECASE)
EXCLUDED_EMAIL_PARTS = ("example@", "test@", "admin@example", "@sentry", "wixpress.com", "@domain.")
IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg")

VAT_RE = re.compile(r"(?:p\.?\s*iva|partita\s+iva|codice\s+fiscale|c\.?\s*f\.?)[\s.:/]+(?:it)?\s*(\d{11})\b", re.IGNORECASE)
TAX_CODE_RE = re.compile(
    r"(?:codice\s+fiscale|c\.?\s*f\.?)[\s.:]+([A-Z]{6}\d{2}[A-Z]\d{2}[A-Z]\d{3}[A-Z])\b", re.IGNORECASE
)
REA_RE = re.compile(
    r"(?:\brea\b|r\.e\.a\.|registro\s+imprese)[\s.:n°]*((?-i:[A-Z]{2})[\s-]?\d{6,7})\b", re.IGNORECASE
)
EXCISE_RE = re.compile(r"(?:codice\s+)?accis[ei][\s.:]+([A-Z0-9]{2}[A-Z0-9-]{3,18})", re.IGNORECASE)
FOUNDING_RE = re.compile(
    r"(?:fondat[oa]|nat[oa]|nasce|since|dal|anno\s+di\s+fondazione)[\s:]+(?:nel\s+)?(\d{4})\b",
    re.IGNORECASE,
)
EMPLOYEE_RES = [
    re.compile(r"(?:dipendent[ei]|collaboratori)[\s:]+(\d{1,5})\b", re.IGNORECASE),
    re.compile(r"\b(\d{1,5})\s+(?:dipendenti|collaboratori)\b", re.IGNORECASE),
]
PRODUCTION_RES = [
    re.compile(r"(?:produzione|produciamo)[\s:]+(?:di\s+)?\d+[.,]?\d*\s*(?:ettolitri|hl|litri)", re.IGNORECASE),
    re.compile(r"\d+[.,]?\d*\s*(?:ettolitri|hl)[\s/]*(?:anno|annui|all'anno)", re.IGNORECASE),
]
MASTER_BREWER_RE = re.compile(
    r"(?:mastro\s+birraio|master\s+brewer|brewmaster|head\s+brewer)[\s:,]+"
    r"((?-i:[A-Z][a-zà-ù]+\s+[A-Z][a-zà-ù]+))",
    re.IGNORECASE,
)

DESCRIPTION_KEYWORDS = ("birrificio", "brewery", "storia", "tradizione", "produciamo", "nasce")
HISTORY_KEYWORDS = ("storia", "history", "nasce", "fondato", "tradizione", "origini")
AWARD_KEYWORDS = ("premio", "award", "medaglia", "riconoscimento", "vincitore", "winner")
TASTING_KEYWORDS = ("degustazione", "tasting", "sapore", "aroma", "gusto", "flavor", "profumo")

PRODUCT_STYLES = [
    "barley wine", "red ale", "pale ale", "pilsner", "quadrupel", "saison", "tripel", "dubbel",
    "weizen", "blanche", "porter", "stout", "lager", "pils", "bock", "amber", "bitter", "ipa", "ale",
]
BEER_STYLES = [
    "barley wine", "pale ale", "red ale", "rauchbier", "quadrupel", "pilsner", "weizen", "weisse",
    "blanche", "saison", "tripel", "dubbel", "helles", "dunkel", "kolsch", "marzen", "porter",
    "stout", "lager", "bitter", "amber", "sour", "gose", "bock", "pils", "ipa", "ale",
]
BEER_SUB_STYLES = [
    "double ipa", "triple ipa", "session ipa", "black ipa", "imperial stout", "milk stout",
    "oatmeal stout", "belgian pale ale", "american pale ale", "german pilsner", "czech pilsner",
    "italian pilsner", "dry stout", "sweet stout", "export stout",
]
PRODUCT_STOPWORDS = (
    "organizzazione", "mondiale", "sanità", "oms", "who", "consiglia", "raccomanda", "studio",
    "ricerca", "secondo", "importante", "necessario", "fondamentale", "essenziale", "governo",
    "ministero", "legge", "decreto", "normativa", "articolo", "comma", "paragrafo", "sezione",
)
PRODUCT_SENTENCE_RE = re.compile(
    r"\b(?:è|sono|consiglia|raccomanda|dice|afferma|secondo|per|con|del|della)\b", re.IGNORECASE
)
COMMON_INGREDIENTS = (
    "malto", "orzo", "frumento", "avena", "segale", "luppolo", "lievito", "acqua", "miele", "spezie",
)
AVAILABILITY = {
    "out of stock": "Esaurito",
    "esaurito": "Esaurito",
    "disponibile": "Disponibile",
    "in stock": "Disponibile",
    "limitata": "Edizione Limitata",
    "limited": "Edizione Limitata",
    "stagionale": "Stagionale",
    "seasonal": "Stagionale",
}

SKIPPED_DOC_RE = re.compile(r"\.(?:pdf|jpe?g|png|gif|webp|svg|zip|rar|docx?|xlsx?)$", re.IGNORECASE)
LEGAL_PAGE_RE = re.compile(r"privacy|cookie|legal|terms|condizioni|gdpr|disclaimer", re.IGNORECASE)
HIGH_PRIORITY_LINK_WORDS = (
    "birre", "beers", "beer", "birra", "le-nostre-birre", "our-beers", "prodotti", "products",
    "catalogo", "catalog", "gamma", "range", "contatt", "contact", "chi-siamo", "about",
    "dove-siamo", "dove-trovarci", "location", "trova", "find", "info",
)
MEDIUM_PRIORITY_LINK_WORDS = (
    "azien", "company", "storia", "history", "team", "people",
    "ipa", "lager", "pils", "weiss", "stout", "ale", "porter",
)
LOGO_SELECTORS = (
    "img.logo",
    "#logo img",
    ".logo img",
    "[class*=logo] img",
    'img[alt*="logo" i]',
    "header img",
    ".navbar-brand img",
)


@dataclass
class ParsedPage:
    """A fetched page ready for extraction."""

    url: str
    html: str
    soup: BeautifulSoup
    text: str

    @property
    def lowered(self) -> str:
        return self.text.lower()


def parse_page(html: str, url: str = "") -> ParsedPage:
    """
    Parse HTML into a soup and its visible, whitespace-collapsed text.

    Scripts and styles are dropped from the text but the raw html is kept
    for email harvesting.
    """
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    text = re.sub(r"\s+", " ", soup.get_text(" ")).strip()
    return ParsedPage(url=url, html=html, soup=soup, text=text)


def _host(url: str) -> str:
    host = urlparse(url).netloc.lower()
    return host[4:] if host.startswith("www.") else host


def _meta_description(page: ParsedPage) -> str | None:
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        tag = page.soup.find("meta", attrs=attrs)
        if tag and tag.get("content"):
            return tag["content"].strip()
    return None


def _paragraphs(page: ParsedPage) -> list[str]:
    return [re.sub(r"\s+", " ", p.get_text(" ")).strip() for p in page.soup.find_all("p")]


# ---------------------------------------------------------------------------
# Site navigation
# ---------------------------------------------------------------------------


def link_priority(path: str, anchor_text: str) -> int:
    """3 for beer/contact/about pages, 2 for company/history/style pages, 1 otherwise."""
    haystack = f"{path} {anchor_text}".lower()
    if any(word in haystack for word in HIGH_PRIORITY_LINK_WORDS):
        return 3
    if any(word in haystack for word in MEDIUM_PRIORITY_LINK_WORDS):
        return 2
    if path not in ("", "/"):
        return 1
    return 0


def extract_links(page: ParsedPage, base_url: str, limit: int = 15) -> list[str]:
    """
    Same-site links ranked by how likely they carry brewery data.

    Anchors, binary documents and privacy/cookie/legal pages are skipped.
    """
    base_host = _host(base_url)
    ranked: dict[str, int] = {}
    for anchor in page.soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith(("#", "mailto:", "tel:", "javascript:")):
            continue
        url, _ = urldefrag(urljoin(base_url, href))
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or _host(url) != base_host:
            continue
        path = parsed.path.lower()
        if SKIPPED_DOC_RE.search(path) or LEGAL_PAGE_RE.search(path):
            continue
        priority = link_priority(path, anchor.get_text(" ", strip=True))
        if priority > ranked.get(url, 0):
            ranked[url] = priority

    ordered = sorted(ranked.items(), key=lambda item: item[1], reverse=True)
    return [url for url, _ in ordered[:limit]]


def extract_logo_url(page: ParsedPage, base_url: str) -> str | None:
    """Logo image URL, resolved against the page. Inline data: images are skipped."""
    for selector in LOGO_SELECTORS:
        for img in page.soup.select(selector):
            src = img.get("src") or img.get("data-src") or img.get("data-lazy-src")
            if not src or src.strip().startswith("data:"):
                continue
            return urljoin(base_url, src.strip())
    return None


# ---------------------------------------------------------------------------
# Brewery fields
# ---------------------------------------------------------------------------


def _title_case_address(address: str) -> str:
    words = []
    for word in address.split(" "):
        if len(word) > 2 and not word[0].isdigit() and not word.startswith("("):
            word = word[0].upper() + word[1:].lower()
        words.append(word)
    return " ".join(words)


def score_address(address: str, from_keyword: bool) -> float:
    """Completeness score of an address match."""
    confidence = 0.6
    if from_keyword:
        confidence += 0.3
    if re.search(r"\d{5}", address):
        confidence += 0.2
    if re.search(r"\([A-Za-z]{2}\)", address):
        confidence += 0.2
    if re.search(r"\d+-\d+", address):
        confidence += 0.1
    if 25 < len(address) < 120:
        confidence += 0.1
    return confidence


def extract_address(page: ParsedPage) -> tuple[str, float] | None:
    """
    Best Italian postal address on the page.

    Returns:
        (address, score) or None
    """
    best: tuple[str, float] | None = None
    for index, pattern in enumerate(ADDRESS_PATTERNS):
        for match in pattern.finditer(page.text):
            address = re.sub(r"^address[\s:]+", "", match.group(0).strip(), flags=re.IGNORECASE)
            address = re.sub(r"\s*(?:italy|italia)\s*$", "", address, flags=re.IGNORECASE)
            address = _title_case_address(re.sub(r"\s+", " ", address).strip())
            score = score_address(address, from_keyword=index == 0)
            if best is None or score > best[1]:
                best = (address, score)
    return best


def extract_email(page: ParsedPage) -> str | None:
    """Contact email, preferring info@/contact@ addresses."""
    emails = []
    for candidate in EMAIL_RE.findall(page.html):
        lowered = candidate.lower()
        if any(part in lowered for part in EXCLUDED_EMAIL_PARTS) or lowered.endswith(IMAGE_SUFFIXES):
            continue
        if lowered not in emails:
            emails.append(lowered)
    if not emails:
        return None
    for email in emails:
        if "info" in email or "contact" in email:
            return email
    return emails[0]


def extract_pec(page: ParsedPage) -> str | None:
    """Certified (PEC) email address."""
    for candidate in EMAIL_RE.findall(page.html):
        lowered = candidate.lower()
        if "@pec." in lowered or lowered.endswith((".pec.it", "@legalmail.it")):
            return lowered
    return None


def normalize_phone(raw: str) -> str | None:
    """Normalize an Italian phone number, or None if it is not one."""
    digits = re.sub(r"[^\d+]", "", raw)
    digits = re.sub(r"^\+?39", "", digits)
    digits = digits.lstrip("+")
    if not digits.startswith(("0", "3")) and 9 <= len(digits) <= 11:
        digits = "0" + digits
    if 9 <= len(digits) <= 12 and digits.startswith(("0", "3")):
        return digits
    return None


def extract_phone(page: ParsedPage) -> str | None:
    """Phone number from the highest-priority pattern that yields a valid number."""
    for pattern in PHONE_PATTERNS:
        for match in pattern.finditer(page.text):
            raw = re.sub(r"^(?:phone|tel|telefono)[\s.:]+", "", match.group(0), flags=re.IGNORECASE)
            phone = normalize_phone(raw)
            if phone:
                return phone
    return None


def extract_fiscal_code(page: ParsedPage) -> str | None:
    """VAT number (11 digits) or 16-char Italian tax code."""
    match = VAT_RE.search(page.text) or TAX_CODE_RE.search(page.text)
    return match.group(1).upper() if match else None


def extract_rea_code(page: ParsedPage) -> str | None:
    """Chamber of commerce registry code, e.g. MI-1234567."""
    match = REA_RE.search(page.text)
    return match.group(1).upper() if match else None


def extract_excise_code(page: ParsedPage) -> str | None:
    """Excise (accise) code; must contain at least one digit."""
    match = EXCISE_RE.search(page.text)
    if match and any(c.isdigit() for c in match.group(1)):
        return match.group(1).upper()
    return None


def extract_founding_year(page: ParsedPage) -> int | None:
    """Founding year between 1800 and the current year."""
    for match in FOUNDING_RE.finditer(page.text):
        year = int(match.group(1))
        if 1800 <= year <= date.today().year:
            return year
    return None


def extract_description(page: ParsedPage) -> str | None:
    """Meta description, or the first long paragraph talking about the brewery."""
    meta = _meta_description(page)
    if meta and len(meta) > 50:
        return meta[:500]
    for text in _paragraphs(page):
        if len(text) > 100 and any(kw in text.lower() for kw in DESCRIPTION_KEYWORDS):
            return text[:500]
    return None


def extract_history(page: ParsedPage) -> str | None:
    """Paragraph right after a history heading."""
    for heading in page.soup.find_all(["h1", "h2", "h3", "h4"]):
        if not any(kw in heading.get_text(" ").lower() for kw in HISTORY_KEYWORDS):
            continue
        sibling = heading.find_next_sibling()
        if sibling is not None and sibling.name == "p":
            text = re.sub(r"\s+", " ", sibling.get_text(" ")).strip()
            if len(text) > 100:
                return text[:1000]
    return None


def extract_production_volume(page: ParsedPage) -> str | None:
    """Yearly production volume as written on the page."""
    for pattern in PRODUCTION_RES:
        match = pattern.search(page.text)
        if match:
            return match.group(0).strip()
    return None


def extract_size_class(page: ParsedPage) -> str | None:
    """Size class from keywords, or inferred from the production volume in hectolitres."""
    text = page.lowered
    if "microbirrificio" in text or "micro birrificio" in text:
        return BrewerySize.MICRO.value
    if "birrificio artigianale" in text or "artigianal" in text:
        return BrewerySize.CRAFT.value
    if "birrificio industriale" in text or "industriale" in text:
        return BrewerySize.INDUSTRIAL.value

    volume = extract_production_volume(page)
    if volume and re.search(r"ettolitri|hl", volume, re.IGNORECASE):
        hectolitres = float(re.search(r"\d+", volume.replace(".", "")).group(0))
        if hectolitres < 1000:
            return BrewerySize.MICRO.value
        if hectolitres < 10000:
            return BrewerySize.CRAFT.value
        return BrewerySize.INDUSTRIAL.value
    return None


def extract_employee_count(page: ParsedPage) -> int | None:
    for pattern in EMPLOYEE_RES:
        match = pattern.search(page.text)
        if match:
            return int(match.group(1))
    return None


def extract_master_brewer(page: ParsedPage) -> str | None:
    match = MASTER_BREWER_RE.search(page.text)
    return match.group(1).strip() if match else None


def extract_social_links(page: ParsedPage) -> SocialLinks | None:
    """First link to each supported social network."""
    found: dict[str, str] = {}
    networks = {
        "facebook": ("facebook.com", "fb.com"),
        "instagram": ("instagram.com",),
        "twitter": ("twitter.com", "x.com"),
        "linkedin": ("linkedin.com",),
        "youtube": ("youtube.com", "youtu.be"),
    }
    for anchor in page.soup.find_all("a", href=True):
        href = anchor["href"].strip()
        host = _host(href)
        for network, domains in networks.items():
            if network in found:
                continue
            if any(host == d or host.endswith("." + d) for d in domains):
                found[network] = href
    return SocialLinks(**found) if found else None


def extract_main_products(page: ParsedPage) -> list[str]:
    """Beer styles mentioned on the page plus beer-like list items (max 10)."""
    text = page.lowered
    products: list[str] = []
    for style in PRODUCT_STYLES:
        if re.search(rf"\b{re.escape(style)}\b", text):
            products.append(style.upper())

    for item in page.soup.select("ul li, ol li"):
        label = re.sub(r"\s+", " ", item.get_text(" ")).strip()
        lowered = label.lower()
        if not 3 <= len(label) <= 40:
            continue
        if any(word in lowered for word in PRODUCT_STOPWORDS):
            continue
        if PRODUCT_SENTENCE_RE.search(lowered) or any(c in label for c in ",.("):
            continue
        if "birra" in lowered or any(re.search(rf"\b{re.escape(s)}\b", lowered) for s in PRODUCT_STYLES):
            products.append(label)

    unique = list(dict.fromkeys(products))
    return unique[:10]


def extract_awards(page: ParsedPage) -> list[str]:
    """Award mentions from list items and sentences (max 5)."""
    awards: list[str] = []
    for item in page.soup.select("ul li, ol li"):
        text = re.sub(r"\s+", " ", item.get_text(" ")).strip()
        if any(kw in text.lower() for kw in AWARD_KEYWORDS) and 10 < len(text) < 200:
            awards.append(text)
    for paragraph in _paragraphs(page):
        if not any(kw in paragraph.lower() for kw in AWARD_KEYWORDS):
            continue
        for sentence in re.findall(r"[^.!?]+[.!?]+", paragraph):
            if any(kw in sentence.lower() for kw in AWARD_KEYWORDS):
                awards.append(sentence.strip())
    return list(dict.fromkeys(awards))[:5]


# ---------------------------------------------------------------------------
# Beer fields
# ---------------------------------------------------------------------------


def extract_alcohol_content(page: ParsedPage) -> float | None:
    """ABV in percent, 0-20."""
    patterns = (
        r"(?:abv|alc\.?|vol\.?|gradazione(?:\s+alcolica)?|alcol)[\s:]+(\d+(?:[.,]\d+)?)\s*%",
        r"(\d+(?:[.,]\d+)?)\s*%\s*(?:abv|alc\.?|vol\.?)",
    )
    for pattern in patterns:
        for match in re.finditer(pattern, page.text, re.IGNORECASE):
            value = float(match.group(1).replace(",", "."))
            if 0 <= value <= 20:
                return value
    return None


def extract_ibu(page: ParsedPage) -> int | None:
    """Bitterness units, 0-120."""
    for match in re.finditer(r"(?:ibu|bitterness|amaro)[\s:]+(\d+)", page.text, re.IGNORECASE):
        value = int(match.group(1))
        if 0 <= value <= 120:
            return value
    return None


def extract_style(page: ParsedPage) -> str | None:
    """Beer style from an explicit label or a known style name."""
    match = re.search(r"(?:stile|style|tipologia)[\s:]+([a-z][a-z\s]{2,30}?)(?:[.,;|]|\s{2}|$)", page.lowered)
    if match:
        return match.group(1).strip().title()
    for style in BEER_STYLES:
        if re.search(rf"\b{re.escape(style)}\b", page.lowered):
            return style.upper() if style == "ipa" else style.title()
    return None


def extract_sub_style(page: ParsedPage) -> str | None:
    for sub_style in BEER_SUB_STYLES:
        if sub_style in page.lowered:
            return sub_style.title().replace("Ipa", "IPA")
    return None


def extract_volume(page: ParsedPage) -> str | None:
    """Bottle or can size as written."""
    patterns = (
        r"\b\d+\s*(?:ml|millilitri)\b",
        r"\b\d+(?:[.,]\d+)?\s*(?:cl|centilitri)\b",
        r"\b\d+(?:[.,]\d+)?\s*(?:l|lt|litri)\b",
    )
    for pattern in patterns:
        match = re.search(pattern, page.text, re.IGNORECASE)
        if match:
            return match.group(0).strip()
    return None


def extract_beer_description(page: ParsedPage, beer_name: str) -> str | None:
    """Meta description or paragraph mentioning the beer."""
    first_word = beer_name.lower().split()[0] if beer_name.split() else ""
    if not first_word:
        return None
    meta = _meta_description(page)
    if meta and first_word in meta.lower():
        return meta[:500]
    for text in _paragraphs(page):
        if first_word in text.lower() and len(text) > 50:
            return text[:500]
    return None


def extract_ingredients(page: ParsedPage) -> list[str]:
    """Ingredient list from an explicit label, else common ingredients mentioned."""
    match = re.search(
        r"(?:ingredienti|ingredients|realizzata\s+con|prodotta\s+con)[\s:]+([^.]{3,200})",
        page.text,
        re.IGNORECASE,
    )
    if match:
        parts = re.split(r",|;|\be\b", match.group(1))
        return [p.strip().lower() for p in parts if p.strip()][:15]
    return [ingredient for ingredient in COMMON_INGREDIENTS if re.search(rf"\b{ingredient}\b", page.lowered)]


def extract_tasting_notes(page: ParsedPage) -> TastingNotes | None:
    for text in _paragraphs(page):
        if len(text) > 30 and any(kw in text.lower() for kw in TASTING_KEYWORDS):
            return TastingNotes(summary=text[:500])
    return None


def extract_nutritional_info(page: ParsedPage) -> str | None:
    patterns = (
        r"(?:calorie|kcal)[\s:]+\d+",
        r"(?:carboidrati|carbs)[\s:]+\d+(?:[.,]\d+)?\s*g",
        r"(?:proteine|protein)[\s:]+\d+(?:[.,]\d+)?\s*g",
        r"(?:grassi|fat)[\s:]+\d+(?:[.,]\d+)?\s*g",
    )
    found = []
    for pattern in patterns:
        match = re.search(pattern, page.text, re.IGNORECASE)
        if match:
            found.append(match.group(0).strip())
    return ", ".join(found) if found else None


def extract_price(page: ParsedPage) -> str | None:
    """Price in euro, below 100."""
    patterns = (
        r"€\s*(\d+(?:[.,]\d{2})?)",
        r"(\d+(?:[.,]\d{2})?)\s*€",
        r"(?:prezzo|price)[\s:]+€?\s*(\d+(?:[.,]\d{2})?)",
    )
    for pattern in patterns:
        for match in re.finditer(pattern, page.text, re.IGNORECASE):
            value = match.group(1)
            if 0 < float(value.replace(",", ".")) < 100:
                return f"€{value}"
    return None


def extract_availability(page: ParsedPage) -> str | None:
    for keyword, status in AVAILABILITY.items():
        if keyword in page.lowered:
            return status
    return None
