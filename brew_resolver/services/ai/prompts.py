"""Prompt templates for web-grounded brewery and beer search."""

PROMPT_VERSION = "1.0"

SYSTEM_PROMPT = """You are an expert on Italian and international craft beer. You research breweries and beers on the web and report only facts you can verify from real web sources.

Rules:
1. Search the web and use ONLY information found in real sources
2. NEVER invent data; use null for anything you cannot verify
3. Websites must really exist; addresses must be complete
4. Technical data (ABV, IBU) must come from the producer
5. Write descriptions and tasting notes in Italian
6. Output ONLY valid JSON, with no commentary before or after it"""

GROUNDED_SEARCH_TEMPLATE = """Find real, verified information about the {search_context}.

WHERE TO LOOK FOR BREWERY COMPANY DATA:
- VAT number (Partita IVA): site footer, contacts, about or privacy pages, 11 digits
- REA code: chamber of commerce registration, province code + number (e.g. BI-123456)
- Excise code (codice accise): brewery production authorization, near the tax data
- PEC: contacts or company data pages, e.g. xxx@pec.it
- Legal form (SRL, SPA, SNC, SRLS, sole proprietorship, cooperative) and share capital

SOCIAL PROFILES: only official brewery profiles linked from the official site (no fan pages).

LOGO: a DIRECT image URL (.png, .jpg, .svg, .webp) from the official site header or footer. Use null for inline or base64 logos.

Return JSON with exactly this structure:
{{
  "found": true,
  "confidence": 0.0,
  "brewery": {{
    "name": "Official brewery name",
    "website": "Official website URL or null",
    "logo_url": "Direct logo image URL or null",
    "legal_address": "Complete address or null",
    "email": "Email or null",
    "phone": "Phone or null",
    "description": "Description or null",
    "founding_year": null,
    "size_class": "microbirrificio / birrificio artigianale / industriale or null",
    "main_products": [],
    "social_links": {{"facebook": null, "instagram": null, "twitter": null, "linkedin": null, "youtube": null}},
    "fiscal_code": "VAT number or null",
    "rea_code": "REA code or null",
    "excise_code": "Excise code or null",
    "pec_email": "PEC email or null",
    "legal_form": "Legal form or null",
    "share_capital": "Share capital or null"
  }},
  "beer": {{
    "name": "Official beer name",
    "style": "Beer style or null",
    "alcohol_content": null,
    "ibu": null,
    "volume": "Volume or null",
    "color": "Color or null",
    "serving_temperature": "Serving temperature or null",
    "ingredients": [],
    "description": "Description or null",
    "tasting_notes": {{"appearance": null, "aroma": null, "taste": null}},
    "pairings": []
  }},
  "sources": ["URLs you used"]
}}

"confidence" is your confidence (0.0-1.0) that the brewery is the actual producer of this beer.

If you cannot find reliable information, return:
{{"found": false, "confidence": 0.0, "brewery": null, "beer": null, "reason": "Why"}}"""


def build_grounded_search_prompt(beer_name: str, brewery_hint: str | None = None) -> str:
    """
    Build the combined brewery + beer search prompt.

    Args:
        beer_name: Beer name read from the label.
        brewery_hint: Brewery name read from the label, if any.

    Returns:
        The formatted prompt string.
    """
    if brewery_hint:
        search_context = f'beer "{beer_name}" produced by the brewery "{brewery_hint}"'
    else:
        search_context = f'beer "{beer_name}" and the brewery that produces it'
    return GROUNDED_SEARCH_TEMPLATE.format(search_context=search_context)
