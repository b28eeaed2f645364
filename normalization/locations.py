"""Location table and free-text location parsing."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

UNKNOWN = "Unknown"
REMOTE_UNKNOWN = "Remote/Unknown"

# canonical country -> aliases (accent-folded, lower-case)
COUNTRIES: dict[str, tuple[str, ...]] = {
    "United Kingdom": ("uk", "gb", "united kingdom", "great britain", "england", "scotland", "wales", "northern ireland"),
    "Ireland": ("ireland", "ie", "eire"),
    "Germany": ("germany", "de", "deutschland"),
    "France": ("france", "fr"),
    "Spain": ("spain", "es", "espana"),
    "Netherlands": ("netherlands", "nl", "the netherlands", "holland", "nederland"),
    "Belgium": ("belgium", "be", "belgique", "belgie"),
    "Switzerland": ("switzerland", "ch", "schweiz", "suisse", "svizzera"),
    "Austria": ("austria", "at", "osterreich"),
    "Italy": ("italy", "it", "italia"),
    "Portugal": ("portugal", "pt"),
    "Denmark": ("denmark", "dk", "danmark"),
    "Sweden": ("sweden", "se", "sverige"),
    "Norway": ("norway", "no", "norge"),
    "Finland": ("finland", "fi", "suomi"),
    "Poland": ("poland", "pl", "polska"),
    "Czech Republic": ("czech republic", "czechia", "cz"),
    "Luxembourg": ("luxembourg", "lu"),
    "United States": ("united states", "usa", "us", "united states of america"),
    "Canada": ("canada", "ca"),
}

# canonical city -> (country, aliases)
CITIES: dict[str, tuple[str, tuple[str, ...]]] = {
    "London": ("United Kingdom", ("london", "greater london", "city of london", "london area")),
    "Manchester": ("United Kingdom", ("manchester",)),
    "Birmingham": ("United Kingdom", ("birmingham",)),
    "Edinburgh": ("United Kingdom", ("edinburgh",)),
    "Glasgow": ("United Kingdom", ("glasgow",)),
    "Bristol": ("United Kingdom", ("bristol",)),
    "Leeds": ("United Kingdom", ("leeds",)),
    "Cambridge": ("United Kingdom", ("cambridge",)),
    "Dublin": ("Ireland", ("dublin", "baile atha cliath")),
    "Cork": ("Ireland", ("cork",)),
    "Berlin": ("Germany", ("berlin",)),
    "Munich": ("Germany", ("munich", "munchen", "muenchen")),
    "Hamburg": ("Germany", ("hamburg",)),
    "Frankfurt": ("Germany", ("frankfurt", "frankfurt am main")),
    "Cologne": ("Germany", ("cologne", "koln", "koeln")),
    "Stuttgart": ("Germany", ("stuttgart",)),
    "Dusseldorf": ("Germany", ("dusseldorf", "duesseldorf")),
    "Paris": ("France", ("paris", "ile-de-france", "ile de france")),
    "Lyon": ("France", ("lyon",)),
    "Marseille": ("France", ("marseille",)),
    "Toulouse": ("France", ("toulouse",)),
    "Madrid": ("Spain", ("madrid",)),
    "Barcelona": ("Spain", ("barcelona",)),
    "Valencia": ("Spain", ("valencia",)),
    "Seville": ("Spain", ("seville", "sevilla")),
    "Amsterdam": ("Netherlands", ("amsterdam",)),
    "Rotterdam": ("Netherlands", ("rotterdam",)),
    "The Hague": ("Netherlands", ("the hague", "den haag", "s-gravenhage")),
    "Utrecht": ("Netherlands", ("utrecht",)),
    "Eindhoven": ("Netherlands", ("eindhoven",)),
    "Brussels": ("Belgium", ("brussels", "bruxelles", "brussel")),
    "Antwerp": ("Belgium", ("antwerp", "antwerpen", "anvers")),
    "Zurich": ("Switzerland", ("zurich", "zuerich")),
    "Geneva": ("Switzerland", ("geneva", "geneve", "genf")),
    "Basel": ("Switzerland", ("basel", "bale")),
    "Vienna": ("Austria", ("vienna", "wien")),
    "Milan": ("Italy", ("milan", "milano")),
    "Rome": ("Italy", ("rome", "roma")),
    "Turin": ("Italy", ("turin", "torino")),
    "Lisbon": ("Portugal", ("lisbon", "lisboa")),
    "Porto": ("Portugal", ("porto", "oporto")),
    "Copenhagen": ("Denmark", ("copenhagen", "kobenhavn")),
    "Stockholm": ("Sweden", ("stockholm",)),
    "Oslo": ("Norway", ("oslo",)),
    "Helsinki": ("Finland", ("helsinki",)),
    "Warsaw": ("Poland", ("warsaw", "warszawa")),
    "Krakow": ("Poland", ("krakow", "cracow")),
    "Prague": ("Czech Republic", ("prague", "praha")),
    "Luxembourg": ("Luxembourg", ("luxembourg city", "ville de luxembourg")),
    "New York": ("United States", ("new york", "new york city", "nyc")),
    "San Francisco": ("United States", ("san francisco", "sf")),
    "Toronto": ("Canada", ("toronto",)),
}

REMOTE_RE = re.compile(
    r"\b(remote|work from home|wfh|anywhere|home.?office|teletravail|teletrabajo|thuiswerk)\b"
)
HYBRID_RE = re.compile(r"\b(hybrid|hybride|hibrido)\b")

_SPLIT_RE = re.compile(r"\s*(?:,|/|\||;|\(|\)|·|\s-\s)\s*")


def fold(text: str) -> str:
    """Lower-case and strip accents: "Zürich" -> "zurich"."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return re.sub(r"\s+", " ", stripped).strip().lower()


def _build_index() -> tuple[dict[str, str], dict[str, str]]:
    city_index: dict[str, str] = {}
    for city, (_, aliases) in CITIES.items():
        for alias in aliases:
            city_index[alias] = city
    country_index: dict[str, str] = {}
    for country, aliases in COUNTRIES.items():
        for alias in aliases:
            country_index[alias] = country
        country_index[fold(country)] = country
    return city_index, country_index


_CITY_INDEX, _COUNTRY_INDEX = _build_index()


@dataclass(frozen=True)
class ParsedLocation:
    """Result of parsing a free-text location."""

    raw: str
    city: str = UNKNOWN
    country: str = UNKNOWN
    is_remote: bool = False
    is_hybrid: bool = False

    @property
    def resolved(self) -> bool:
        """True when the posting can be placed somewhere (or anywhere)."""
        return self.city != UNKNOWN or self.country != UNKNOWN or self.is_remote


def parse_location(text: str | None) -> ParsedLocation:
    """Split a location string into canonical city and country.

    Unknown cities become "Unknown"; an empty location is kept as
    "Remote/Unknown" and left for the required-fields gate to judge.
    """
    if not text or not text.strip():
        return ParsedLocation(raw=REMOTE_UNKNOWN)

    raw = text.strip()
    folded = fold(raw)
    is_remote = bool(REMOTE_RE.search(folded))
    is_hybrid = bool(HYBRID_RE.search(folded))

    city = UNKNOWN
    country = UNKNOWN
    parts = [p for p in _SPLIT_RE.split(folded) if p]
    for part in parts:
        if city == UNKNOWN and part in _CITY_INDEX:
            city = _CITY_INDEX[part]
            continue
        if country == UNKNOWN and part in _COUNTRY_INDEX:
            country = _COUNTRY_INDEX[part]

    # "Remote - Berlin office" and similar free text: scan for known cities
    if city == UNKNOWN:
        for alias, canonical in _CITY_INDEX.items():
            if len(alias) > 3 and re.search(rf"\b{re.escape(alias)}\b", folded):
                city = canonical
                break

    if city != UNKNOWN and country == UNKNOWN:
        country = CITIES[city][0]

    return ParsedLocation(
        raw=raw,
        city=city,
        country=country,
        is_remote=is_remote,
        is_hybrid=is_hybrid,
    )


def location_matches(target: str, city: str, country: str) -> bool:
    """Whether a user's target location names this city or country."""
    wanted = fold(target)
    if not wanted or wanted == fold(UNKNOWN):
        return False
    if wanted in (fold(city), fold(country)):
        return True
    return _CITY_INDEX.get(wanted) == city or _COUNTRY_INDEX.get(wanted) == country
