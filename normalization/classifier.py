"""Keyword classification of job text.

All vocabularies are data tables keyed by language so a new language or
category is a table edit, not a code change. Keywords are written
lower-case and accent-folded; a space in a keyword also matches a hyphen.
"""

from __future__ import annotations

import re
from collections import Counter
from functools import lru_cache

from normalization.locations import HYBRID_RE, ParsedLocation, fold
from schemas import ExperienceLevel, WorkMode

# (language, category) -> keywords
CATEGORY_KEYWORDS: dict[tuple[str, str], tuple[str, ...]] = {
    ("en", "strategy-business-design"): (
        "strategy", "strategic", "consultant", "consulting", "business analyst",
        "business design", "transformation consultant", "management consulting",
    ),
    ("en", "data-analytics"): (
        "data analyst", "analyst", "data scientist", "data science", "analytics", "business intelligence",
        "bi analyst", "data engineer", "machine learning", "sql", "statistics", "insights analyst",
    ),
    ("en", "sales-client-success"): (
        "sales", "business development", "account executive", "account manager",
        "client success", "customer success", "sdr", "bdr", "key account",
    ),
    ("en", "marketing-growth"): (
        "marketing", "growth marketing", "brand", "content marketing", "seo", "social media",
        "communications", "digital marketing", "campaign",
    ),
    ("en", "finance-investment"): (
        "finance", "financial", "investment", "investment banking", "accounting", "audit",
        "equity", "private equity", "asset management", "treasury", "controller", "fp&a",
    ),
    ("en", "operations-supply-chain"): (
        "operations", "supply chain", "logistics", "procurement", "purchasing",
        "inventory", "fulfilment", "fulfillment", "planning analyst",
    ),
    ("en", "product-innovation"): (
        "product manager", "product management", "product owner", "product analyst",
        "innovation", "ux", "user research", "product design",
    ),
    ("en", "tech-transformation"): (
        "software", "developer", "engineer", "engineering", "it support", "it analyst", "cloud", "devops",
        "cyber security", "cybersecurity", "digital transformation", "technology",
    ),
    ("en", "sustainability-esg"): (
        "sustainability", "esg", "climate", "environmental", "renewable", "energy transition",
        "carbon", "impact investing",
    ),
    ("de", "strategy-business-design"): ("strategie", "unternehmensberatung", "berater", "beratung"),
    ("de", "data-analytics"): ("datenanalyse", "datenanalyst", "daten", "datenwissenschaft"),
    ("de", "sales-client-success"): ("vertrieb", "verkauf", "kundenbetreuung", "kundenberater"),
    ("de", "marketing-growth"): ("marketing", "kommunikation", "markenfuhrung"),
    ("de", "finance-investment"): ("finanzen", "buchhaltung", "controlling", "rechnungswesen", "wirtschaftsprufung"),
    ("de", "operations-supply-chain"): ("logistik", "einkauf", "lieferkette", "beschaffung"),
    ("de", "product-innovation"): ("produktmanagement", "produktmanager", "innovation"),
    ("de", "tech-transformation"): ("softwareentwicklung", "entwickler", "informatik", "digitalisierung"),
    ("de", "sustainability-esg"): ("nachhaltigkeit", "umwelt", "klimaschutz"),
    ("fr", "strategy-business-design"): ("strategie", "conseil", "consultant"),
    ("fr", "data-analytics"): ("analyse de donnees", "donnees", "data analyst"),
    ("fr", "sales-client-success"): ("commercial", "vente", "ventes", "relation client", "charge d'affaires"),
    ("fr", "marketing-growth"): ("marketing", "communication"),
    ("fr", "finance-investment"): ("finance", "comptabilite", "controle de gestion", "audit"),
    ("fr", "operations-supply-chain"): ("logistique", "achats", "chaine d'approvisionnement"),
    ("fr", "product-innovation"): ("chef de produit", "innovation"),
    ("fr", "tech-transformation"): ("developpeur", "informatique", "ingenieur logiciel"),
    ("fr", "sustainability-esg"): ("developpement durable", "rse", "environnement"),
    ("es", "strategy-business-design"): ("estrategia", "consultoria", "consultor"),
    ("es", "data-analytics"): ("analisis de datos", "analista de datos", "datos"),
    ("es", "sales-client-success"): ("ventas", "comercial", "atencion al cliente"),
    ("es", "marketing-growth"): ("marketing", "comunicacion"),
    ("es", "finance-investment"): ("finanzas", "contabilidad", "auditoria", "inversion"),
    ("es", "operations-supply-chain"): ("logistica", "compras", "cadena de suministro", "operaciones"),
    ("es", "product-innovation"): ("producto", "innovacion"),
    ("es", "tech-transformation"): ("desarrollador", "informatica", "ingeniero de software"),
    ("es", "sustainability-esg"): ("sostenibilidad", "medio ambiente"),
    ("nl", "data-analytics"): ("data analist", "data-analist"),
    ("nl", "sales-client-success"): ("verkoop", "accountmanager", "klantenservice"),
    ("nl", "finance-investment"): ("financien", "boekhouding"),
    ("nl", "operations-supply-chain"): ("inkoop", "logistiek"),
    ("nl", "sustainability-esg"): ("duurzaamheid",),
    ("it", "sales-client-success"): ("vendite", "commerciale"),
    ("it", "finance-investment"): ("finanza", "contabilita", "revisione"),
    ("it", "operations-supply-chain"): ("logistica", "acquisti"),
    ("it", "sustainability-esg"): ("sostenibilita",),
}

ALL_CATEGORIES: frozenset[str] = frozenset(cat for _, cat in CATEGORY_KEYWORDS)

# Short career-path values users pick at signup -> category tags
CAREER_PATH_ALIASES: dict[str, str] = {
    "strategy": "strategy-business-design",
    "data": "data-analytics",
    "sales": "sales-client-success",
    "marketing": "marketing-growth",
    "finance": "finance-investment",
    "operations": "operations-supply-chain",
    "product": "product-innovation",
    "tech": "tech-transformation",
    "technology": "tech-transformation",
    "sustainability": "sustainability-esg",
}
OPEN_CAREER_PATHS = frozenset({"unsure", "all-categories"})

# (language, experience level) -> keywords
EXPERIENCE_KEYWORDS: dict[tuple[str, ExperienceLevel], tuple[str, ...]] = {
    ("en", ExperienceLevel.INTERNSHIP): ("intern", "internship", "placement", "summer analyst", "industrial placement"),
    ("de", ExperienceLevel.INTERNSHIP): ("praktikum", "praktikant", "praktikantin", "werkstudent", "werkstudentin"),
    ("fr", ExperienceLevel.INTERNSHIP): ("stage de", "stage en", "stagiaire", "alternance", "alternant"),
    ("es", ExperienceLevel.INTERNSHIP): ("becario", "becaria", "practicas"),
    ("it", ExperienceLevel.INTERNSHIP): ("tirocinio", "stagista"),
    ("nl", ExperienceLevel.INTERNSHIP): ("stagiair", "stageplek"),
    ("en", ExperienceLevel.GRADUATE): (
        "graduate", "new grad", "recent graduate", "graduate scheme", "graduate programme",
        "graduate program", "campus hire", "university hire", "trainee", "traineeship",
        "rotational programme", "rotational program", "fellowship",
    ),
    ("de", ExperienceLevel.GRADUATE): ("absolvent", "absolventin", "absolventenprogramm", "traineeprogramm", "hochschulabsolvent"),
    ("fr", ExperienceLevel.GRADUATE): ("jeune diplome", "jeune diplomee", "diplome"),
    ("es", ExperienceLevel.GRADUATE): ("recien titulado", "recien graduado", "programa de graduados", "nuevo graduado"),
    ("it", ExperienceLevel.GRADUATE): ("neolaureato", "neo laureato", "nuovo laureato"),
    ("nl", ExperienceLevel.GRADUATE): ("afgestudeerde", "pas afgestudeerd"),
    ("en", ExperienceLevel.EARLY_CAREER): (
        "junior", "entry level", "associate", "analyst", "apprentice", "apprenticeship",
        "early career", "fresher",
    ),
    ("de", ExperienceLevel.EARLY_CAREER): ("berufseinstieg", "berufseinsteiger", "einsteiger", "ausbildung", "auszubildende"),
    ("fr", ExperienceLevel.EARLY_CAREER): ("debutant", "debutante", "niveau debutant", "apprenti", "poste d'entree"),
    ("es", ExperienceLevel.EARLY_CAREER): ("nivel inicial", "puesto de entrada", "aprendiz", "joven profesional"),
    ("it", ExperienceLevel.EARLY_CAREER): ("apprendista", "apprendistato", "inserimento lavorativo"),
    ("nl", ExperienceLevel.EARLY_CAREER): ("starter", "starterfunctie", "instapfunctie", "leerwerkplek"),
}

# Title words that make a posting experienced regardless of other keywords
SENIOR_TITLE_RE = re.compile(
    r"\b(senior|sr\.?|lead|principal|director|head of|vp|vice.?president|chief|staff|"
    r"architect|distinguished|team.?lead|tech.?lead|leiter|leiterin|directeur|directrice|director[a]?)\b"
)
# Managers stay experienced unless the title says graduate/trainee/junior manager
MANAGER_TITLE_RE = re.compile(r"\bmanager\b")
ENTRY_MANAGER_RE = re.compile(r"\b(graduate|trainee|junior|entry.?level|associate)\s+manager\b")
ASSISTANT_TITLE_RE = re.compile(r"\b(virtual|executive|personal|administrative)\s+assistant\b")
EXPERIENCE_REQUIRED_RE = re.compile(
    r"(proven.?track.?record|extensive.?experience|minimum.?(?:of.?)?[3-9].?years|"
    r"at.?least.?[3-9].?years|\b(?:[3-9]|1\d)\+.?years|mindestens.?[3-9].?jahre|"
    r"experienced.?professional)"
)

# language -> phrases that state a working-language requirement
LANGUAGE_REQUIREMENTS: dict[str, tuple[str, ...]] = {
    "en": ("fluent english", "english speaking", "business fluent english", "native english"),
    "de": (
        "fluent german", "german speaking", "business fluent german", "native german",
        "deutschkenntnisse", "fliessend deutsch", "fließend deutsch", "verhandlungssicheres deutsch",
    ),
    "fr": ("fluent french", "french speaking", "native french", "francais courant", "maitrise du francais", "francais natif"),
    "es": ("fluent spanish", "spanish speaking", "native spanish", "espanol fluido", "dominio del espanol"),
    "nl": ("fluent dutch", "dutch speaking", "native dutch", "vloeiend nederlands", "nederlandstalig"),
    "it": ("fluent italian", "italian speaking", "native italian", "italiano fluente"),
}

# language -> frequent function words, used to guess the posting language
STOPWORDS: dict[str, frozenset[str]] = {
    "en": frozenset({"the", "and", "with", "you", "our", "for", "will", "are", "your", "we"}),
    "de": frozenset({"und", "der", "die", "das", "mit", "wir", "sie", "fur", "ist", "eine", "ihre"}),
    "fr": frozenset({"et", "le", "la", "les", "vous", "nous", "avec", "pour", "une", "des", "est"}),
    "es": frozenset({"y", "el", "los", "las", "con", "para", "una", "del", "nuestro", "somos"}),
    "nl": frozenset({"en", "het", "van", "met", "wij", "voor", "een", "je", "jouw", "bent"}),
    "it": frozenset({"e", "il", "della", "con", "per", "una", "siamo", "nostro", "sei", "che"}),
}

REMOTE_TEXT_RE = re.compile(
    r"\b(fully remote|100% remote|remote.?first|work from anywhere|remote position|remote role|"
    r"home.?based|teletravail complet|teletrabajo)\b"
)
HYBRID_TEXT_RE = re.compile(r"\b(hybrid (?:working|role|position|model|work)|hybrides arbeiten)\b")

_WORD_RE = re.compile(r"[a-zß]+")


@lru_cache(maxsize=None)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    body = r"[\s\-]+".join(re.escape(w) for w in keyword.split())
    return re.compile(rf"(?<!\w){body}(?!\w)")


def has_keyword(folded_text: str, keywords: tuple[str, ...]) -> bool:
    return any(_keyword_pattern(k).search(folded_text) for k in keywords)


def classify_categories(title: str, description: str) -> set[str]:
    """Category tags whose keywords appear in title or description."""
    text = fold(f"{title} {description}")
    return {cat for (_, cat), keywords in CATEGORY_KEYWORDS.items() if has_keyword(text, keywords)}


def classify_experience(title: str, description: str) -> set[str]:
    """Experience flags from multilingual entry-level patterns.

    Senior titles and explicit multi-year experience requirements override
    every entry-level signal. Internship and graduate postings are also
    early-career. Anything without an entry-level signal is experienced.
    """
    folded_title = fold(title)
    text = fold(f"{title} {description}")

    if ASSISTANT_TITLE_RE.search(folded_title) or SENIOR_TITLE_RE.search(folded_title):
        return {ExperienceLevel.EXPERIENCED.value}
    if MANAGER_TITLE_RE.search(folded_title) and not ENTRY_MANAGER_RE.search(text):
        return {ExperienceLevel.EXPERIENCED.value}
    if EXPERIENCE_REQUIRED_RE.search(text):
        return {ExperienceLevel.EXPERIENCED.value}

    flags = {
        level.value
        for (_, level), keywords in EXPERIENCE_KEYWORDS.items()
        if has_keyword(text, keywords)
    }
    if not flags:
        return {ExperienceLevel.EXPERIENCED.value}
    flags.add(ExperienceLevel.EARLY_CAREER.value)
    return flags


def classify_work_mode(
    title: str,
    description: str,
    location: ParsedLocation,
    remote_hint: bool | None = None,
) -> WorkMode:
    folded_title = fold(title)
    folded_desc = fold(description)
    if location.is_hybrid or HYBRID_RE.search(folded_title) or HYBRID_TEXT_RE.search(folded_desc):
        return WorkMode.HYBRID
    if location.is_remote or remote_hint or REMOTE_TEXT_RE.search(f"{folded_title} {folded_desc}"):
        return WorkMode.REMOTE
    return WorkMode.ONSITE


def detect_language(text: str, hint: str | None = None) -> str:
    """Best-guess ISO-639-1 code of the posting text.

    A source-supplied hint wins. Short or ambiguous text defaults to "en".
    """
    if hint:
        return hint.strip().lower()[:2]
    words = Counter(_WORD_RE.findall(fold(text)))
    if sum(words.values()) < 5:
        return "en"
    scores = {lang: sum(words[w] for w in stops) for lang, stops in STOPWORDS.items()}
    best = max(scores, key=lambda lang: scores[lang])
    if best != "en" and scores[best] <= scores["en"]:
        return "en"
    return best


def required_languages(title: str, description: str, posting_language: str) -> set[str]:
    """Working languages a candidate must speak.

    Explicit requirements ("fluent German", "Deutschkenntnisse") plus the
    posting's own language when it isn't English.
    """
    text = fold(f"{title} {description}")
    langs = {lang for lang, phrases in LANGUAGE_REQUIREMENTS.items() if has_keyword(text, phrases)}
    if posting_language and posting_language != "en":
        langs.add(posting_language)
    return langs


def expand_career_paths(paths: set[str]) -> set[str]:
    """Map signup career-path values onto category tags."""
    expanded: set[str] = set()
    for path in paths:
        if path in OPEN_CAREER_PATHS:
            return set(ALL_CATEGORIES)
        expanded.add(CAREER_PATH_ALIASES.get(path, path))
    return expanded
