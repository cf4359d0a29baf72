"""Name-based domain analysis.

Heuristic signals derived from the domain name alone: rarity and
brandability for scoring, plus search-interest estimates used when the
live search-trend provider cannot answer. Shorter, pronounceable,
crypto-native names score higher, mirroring how the secondary market
prices them.
"""

import re
from datetime import datetime, timedelta
from typing import Iterable

from domatrend.clock import as_utc

# TLD multipliers for estimated search volume
_TLD_VOLUME_MULTIPLIERS: dict[str, float] = {
    "com": 2.5,
    "org": 1.8,
    "net": 1.4,
    "eth": 2.2,
    "crypto": 1.9,
    "nft": 1.7,
    "dao": 1.6,
    "defi": 1.8,
    "ai": 2.0,
    "web3": 1.9,
}

_TRENDING_KEYWORDS: dict[str, float] = {
    "crypto": 1.6, "nft": 1.5, "dao": 1.4, "defi": 1.5,
    "web3": 1.6, "blockchain": 1.4, "ai": 1.7, "metaverse": 1.3,
    "game": 1.3, "token": 1.4, "coin": 1.3, "swap": 1.2,
}

_TRENDING_SECTORS: dict[str, float] = {
    "ai": 0.4, "artificial": 0.4, "machine": 0.3, "learning": 0.3,
    "crypto": 0.3, "bitcoin": 0.4, "ethereum": 0.3, "blockchain": 0.2,
    "nft": 0.2, "dao": 0.3, "defi": 0.3, "web3": 0.3,
    "metaverse": 0.2, "vr": 0.2, "ar": 0.2, "gaming": 0.1,
}

_DECLINING_SECTORS: dict[str, float] = {
    "old": -0.2, "legacy": -0.2, "traditional": -0.1,
}

_TLD_TRENDS: dict[str, float] = {
    "ai": 0.3, "crypto": 0.2, "nft": 0.1, "dao": 0.2,
    "defi": 0.2, "web3": 0.2, "eth": 0.1,
}

# TLD scarcity bonus for rarity; unknown suffixes get UNKNOWN_TLD_RARITY
_TLD_RARITY: dict[str, int] = {
    "com": 0,
    "org": 5,
    "net": 5,
    "eth": 20,
    "crypto": 25,
    "nft": 20,
    "dao": 25,
    "defi": 20,
    "ai": 30,
    "web3": 25,
}
UNKNOWN_TLD_RARITY = 15

_BASE_GEO_DISTRIBUTION: dict[str, float] = {
    "US": 40, "UK": 15, "DE": 10, "JP": 8, "CA": 7, "AU": 5,
    "FR": 4, "NL": 3, "SG": 3, "CH": 2, "OTHER": 3,
}

_DICTIONARY_WORDS = frozenset({
    "crypto", "nft", "dao", "defi", "web3", "ai", "art", "game", "token",
    "coin", "swap", "trade", "market", "finance", "tech", "digital", "meta",
})

_PURE_LETTERS_RE = re.compile(r"^[a-z]+$")
_PURE_DIGITS_RE = re.compile(r"^\d+$")
_LETTERS_THEN_DIGITS_RE = re.compile(r"^[a-z]+\d+$")
_VOWEL_RE = re.compile(r"[aeiou]")
_DOUBLE_LETTER_RE = re.compile(r"(.)\1")
_CV_START_RE = re.compile(r"^[bcdfghjklmnpqrstvwxyz][aeiou]")
_AWKWARD_PAIRS = ("xq", "zx", "qj")


def extract_keyword(domain_name: str) -> str:
    """Lowercase label before the first dot: "Crypto.eth" -> "crypto"."""
    keyword = domain_name.split(".")[0].lower()
    return keyword or domain_name.lower()


def extract_tld(domain_name: str) -> str:
    if "." not in domain_name:
        return ""
    return domain_name.rsplit(".", 1)[-1].lower()


def calculate_brandability(name: str) -> float:
    """Brandability in [0, 1]: length sweet spot, pronounceability, memorable patterns."""
    if not name:
        return 0.0
    score = 0.5

    if 4 <= len(name) <= 8:
        score += 0.2
    elif len(name) < 4 or len(name) > 10:
        score -= 0.1

    vowel_ratio = len(_VOWEL_RE.findall(name)) / len(name)
    if 0.2 <= vowel_ratio <= 0.4:
        score += 0.2
    elif vowel_ratio < 0.1 or vowel_ratio > 0.6:
        score -= 0.1

    if any(pair in name for pair in _AWKWARD_PAIRS):
        score -= 0.1

    if _DOUBLE_LETTER_RE.search(name):
        score += 0.1
    if _CV_START_RE.match(name):
        score += 0.1

    return max(0.0, min(1.0, score))


def is_dictionary_word(name: str) -> bool:
    return name.lower() in _DICTIONARY_WORDS


def calculate_domain_rarity(domain_name: str) -> float:
    """Rarity score 0-100 from length, TLD scarcity, lexical pattern and brandability."""
    name = extract_keyword(domain_name)
    tld = extract_tld(domain_name)

    rarity = 30.0

    length = len(name)
    if length <= 2:
        rarity += 40
    elif length <= 3:
        rarity += 35
    elif length <= 4:
        rarity += 25
    elif length <= 5:
        rarity += 15
    elif length <= 6:
        rarity += 10
    elif length <= 7:
        rarity += 5

    rarity += _TLD_RARITY.get(tld, UNKNOWN_TLD_RARITY)

    if _PURE_LETTERS_RE.match(name):
        rarity += 5
    if _PURE_DIGITS_RE.match(name):
        rarity += 15
    if _LETTERS_THEN_DIGITS_RE.match(name):
        rarity += 10
    if "-" in name:
        rarity -= 5
    if "_" in name:
        rarity -= 8

    rarity += calculate_brandability(name) * 10

    if is_dictionary_word(name):
        rarity += 10

    return max(0.0, min(100.0, rarity))


def calculate_liquidity(
    observed_at: Iterable[datetime], now: datetime, window_days: int = 30
) -> float:
    """Activity-rate liquidity 0-100.

    Events inside the lookback window relative to the window length in
    days: one event per day or more saturates at 100.
    """
    if window_days <= 0:
        return 0.0
    cutoff = now - timedelta(days=window_days)
    recent = sum(1 for ts in observed_at if as_utc(ts) > cutoff)
    return min(100.0, recent / window_days * 100)


def analyze_search_volume(domain_name: str) -> float:
    """Estimated search interest 0-100 from TLD, length, keywords and brandability."""
    name = extract_keyword(domain_name)
    tld = extract_tld(domain_name)

    volume = 50.0
    volume *= _TLD_VOLUME_MULTIPLIERS.get(tld, 1.0)
    volume *= max(0.2, 1 - (len(name) - 3) * 0.08)

    for keyword, multiplier in _TRENDING_KEYWORDS.items():
        if keyword in name:
            volume *= multiplier

    volume *= calculate_brandability(name)
    return float(round(max(0.0, min(100.0, volume))))


def analyze_trend_direction(domain_name: str) -> float:
    """Estimated trend in [-1, 1] from sector keywords, TLD and length."""
    name = extract_keyword(domain_name)
    tld = extract_tld(domain_name)

    trend = 0.0
    for keyword, value in _TRENDING_SECTORS.items():
        if keyword in name:
            trend += value
    for keyword, value in _DECLINING_SECTORS.items():
        if keyword in name:
            trend += value

    trend += _TLD_TRENDS.get(tld, 0.0)

    if len(name) <= 4:
        trend += 0.1
    elif len(name) >= 10:
        trend -= 0.1

    return max(-1.0, min(1.0, trend))


def generate_related_queries(domain_name: str) -> list[str]:
    name = extract_keyword(domain_name)
    tld = extract_tld(domain_name)

    queries = [name, f"{name} {tld}".strip(), f"buy {name}", f"{name} price"]
    if "crypto" in name:
        queries.extend([f"{name} cryptocurrency", f"{name} blockchain"])
    if "nft" in name:
        queries.extend([f"{name} nft collection", f"{name} digital art"])
    return queries[:5]


def analyze_geographic_data(domain_name: str) -> dict[str, float]:
    name = extract_keyword(domain_name)
    tld = extract_tld(domain_name)

    geo = dict(_BASE_GEO_DISTRIBUTION)

    if "crypto" in name or "bitcoin" in name or tld == "crypto":
        geo["US"] += 10
        geo["SG"] += 5
        geo["CH"] += 3

    if "ai" in name or "artificial" in name or tld == "ai":
        geo["US"] += 15
        geo["JP"] += 5
        geo["SG"] += 3

    if "euro" in name or "eu" in name:
        geo["DE"] += 10
        geo["FR"] += 5
        geo["NL"] += 3

    return geo
