"""
South African bank name -> universal branch code resolution.

The branch code field on the MMX bank details tab only accepts numeric
codes, while the sheet carries free-text bank names (often misspelled).
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


# Universal/electronic branch codes, keyed by lowercase name or alias
BANK_BRANCH_CODES: Dict[str, str] = {
    # ABSA
    "absa": "632005",
    "absa bank": "632005",
    "absa bank limited": "632005",
    "absa bank ltd": "632005",
    "absa group": "632005",

    # Capitec
    "capitec": "470010",
    "capitec bank": "470010",
    "capitec bank limited": "470010",
    "capitec bank ltd": "470010",

    # FNB
    "fnb": "250655",
    "first national bank": "250655",
    "first national": "250655",
    "fnb bank": "250655",
    "first national bank limited": "250655",

    # Nedbank
    "nedbank": "198765",
    "nedbank limited": "198765",
    "nedbank ltd": "198765",
    "ned bank": "198765",

    # Standard Bank
    "standard bank": "051001",
    "standard bank of south africa": "051001",
    "standard bank limited": "051001",
    "standard bank ltd": "051001",
    "standard bank of sa": "051001",
    "sbsa": "051001",
    "stanbic": "051001",

    # Investec
    "investec": "580105",
    "investec bank": "580105",
    "investec bank limited": "580105",
    "investec bank ltd": "580105",
    "investec private bank": "580105",

    # African Bank
    "african bank": "430000",
    "african bank limited": "430000",
    "african bank ltd": "430000",

    # TymeBank
    "tymebank": "678910",
    "tyme bank": "678910",
    "tyme": "678910",

    # Discovery
    "discovery bank": "679000",
    "discovery": "679000",
    "discovery bank limited": "679000",

    # Bank Zero
    "bank zero": "888000",
    "bankzero": "888000",
    "bank zero limited": "888000",

    # Bidvest
    "bidvest bank": "462005",
    "bidvest": "462005",
    "bidvest bank limited": "462005",

    # Grindrod
    "grindrod bank": "223626",
    "grindrod": "223626",
    "grindrod bank limited": "223626",

    # Sasfin
    "sasfin": "683000",
    "sasfin bank": "683000",
    "sasfin bank limited": "683000",

    # Mercantile
    "mercantile bank": "450905",
    "mercantile": "450905",

    "old mutual": "462005",

    # Postbank
    "postbank": "460005",
    "post bank": "460005",
    "sa post office": "460005",
    "sapo": "460005",

    "ubank": "431010",
    "ubank limited": "431010",

    "access bank": "410506",
    "access bank sa": "410506",

    "albaraka bank": "800000",
    "albaraka": "800000",
    "al baraka": "800000",

    "hbz bank": "570100",
    "hbz": "570100",
    "habib bank zurich": "570100",

    "hsbc": "587000",
    "hsbc bank": "587000",

    "jpmorgan": "432000",
    "jp morgan": "432000",

    "citibank": "350005",
    "citi bank": "350005",
    "citibank na": "350005",

    "bank of china": "686000",

    "standard chartered": "730020",
    "standard chartered bank": "730020",

    # Historical
    "wizzit": "460005",
    "bank of athens": "410506",
}

# Fuzzy matching only runs against short canonical names so that
# "standard bank" typos never land on "standard chartered".
CANONICAL_BANK_NAMES: List[Tuple[str, str]] = [
    ("absa", "632005"),
    ("absa bank", "632005"),
    ("capitec", "470010"),
    ("capitec bank", "470010"),
    ("fnb", "250655"),
    ("first national bank", "250655"),
    ("nedbank", "198765"),
    ("standard bank", "051001"),
    ("sbsa", "051001"),
    ("investec", "580105"),
    ("african bank", "430000"),
    ("tymebank", "678910"),
    ("tyme bank", "678910"),
    ("discovery bank", "679000"),
    ("bank zero", "888000"),
    ("bidvest bank", "462005"),
    ("grindrod bank", "223626"),
    ("sasfin bank", "683000"),
    ("mercantile bank", "450905"),
    ("old mutual", "462005"),
    ("postbank", "460005"),
    ("ubank", "431010"),
    ("access bank", "410506"),
    ("albaraka bank", "800000"),
    ("hbz bank", "570100"),
    ("hsbc", "587000"),
    ("jpmorgan", "432000"),
    ("citibank", "350005"),
    ("bank of china", "686000"),
    ("standard chartered", "730020"),
]

_NUMERIC_CODE = re.compile(r"^\d{5,6}$")
_SUFFIX_TOKENS = re.compile(r"\b(bank|limited|ltd|of south africa|of sa|sa|group|pty)\b")


@dataclass(frozen=True)
class BranchCodeMatch:
    """Result of resolving a bank name."""
    code: str
    matched: bool
    strategy: str

    @property
    def is_numeric(self) -> bool:
        return bool(_NUMERIC_CODE.match(self.code))


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            if char_a == char_b:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j - 1], previous[j], current[j - 1]))
        previous = current
    return previous[-1]


def max_distance_for(name: str) -> int:
    if len(name) <= 5:
        return 1
    if len(name) <= 10:
        return 2
    return 3


def strip_suffixes(name: str) -> str:
    stripped = _SUFFIX_TOKENS.sub("", name)
    return re.sub(r"\s+", " ", stripped).strip()


def _substring_match(value: str) -> Optional[str]:
    for key, code in BANK_BRANCH_CODES.items():
        if key in value or value in key:
            return code
    return None


def _fuzzy_match(candidates: List[str]) -> Optional[Tuple[str, str, int]]:
    best = None
    for candidate in candidates:
        for name, code in CANONICAL_BANK_NAMES:
            distance = levenshtein(candidate, name)
            if distance > max_distance_for(name):
                continue
            if best is None or distance < best[2]:
                best = (name, code, distance)
    return best


def resolve_branch_code(bank_name_or_code: str) -> BranchCodeMatch:
    """
    Map a free-text bank name to its universal branch code.

    Strategies, first match wins: exact alias, numeric pass-through,
    substring, suffix-stripped exact/substring, Levenshtein fuzzy match.
    Unmatched input comes back unchanged with matched=False.
    """
    raw = bank_name_or_code or ""
    normalized = raw.strip().lower()

    if not normalized:
        return BranchCodeMatch(code=raw, matched=False, strategy="none")

    if normalized in BANK_BRANCH_CODES:
        return BranchCodeMatch(BANK_BRANCH_CODES[normalized], True, "exact")

    if _NUMERIC_CODE.match(normalized):
        return BranchCodeMatch(normalized, True, "numeric")

    code = _substring_match(normalized)
    if code:
        return BranchCodeMatch(code, True, "substring")

    stripped = strip_suffixes(normalized)
    if stripped:
        if stripped in BANK_BRANCH_CODES:
            return BranchCodeMatch(BANK_BRANCH_CODES[stripped], True, "stripped-exact")
        code = _substring_match(stripped)
        if code:
            return BranchCodeMatch(code, True, "stripped-substring")

    candidates = [normalized]
    if stripped and stripped != normalized:
        candidates.append(stripped)
    best = _fuzzy_match(candidates)
    if best:
        name, code, distance = best
        logger.info(f"Fuzzy matched bank '{raw}' -> '{name}' (distance={distance})")
        return BranchCodeMatch(code, True, "fuzzy")

    logger.warning(f"No branch code mapping found for bank '{raw}'")
    return BranchCodeMatch(code=raw, matched=False, strategy="none")
