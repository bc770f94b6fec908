"""Evidence-based risk flag detection over interview answers."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from enum import Enum

import structlog

from ..schemas import InterviewSubmission, WeightSet


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


@dataclass(slots=True, frozen=True)
class RiskFlag:
    """A triggered flag together with the literal evidence behind it."""

    code: str
    name: str
    severity: Severity
    penalty: float
    evidence: tuple[str, ...] = ()
    causes_auto_reject: bool = False

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "name": self.name,
            "severity": self.severity.value,
            "penalty": self.penalty,
            "evidence": list(self.evidence),
            "causes_auto_reject": self.causes_auto_reject,
        }


@dataclass(frozen=True)
class FlagDefinition:
    code: str
    name: str
    severity: Severity
    keywords: tuple[str, ...] = ()
    causes_auto_reject: bool = False
    detect_shouting: bool = False


DEFAULT_CATALOGUE: tuple[FlagDefinition, ...] = (
    FlagDefinition(
        code="RF_BLAME",
        name="Blame shifting",
        severity=Severity.HIGH,
        keywords=(
            "not my fault",
            "their fault",
            "the crew did not listen",
            "because of the officers",
            "because of the company",
            "someone else's mistake",
            "onlarin hatasi",
            "benim hatam degil",
            "onun sucu",
            "onlarin sucu",
            "ekip beni dinlemedi",
            "yoneticiler yuzunden",
            "sistem yuzunden",
            "baska birinin hatasi",
            "ekip desteklemedi",
            "beni desteklemediler",
        ),
    ),
    FlagDefinition(
        code="RF_INCONSIST",
        name="Inconsistency",
        severity=Severity.HIGH,
        keywords=(
            "that is not what i said",
            "you misunderstood",
            "not exactly",
            "demek istedim",
            "yanlis anladin",
            "tam olarak degil",
            "oyle demedim",
        ),
    ),
    FlagDefinition(
        code="RF_EGO",
        name="Ego dominance",
        severity=Severity.MEDIUM,
        keywords=(
            "i am the best",
            "nobody is better than me",
            "i can handle everything alone",
            "the others are useless",
            "they cannot manage without me",
            "en iyi ben",
            "benden iyi yok",
            "tek basima hallederim",
            "herkesten iyiyim",
            "digerleri yetersiz",
            "ben olmasam olmaz",
            "bana ihtiyaclari var",
            "kimse benim kadar",
        ),
    ),
    FlagDefinition(
        code="RF_AVOID",
        name="Avoidance of responsibility",
        severity=Severity.MEDIUM,
        keywords=(
            "not my job",
            "not my problem",
            "i refuse to",
            "benim isim degil",
            "sorumluluk almam",
            "ben karismam",
            "beni ilgilendirmez",
            "gorevim degil",
            "bana ne",
        ),
    ),
    FlagDefinition(
        code="RF_AGGRESSION",
        name="Aggressive language",
        severity=Severity.CRITICAL,
        keywords=(
            "idiot",
            "stupid",
            "moron",
            "i would punch",
            "i would hit",
            "shut up",
            "aptal",
            "salak",
            "gerizekali",
            "ahmak",
            "dangalak",
            "beyinsiz",
            "budala",
            "embesil",
            "sikeyim",
            "lanet olsun",
            "sert cikarim",
            "bagiririm",
        ),
        causes_auto_reject=True,
        detect_shouting=True,
    ),
    FlagDefinition(
        code="RF_UNSTABLE",
        name="Instability",
        severity=Severity.MEDIUM,
        keywords=(
            "changed ships many times",
            "left after 3 months",
            "never stayed long",
            "cok is degistirdim",
            "surekli degisim",
            "kisa sureli calistim",
            "3 ayda ayrildim",
            "hep problem yasadim",
            "hicbir yerde tutunamadim",
        ),
    ),
)

_TURKISH_FOLD = str.maketrans({"ı": "i", "İ": "i", "ş": "s", "ğ": "g", "ç": "c", "ö": "o", "ü": "u"})

_SHOUT_WORD_RE = re.compile(r"\b[A-Z]{3,}\b")
_FLAG_CODE_RE = re.compile(r"^[A-Z][A-Z0-9_]*$")


def normalize_text(text: str) -> str:
    """Lower-case and strip diacritics so keyword matching is accent-insensitive."""
    folded = text.translate(_TURKISH_FOLD).lower()
    decomposed = unicodedata.normalize("NFKD", folded)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


class RiskFlagDetector:
    """Runs the flag catalogue against answer text and reviewer evidence."""

    method = "risk_flags"

    def __init__(
        self,
        *,
        catalogue: tuple[FlagDefinition, ...] | None = None,
        shouting_min_words: int = 3,
    ) -> None:
        self._catalogue = catalogue or DEFAULT_CATALOGUE
        self._definitions = {definition.code: definition for definition in self._catalogue}
        self._patterns = {
            definition.code: [
                (keyword, re.compile(r"\b" + re.escape(normalize_text(keyword)) + r"\b"))
                for keyword in definition.keywords
            ]
            for definition in self._catalogue
        }
        self._shouting_min_words = shouting_min_words
        self._logger = structlog.get_logger(__name__)

    def definition(self, code: str) -> FlagDefinition | None:
        return self._definitions.get(code)

    def detect(
        self,
        submission: InterviewSubmission,
        weights: WeightSet | None = None,
    ) -> list[RiskFlag]:
        raw_text = submission.combined_text()
        text = normalize_text(raw_text)
        evidence: dict[str, list[str]] = {}

        for definition in self._catalogue:
            matches = [
                keyword
                for keyword, pattern in self._patterns[definition.code]
                if pattern.search(text)
            ]
            if definition.detect_shouting:
                shout = self._shouting_evidence(raw_text)
                if shout:
                    matches.append(shout)
            if matches:
                evidence[definition.code] = matches

        for answer in submission.ordered_answers():
            for raw_code in answer.evidence_flags:
                code = raw_code.strip().upper()
                if not _FLAG_CODE_RE.match(code):
                    self._logger.warning(
                        "risk_flags.invalid_reviewer_code",
                        interview_id=submission.interview_id,
                        slot=answer.slot,
                        code=raw_code,
                    )
                    continue
                evidence.setdefault(code, []).append(f"slot {answer.slot}: reviewer flag")

        ordered_codes = [d.code for d in self._catalogue if d.code in evidence]
        ordered_codes.extend(code for code in evidence if code not in self._definitions)

        return [self._build_flag(code, evidence[code], weights) for code in ordered_codes]

    def _build_flag(self, code: str, evidence: list[str], weights: WeightSet | None) -> RiskFlag:
        definition = self._definitions.get(code)
        penalty = weights.flag_penalty(code) if weights is not None else 0.0
        if definition is None:
            return RiskFlag(
                code=code,
                name=code,
                severity=Severity.LOW,
                penalty=penalty,
                evidence=tuple(evidence),
            )
        return RiskFlag(
            code=code,
            name=definition.name,
            severity=definition.severity,
            penalty=penalty,
            evidence=tuple(evidence),
            causes_auto_reject=definition.causes_auto_reject,
        )

    def _shouting_evidence(self, raw_text: str) -> str | None:
        if "!!" not in raw_text:
            return None
        words = _SHOUT_WORD_RE.findall(raw_text)
        if len(words) < self._shouting_min_words:
            return None
        return "shouting: " + " ".join(words[: self._shouting_min_words])



def highest_severity(flags: list[RiskFlag]) -> RiskFlag | None:
    """First flag with the highest severity, or ``None`` for an empty list."""
    best: RiskFlag | None = None
    for flag in flags:
        if best is None or flag.severity.rank > best.severity.rank:
            best = flag
    return best


__all__ = [
    "DEFAULT_CATALOGUE",
    "FlagDefinition",
    "RiskFlag",
    "RiskFlagDetector",
    "Severity",
    "highest_severity",
    "normalize_text",
]
