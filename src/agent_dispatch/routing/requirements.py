"""Requirement extraction for agent routing.

Turns a raw request (free-text query plus optional attachment descriptors)
into an immutable ``TaskRequirements`` profile that the recommender scores
agents against.

Extraction is keyword and extension matching against the constant tables
below. It is a pure function: no I/O, deterministic, and it never raises.
Malformed or empty input yields the conservative default profile
(medium complexity, medium urgency, low compliance risk, no capabilities).

Usage:
    from agent_dispatch.routing.requirements import AttachmentDescriptor, extract_requirements

    requirements = extract_requirements(
        "Urgent: suspicious claim, photos of the damage attached",
        [AttachmentDescriptor(name="front.jpg", declared_type="image/jpeg", size_bytes=2_400_000)],
    )
    requirements.required_capabilities  # frozenset({"fraud_detection", "ocr", ...})
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
import re
from typing import Any

from agent_dispatch.core.errors import ValidationError
from agent_dispatch.core.types import Capability, Level, Result
from agent_dispatch.observability.logging import get_logger

log = get_logger(__name__)


# Capability tags inferred from query keywords (prefix match on words,
# substring match for phrases containing a space).
CAPABILITY_KEYWORDS: dict[Capability, tuple[str, ...]] = {
    "ocr": ("ocr", "scan", "photo", "image", "receipt", "handwritten", "digitiz", "foto"),
    "document_parsing": ("document", "fnol", "pdf", "attachment", "documento", "anexo"),
    "data_extraction": ("extract", "extrair", "data entry", "fields"),
    "fraud_detection": ("fraud", "fraude", "suspicious", "suspeit", "inconsisten"),
    "risk_assessment": ("claim", "sinistro", "severity", "damage", "dano", "accident", "acidente"),
    "risk_analysis": ("underwriting", "subscri", "proposal", "proposta"),
    "premium_calculation": ("premium", "prêmio", "premio", "quote", "pricing"),
    "coverage_analysis": ("coverage", "cobertura", "policy", "policies", "apólice", "apolice"),
    "legal_analysis": ("legal", "jurídic", "juridic", "lawsuit", "contract", "contrato", "clause"),
    "triage": ("question", "help", "dúvida", "duvida", "information", "informação", "support"),
}

COMPLEXITY_KEYWORDS: dict[Level, tuple[str, ...]] = {
    Level.HIGH: (
        "multiple", "múltiplo", "multiplo", "complex", "judicial", "fraud", "fraude",
        "international", "internacional", "litigation",
    ),
    Level.MEDIUM: (
        "analysis", "análise", "analise", "analyz", "evaluat", "avaliação", "verify",
        "verificação", "compliance", "review",
    ),
    Level.LOW: (
        "information", "informação", "question", "consulta", "dúvida", "duvida", "simple",
        "simples", "status",
    ),
}

URGENCY_KEYWORDS: dict[Level, tuple[str, ...]] = {
    Level.HIGH: (
        "urgent", "urgente", "emergency", "emergência", "emergencia", "asap", "immediately",
        "imediat", "critical", "important", "importante", "priorit",
    ),
    Level.LOW: ("no rush", "whenever", "low priority", "sem pressa", "when possible"),
}

COMPLIANCE_KEYWORDS: dict[Level, tuple[str, ...]] = {
    Level.HIGH: (
        "judicial", "lawsuit", "processo", "regulator", "regulamenta", "susep", "subpoena",
    ),
    Level.MEDIUM: ("compliance", "legal", "audit", "auditoria", "lgpd", "gdpr"),
}

EXTENSION_DOCUMENT_TYPES: dict[str, str] = {
    "pdf": "pdf",
    "jpg": "image",
    "jpeg": "image",
    "png": "image",
    "tif": "image",
    "tiff": "image",
    "heic": "image",
    "doc": "document",
    "docx": "document",
    "txt": "text",
    "csv": "spreadsheet",
    "xls": "spreadsheet",
    "xlsx": "spreadsheet",
    "eml": "email",
}

# Words in an attachment name (or query) that identify the kind of document.
DOCUMENT_KIND_HINTS: dict[str, str] = {
    "rg": "id-document",
    "cpf": "id-document",
    "cnh": "id-document",
    "passport": "id-document",
    "license": "id-document",
    "laudo": "assessment-report",
    "report": "assessment-report",
    "orcamento": "repair-estimate",
    "orçamento": "repair-estimate",
    "estimate": "repair-estimate",
    "invoice": "invoice",
    "nota": "invoice",
    "fiscal": "invoice",
    "receipt": "invoice",
    "apolice": "policy",
    "apólice": "policy",
    "policy": "policy",
    "contrato": "policy",
    "contract": "policy",
    "bo": "police-report",
    "ocorrencia": "police-report",
    "police": "police-report",
}

# Capabilities implied by attached document types.
DOCUMENT_TYPE_CAPABILITIES: dict[str, tuple[Capability, ...]] = {
    "image": ("ocr",),
    "pdf": ("ocr", "document_parsing"),
    "document": ("document_parsing",),
    "spreadsheet": ("data_extraction",),
    "policy": ("coverage_analysis",),
    "id-document": ("document_parsing",),
}

# Structural thresholds that force high complexity regardless of wording
HIGH_COMPLEXITY_ATTACHMENTS = 5
HIGH_COMPLEXITY_VOLUME_KB = 10_000.0
HIGH_COMPLEXITY_QUERY_CHARS = 1_500

_WORD_RE = re.compile(r"[\w\-]+", re.UNICODE)
_NAME_SPLIT_RE = re.compile(r"[\s_\-.]+")
_AMOUNT_RE = re.compile(r"(?:R\$|US\$|\$|€|£)\s*(\d[\d.,]*)")
_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b")

_CLAIM_TYPE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "auto": ("car", "vehicle", "veículo", "veiculo", "carro", "auto", "truck"),
    "property": ("house", "home", "residence", "casa", "residência", "residencia", "apartment"),
}


@dataclass(frozen=True, slots=True)
class AttachmentDescriptor:
    """Metadata for one attached document, as supplied by the document store.

    The engine reads these fields only; it never sees file content.

    Attributes:
        name: File name, e.g. "laudo_front.jpg".
        declared_type: MIME type or short type declared by the uploader.
        size_bytes: Size in bytes. Must be non-negative.
    """

    name: str
    declared_type: str | None = None
    size_bytes: int = 0


@dataclass(frozen=True, slots=True)
class TaskRequirements:
    """Structured requirement profile derived from one request.

    Immutable once produced. Tag sets are normalized to lower case.

    Attributes:
        document_types: Document type tags found in the request.
        complexity: Estimated task complexity.
        urgency: How quickly the caller needs an answer.
        required_capabilities: Capability tags an agent should have.
        estimated_data_volume: Approximate payload size in kilobytes.
        compliance_risk: Regulatory exposure of the request.
    """

    document_types: frozenset[str] = field(default_factory=frozenset)
    complexity: Level = Level.MEDIUM
    urgency: Level = Level.MEDIUM
    required_capabilities: frozenset[Capability] = field(default_factory=frozenset)
    estimated_data_volume: float = 0.0
    compliance_risk: Level = Level.LOW

    def __post_init__(self) -> None:
        object.__setattr__(self, "document_types", _normalize_tags(self.document_types))
        object.__setattr__(
            self, "required_capabilities", _normalize_tags(self.required_capabilities)
        )
        object.__setattr__(self, "complexity", Level(self.complexity))
        object.__setattr__(self, "urgency", Level(self.urgency))
        object.__setattr__(self, "compliance_risk", Level(self.compliance_risk))
        object.__setattr__(self, "estimated_data_volume", float(self.estimated_data_volume))

    @classmethod
    def default(cls) -> TaskRequirements:
        """Return the conservative profile used for empty or malformed input."""
        return cls()

    @property
    def is_wildcard(self) -> bool:
        """True when no capability is required, so every agent qualifies."""
        return not self.required_capabilities

    def merged_with(self, other: TaskRequirements) -> TaskRequirements:
        """Combine with a follow-up profile from the same conversation.

        Tag sets are unioned, levels take the higher of the two and data
        volumes add up.
        """
        return TaskRequirements(
            document_types=self.document_types | other.document_types,
            complexity=max(self.complexity, other.complexity, key=lambda lv: lv.rank),
            urgency=max(self.urgency, other.urgency, key=lambda lv: lv.rank),
            required_capabilities=self.required_capabilities | other.required_capabilities,
            estimated_data_volume=self.estimated_data_volume + other.estimated_data_volume,
            compliance_risk=max(
                self.compliance_risk, other.compliance_risk, key=lambda lv: lv.rank
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible primitives (sorted tag lists)."""
        return {
            "document_types": sorted(self.document_types),
            "complexity": self.complexity.value,
            "urgency": self.urgency.value,
            "required_capabilities": sorted(self.required_capabilities),
            "estimated_data_volume": self.estimated_data_volume,
            "compliance_risk": self.compliance_risk.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskRequirements:
        """Rebuild a profile serialized with ``to_dict``."""
        return cls(
            document_types=frozenset(data.get("document_types", ())),
            complexity=Level(data.get("complexity", Level.MEDIUM)),
            urgency=Level(data.get("urgency", Level.MEDIUM)),
            required_capabilities=frozenset(data.get("required_capabilities", ())),
            estimated_data_volume=float(data.get("estimated_data_volume", 0.0)),
            compliance_risk=Level(data.get("compliance_risk", Level.LOW)),
        )


def _normalize_tags(tags: Iterable[str]) -> frozenset[str]:
    return frozenset(t.strip().lower() for t in tags if t and t.strip())


def _words(text: str) -> list[str]:
    return _WORD_RE.findall(text.lower())


def _matches(keyword: str, words: Sequence[str], padded_text: str) -> bool:
    """Phrase keywords match as substrings; single words match as word prefixes."""
    if " " in keyword:
        return keyword in padded_text
    return any(word.startswith(keyword) for word in words)


def _any_match(keywords: Iterable[str], words: Sequence[str], padded_text: str) -> bool:
    return any(_matches(k, words, padded_text) for k in keywords)


def _validate_request(
    query: Any,
    attachments: Any,
) -> Result[tuple[str, tuple[AttachmentDescriptor, ...]], ValidationError]:
    """Check the raw request shape before any heuristics run."""
    if query is None:
        query = ""
    if not isinstance(query, str):
        return Result.err(
            ValidationError("Query must be a string", field="query", value=type(query).__name__)
        )

    try:
        entries = iter(attachments or ())
    except TypeError:
        return Result.err(
            ValidationError(
                "Attachments must be a sequence",
                field="attachments",
                value=type(attachments).__name__,
            )
        )

    items: list[AttachmentDescriptor] = []
    for index, attachment in enumerate(entries):
        if not isinstance(attachment, AttachmentDescriptor):
            return Result.err(
                ValidationError(
                    "Attachment must be an AttachmentDescriptor",
                    field=f"attachments[{index}]",
                    value=type(attachment).__name__,
                )
            )
        if not isinstance(attachment.name, str):
            return Result.err(
                ValidationError(
                    "Attachment name must be a string",
                    field=f"attachments[{index}].name",
                    value=type(attachment.name).__name__,
                )
            )
        if attachment.declared_type is not None and not isinstance(
            attachment.declared_type, str
        ):
            return Result.err(
                ValidationError(
                    "Attachment type must be a string",
                    field=f"attachments[{index}].declared_type",
                    value=type(attachment.declared_type).__name__,
                )
            )
        if not isinstance(attachment.size_bytes, int) or attachment.size_bytes < 0:
            return Result.err(
                ValidationError(
                    "Attachment size must be a non-negative integer",
                    field=f"attachments[{index}].size_bytes",
                    value=attachment.size_bytes,
                )
            )
        items.append(attachment)
    return Result.ok((query, tuple(items)))


def classify_attachment(attachment: AttachmentDescriptor) -> frozenset[str]:
    """Return the document type tags for one attachment.

    Combines the file-extension type, the declared MIME type, and any
    document-kind hint found in the file name.
    """
    tags: set[str] = set()
    name = attachment.name.lower()

    if "." in name:
        extension = name.rsplit(".", 1)[1]
        if extension in EXTENSION_DOCUMENT_TYPES:
            tags.add(EXTENSION_DOCUMENT_TYPES[extension])

    declared = (attachment.declared_type or "").lower()
    if declared.startswith("image/") or declared == "image":
        tags.add("image")
    elif "pdf" in declared:
        tags.add("pdf")
    elif "spreadsheet" in declared or "excel" in declared or declared == "text/csv":
        tags.add("spreadsheet")

    for token in _NAME_SPLIT_RE.split(name):
        if token in DOCUMENT_KIND_HINTS:
            tags.add(DOCUMENT_KIND_HINTS[token])

    return frozenset(tags)


def _assess_level(
    table: dict[Level, tuple[str, ...]],
    words: Sequence[str],
    padded_text: str,
    default: Level,
) -> Level:
    """Return the first level (high, medium, low order) whose keywords match."""
    for level in (Level.HIGH, Level.MEDIUM, Level.LOW):
        keywords = table.get(level)
        if keywords and _any_match(keywords, words, padded_text):
            return level
    return default


def extract_requirements(
    query: str | None,
    attachments: Sequence[AttachmentDescriptor] | None = None,
) -> TaskRequirements:
    """Derive a requirement profile from a raw request.

    Never raises: malformed input is logged and replaced by
    ``TaskRequirements.default()``.

    Args:
        query: Free-text request from the caller.
        attachments: Optional attachment descriptors.

    Returns:
        The extracted TaskRequirements.
    """
    validation = _validate_request(query, attachments)
    if validation.is_err:
        log.warning(
            "requirements.validation.failed",
            field=validation.error.field,
            error=validation.error.message,
        )
        return TaskRequirements.default()

    text, items = validation.value
    text = text.strip()
    if not text and not items:
        log.debug("requirements.defaulted", reason="empty_request")
        return TaskRequirements.default()

    words = _words(text)
    padded_text = f" {' '.join(words)} "

    capabilities: set[Capability] = {
        capability
        for capability, keywords in CAPABILITY_KEYWORDS.items()
        if _any_match(keywords, words, padded_text)
    }

    document_types: set[str] = set()
    for attachment in items:
        document_types |= classify_attachment(attachment)
    for doc_type in document_types:
        capabilities.update(DOCUMENT_TYPE_CAPABILITIES.get(doc_type, ()))

    volume_kb = (sum(a.size_bytes for a in items) + len(text.encode("utf-8"))) / 1024

    complexity = _assess_level(COMPLEXITY_KEYWORDS, words, padded_text, Level.MEDIUM)
    if (
        len(items) >= HIGH_COMPLEXITY_ATTACHMENTS
        or volume_kb >= HIGH_COMPLEXITY_VOLUME_KB
        or len(text) >= HIGH_COMPLEXITY_QUERY_CHARS
    ):
        complexity = Level.HIGH
    elif complexity == Level.LOW and len(capabilities) >= 3:
        complexity = Level.MEDIUM

    requirements = TaskRequirements(
        document_types=frozenset(document_types),
        complexity=complexity,
        urgency=_assess_level(URGENCY_KEYWORDS, words, padded_text, Level.MEDIUM),
        required_capabilities=frozenset(capabilities),
        estimated_data_volume=round(volume_kb, 3),
        compliance_risk=_assess_level(COMPLIANCE_KEYWORDS, words, padded_text, Level.LOW),
    )

    log.debug(
        "requirements.extracted",
        query_length=len(text),
        attachment_count=len(items),
        **requirements.to_dict(),
    )
    return requirements


def _parse_amount(raw: str) -> float | None:
    """Parse "1.234,56", "1,234.56", "50.000" or "50,5" into a float."""
    raw = raw.rstrip(".,")
    if not raw:
        return None
    if "," in raw and "." in raw:
        decimal_sep = "," if raw.rfind(",") > raw.rfind(".") else "."
        thousands_sep = "." if decimal_sep == "," else ","
        normalized = raw.replace(thousands_sep, "").replace(decimal_sep, ".")
    elif "," in raw or "." in raw:
        sep = "," if "," in raw else "."
        head, _, tail = raw.rpartition(sep)
        if len(tail) == 3 and head:
            normalized = raw.replace(sep, "")
        else:
            normalized = head.replace(sep, "") + "." + tail
    else:
        normalized = raw
    try:
        return float(normalized)
    except ValueError:
        return None


def extract_fields(query: str | None) -> dict[str, Any]:
    """Pull structured fields mentioned in the query text.

    Keys (present only when found):
        estimated_amount: First monetary amount, as a float.
        mentioned_date: First dd/mm/yyyy date, as written.
        claim_type: "auto" or "property".
        mentioned_documents: Sorted document kinds named in the text.

    Args:
        query: Free-text request.

    Returns:
        Dict of extracted fields; empty when nothing matched.
    """
    if not isinstance(query, str) or not query.strip():
        return {}

    data: dict[str, Any] = {}

    amount_match = _AMOUNT_RE.search(query)
    if amount_match:
        amount = _parse_amount(amount_match.group(1))
        if amount is not None:
            data["estimated_amount"] = amount

    date_match = _DATE_RE.search(query)
    if date_match:
        data["mentioned_date"] = date_match.group(0)

    words = _words(query)
    padded_text = f" {' '.join(words)} "
    for claim_type, keywords in _CLAIM_TYPE_KEYWORDS.items():
        if any(word in keywords for word in words):
            data["claim_type"] = claim_type
            break

    mentioned = sorted({DOCUMENT_KIND_HINTS[w] for w in words if w in DOCUMENT_KIND_HINTS})
    if "nota fiscal" in padded_text and "invoice" not in mentioned:
        mentioned = sorted({*mentioned, "invoice"})
    if mentioned:
        data["mentioned_documents"] = mentioned

    return data


class RequirementExtractor:
    """Stateless requirement extractor.

    Holds no state; two instances always produce the same profile for the
    same request, so it is safe to share across threads and sessions.

    Example:
        extractor = RequirementExtractor()
        requirements = extractor.extract("Review contract clauses", [])
        fields = extractor.extract_fields("Car accident on 03/02/2024, R$ 12.500,00")
    """

    __slots__ = ()

    def extract(
        self,
        query: str | None,
        attachments: Sequence[AttachmentDescriptor] | None = None,
    ) -> TaskRequirements:
        """Derive a TaskRequirements profile. See ``extract_requirements``."""
        return extract_requirements(query, attachments)

    def extract_fields(self, query: str | None) -> dict[str, Any]:
        """Pull structured fields from the query. See ``extract_fields``."""
        return extract_fields(query)
