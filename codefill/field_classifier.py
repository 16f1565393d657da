"""
Locate the input on a page that is asking for a verification code.

Three tiers, each tried only when the previous one found nothing:

1. explicit markers (autocomplete="one-time-code", then name/id/class/... hints)
2. segmented groups (4-8 single-character inputs sharing a parent)
3. a short empty input on a page whose text talks about codes
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from codefill.page_snapshot import ElementSnapshot, PageSnapshot

logger = logging.getLogger("codefill.classifier")

MARKER_VOCABULARY = ("otp", "code", "verify", "token", "2fa", "mfa", "pin", "verification")
MARKER_ATTRIBUTES = ("name", "id", "class", "data-testid", "aria-label", "placeholder")
TEXT_CAPABLE_TYPES = (None, "text", "number", "tel")

SEGMENT_MIN = 4
SEGMENT_MAX = 8
SMALL_FIELD_MAX_CHARS = 8
SMALL_FIELD_MAX_WIDTH = 300

CONTEXT_PATTERNS = [
    re.compile(r"enter\s+(?:the\s+)?(?:verification|security|confirmation|login|sign[- ]?in)\s*code", re.IGNORECASE),
    re.compile(r"we\s+(?:sent|emailed)\s+(?:a\s+|you\s+a\s+)?code", re.IGNORECASE),
    re.compile(r"check\s+your\s+(?:email|inbox)", re.IGNORECASE),
    re.compile(r"one[- ]?time\s+(?:password|code|pin)", re.IGNORECASE),
    re.compile(r"enter\s+(?:the\s+)?(?:\d[- ]?digit\s+)?code", re.IGNORECASE),
    re.compile(r"verification\s+code", re.IGNORECASE),
    re.compile(r"confirm(?:ation)?\s+code", re.IGNORECASE),
    re.compile(r"two[- ]?factor", re.IGNORECASE),
    re.compile(r"2fa\s+code", re.IGNORECASE),
    re.compile(r"authentication\s+code", re.IGNORECASE),
]


class InvalidSnapshotError(ValueError):
    """Raised when classify() is called without a usable snapshot."""


class FieldKind(str, Enum):
    SINGLE = "single"
    SEGMENTED = "segmented"


@dataclass(frozen=True)
class CandidateField:
    """A fillable code target; handles refer to the snapshot it came from."""
    kind: FieldKind
    handles: Tuple[int, ...]

    def __post_init__(self) -> None:
        if self.kind == FieldKind.SINGLE and len(self.handles) != 1:
            raise ValueError("single field needs exactly one handle")
        if self.kind == FieldKind.SEGMENTED and not SEGMENT_MIN <= len(self.handles) <= SEGMENT_MAX:
            raise ValueError(f"segmented field needs {SEGMENT_MIN}-{SEGMENT_MAX} handles, got {len(self.handles)}")

    @classmethod
    def single(cls, handle: int) -> "CandidateField":
        return cls(kind=FieldKind.SINGLE, handles=(handle,))

    @classmethod
    def segmented(cls, handles) -> "CandidateField":
        return cls(kind=FieldKind.SEGMENTED, handles=tuple(handles))

    @property
    def handle(self) -> int:
        return self.handles[0]

    def __len__(self) -> int:
        return len(self.handles)


def is_visible(element: ElementSnapshot) -> bool:
    """Hidden, disabled, read-only, detached or zero-area inputs are not eligible."""
    if not element.connected:
        return False
    if element.type == "hidden" or element.disabled or element.readonly:
        return False
    if element.width <= 0 or element.height <= 0:
        return False
    if element.display == "none" or element.visibility == "hidden":
        return False
    try:
        return float(element.opacity) != 0.0
    except ValueError:
        return element.opacity.strip() != "0"


def _is_text_capable(element: ElementSnapshot) -> bool:
    return element.type in TEXT_CAPABLE_TYPES


def _marker_predicates() -> List[Tuple[str, Callable[[ElementSnapshot], bool]]]:
    predicates = [
        ("autocomplete=one-time-code", lambda el: el.attr("autocomplete").strip().lower() == "one-time-code"),
    ]
    for attribute in MARKER_ATTRIBUTES:
        for word in MARKER_VOCABULARY:
            predicates.append((
                f"{attribute}*={word}",
                lambda el, a=attribute, w=word: w in el.attr(a).lower(),
            ))
    return predicates


MARKER_PREDICATES = _marker_predicates()


def _find_marked_field(elements: List[ElementSnapshot]) -> Optional[CandidateField]:
    for label, predicate in MARKER_PREDICATES:
        for element in elements:
            if predicate(element) and is_visible(element):
                logger.debug("[SCAN] marker %s matched handle %d", label, element.handle)
                return CandidateField.single(element.handle)
    return None


def _find_segmented_field(elements: List[ElementSnapshot]) -> Optional[CandidateField]:
    groups: Dict[int, List[int]] = {}
    for element in elements:
        if element.parent is None or not _is_text_capable(element) or not is_visible(element):
            continue
        if element.max_length == 1 or element.size == 1:
            groups.setdefault(element.parent, []).append(element.handle)

    for parent, handles in groups.items():
        if SEGMENT_MIN <= len(handles) <= SEGMENT_MAX:
            logger.debug("[SCAN] segmented group of %d under parent %d", len(handles), parent)
            return CandidateField.segmented(handles)
    return None


def page_has_code_context(text: str) -> bool:
    return any(pattern.search(text or "") for pattern in CONTEXT_PATTERNS)


def _is_small_field(element: ElementSnapshot) -> bool:
    if element.max_length is not None and element.max_length <= SMALL_FIELD_MAX_CHARS:
        return True
    if element.size is not None and element.size <= SMALL_FIELD_MAX_CHARS:
        return True
    return element.width < SMALL_FIELD_MAX_WIDTH


def _find_contextual_field(snapshot: PageSnapshot) -> Optional[CandidateField]:
    if not page_has_code_context(snapshot.body_text):
        return None
    for element in snapshot.elements:
        if not _is_text_capable(element) or element.value or not is_visible(element):
            continue
        if _is_small_field(element):
            logger.debug("[SCAN] contextual fallback picked handle %d", element.handle)
            return CandidateField.single(element.handle)
    return None


def classify(snapshot: PageSnapshot) -> Optional[CandidateField]:
    """Return the best code-entry target on the page, or None."""
    if snapshot is None:
        raise InvalidSnapshotError("snapshot is required")

    elements = snapshot.elements
    field = _find_marked_field(elements)
    if field is None:
        field = _find_segmented_field(elements)
    if field is None:
        field = _find_contextual_field(snapshot)
    if field is None:
        logger.debug("[SCAN] no code field on %s", snapshot.url or "page")
    return field
