"""
Point-in-time snapshot of the input elements on a page.

The classifier only ever sees this snapshot, never the live page. Each
scanned input gets a stable ``data-codefill-handle`` attribute so the
autofill driver can find it again later.
"""
import json
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger("codefill.snapshot")

HANDLE_ATTRIBUTE = "data-codefill-handle"

SNAPSHOT_SCRIPT = """
const ATTRS = ['name', 'id', 'class', 'aria-label', 'placeholder', 'data-testid', 'autocomplete'];
const parents = new Map();
const elements = [];
for (const el of Array.from(document.querySelectorAll('input'))) {
    try {
        let handle = el.getAttribute('%(attr)s');
        if (handle === null) {
            window.__codefillSeq = (window.__codefillSeq || 0) + 1;
            handle = String(window.__codefillSeq);
            el.setAttribute('%(attr)s', handle);
        }
        const parent = el.parentElement;
        let parentKey = null;
        if (parent) {
            if (!parents.has(parent)) parents.set(parent, parents.size);
            parentKey = parents.get(parent);
        }
        const attributes = {};
        for (const name of ATTRS) {
            const value = el.getAttribute(name);
            if (value !== null) attributes[name] = value;
        }
        const rect = el.getBoundingClientRect();
        const style = window.getComputedStyle(el);
        elements.push({
            handle: Number(handle),
            type: el.getAttribute('type'),
            attributes: attributes,
            disabled: !!el.disabled,
            readonly: !!el.readOnly,
            connected: el.isConnected,
            value: el.value || '',
            max_length: el.hasAttribute('maxlength') ? el.maxLength : null,
            size: el.hasAttribute('size') ? el.size : null,
            width: rect.width,
            height: rect.height,
            display: style.display,
            visibility: style.visibility,
            opacity: style.opacity,
            parent: parentKey,
        });
    } catch (e) {
        // element removed mid-scan
    }
}
return JSON.stringify({
    url: location.href,
    body_text: document.body ? document.body.innerText : '',
    elements: elements,
});
""" % {"attr": HANDLE_ATTRIBUTE}


class ElementSnapshot(BaseModel):
    """One <input> as it looked when the snapshot was taken."""
    handle: int
    type: Optional[str] = Field(default=None, description="type attribute, None when undeclared")
    attributes: Dict[str, str] = Field(default_factory=dict)
    disabled: bool = False
    readonly: bool = False
    connected: bool = True
    value: str = ""
    max_length: Optional[int] = Field(default=None, description="declared maxlength")
    size: Optional[int] = Field(default=None, description="declared size")
    width: float = 0.0
    height: float = 0.0
    display: str = ""
    visibility: str = ""
    opacity: str = "1"
    parent: Optional[int] = Field(default=None, description="opaque key of the parent container")

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        if value is None:
            return None
        value = str(value).strip().lower()
        return value or None

    @field_validator("max_length", "size", mode="before")
    @classmethod
    def _drop_negative(cls, value):
        # the DOM reports -1 for an absent maxlength
        if value is None:
            return None
        value = int(value)
        return value if value >= 0 else None

    @field_validator("opacity", mode="before")
    @classmethod
    def _opacity_to_str(cls, value):
        return "1" if value is None else str(value)

    @field_validator("value", mode="before")
    @classmethod
    def _value_to_str(cls, value):
        return "" if value is None else str(value)

    def attr(self, name: str) -> str:
        return self.attributes.get(name, "")


class PageSnapshot(BaseModel):
    url: str = ""
    body_text: str = ""
    elements: List[ElementSnapshot] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict) -> "PageSnapshot":
        """Build a snapshot from raw collector output, skipping malformed elements."""
        elements = []
        for raw in payload.get("elements") or []:
            try:
                elements.append(ElementSnapshot.model_validate(raw))
            except ValidationError as exc:
                logger.warning("[SCAN] skipping malformed element: %s", str(exc)[:120])
        return cls(
            url=str(payload.get("url") or ""),
            body_text=str(payload.get("body_text") or ""),
            elements=elements,
        )

    def get(self, handle: int) -> Optional[ElementSnapshot]:
        for element in self.elements:
            if element.handle == handle:
                return element
        return None


def capture_snapshot(page) -> PageSnapshot:
    """Collect a PageSnapshot from a live DrissionPage tab."""
    raw = page.run_js(SNAPSHOT_SCRIPT)
    if isinstance(raw, str):
        payload = json.loads(raw) if raw else {}
    elif isinstance(raw, dict):
        payload = raw
    else:
        payload = {}
    snapshot = PageSnapshot.from_payload(payload)
    logger.debug("[SCAN] captured %d inputs from %s", len(snapshot.elements), snapshot.url)
    return snapshot
