"""
Shared fixtures and fakes for the codefill tests.
"""

import pytest

from codefill.page_snapshot import ElementSnapshot, PageSnapshot


def make_input(handle, **overrides):
    """A visible, enabled, empty text input unless told otherwise."""
    data = {
        "handle": handle,
        "type": "text",
        "attributes": {},
        "width": 120.0,
        "height": 32.0,
        "display": "inline-block",
        "visibility": "visible",
        "opacity": "1",
        "parent": 100,
    }
    data.update(overrides)
    return ElementSnapshot.model_validate(data)


def make_digit_boxes(count, start=1, parent=200):
    return [
        make_input(start + i, max_length=1, width=40.0, parent=parent)
        for i in range(count)
    ]


def make_snapshot(elements, body_text="", url="https://example.com/login"):
    return PageSnapshot(url=url, body_text=body_text, elements=list(elements))


class FakeElement:
    def __init__(self, handle):
        self.handle = handle
        self.js_calls = []
        self.typed = []
        self.clicked = 0
        self.fail_typing = False

    def run_js(self, script, *args):
        self.js_calls.append((script, args))

    def click(self):
        self.clicked += 1

    def input(self, text, clear=False):
        if self.fail_typing and not clear:
            raise RuntimeError("element not interactable")
        self.typed.append((text, clear))


class FakePage:
    """Minimal stand-in for a DrissionPage tab."""

    def __init__(self, payload=None, handles=()):
        self.payload = payload or {"url": "", "body_text": "", "elements": []}
        self.elements = {h: FakeElement(h) for h in handles}
        self.selectors = []

    def run_js(self, script, *args):
        return self.payload

    def ele(self, selector, timeout=None):
        self.selectors.append(selector)
        for handle, element in self.elements.items():
            if selector.endswith(f"='{handle}']"):
                return element
        return None


@pytest.fixture
def fake_page():
    return FakePage()
