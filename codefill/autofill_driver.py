"""
Write a code into a detected field on a live DrissionPage tab.
"""
import logging
import random
import time

from codefill.field_classifier import CandidateField, FieldKind
from codefill.page_snapshot import HANDLE_ATTRIBUTE

logger = logging.getLogger("codefill.autofill")

FILL_MODES = ("native", "typing")

# assign through the prototype setter so React/Vue/Angular see the change,
# then fire the events those frameworks listen to
NATIVE_FILL_SCRIPT = """
this.focus();
const setter = Object.getOwnPropertyDescriptor(window.HTMLInputElement.prototype, 'value');
if (setter && setter.set) {
    setter.set.call(this, arguments[0]);
} else {
    this.value = arguments[0];
}
this.dispatchEvent(new Event('input', {bubbles: true}));
this.dispatchEvent(new Event('change', {bubbles: true}));
this.dispatchEvent(new KeyboardEvent('keyup', {bubbles: true}));
"""


class StaleFieldError(Exception):
    """A handle from an earlier snapshot no longer resolves to an element."""


class AutofillDriver:
    def __init__(self, page, mode: str = "native", log_callback=None) -> None:
        if mode not in FILL_MODES:
            raise ValueError(f"unknown fill mode: {mode}")
        self.page = page
        self.mode = mode
        self.log_callback = log_callback

    def fill(self, field: CandidateField, code: str) -> int:
        """Write the code into the field; returns how many inputs were written.

        Segmented fields get one character per input, stopping when the code
        runs out.
        """
        if not code:
            return 0

        written = 0
        for handle, char in zip(field.handles, self._chunks(field, code)):
            element = self._locate(handle)
            self._fill_element(element, char)
            written += 1

        self._log("info", f"⌨️ filled {written} input(s) ({field.kind.value})")
        return written

    @staticmethod
    def _chunks(field: CandidateField, code: str):
        if field.kind == FieldKind.SINGLE:
            return [code]
        return list(code)

    def _locate(self, handle: int):
        element = self.page.ele(f"css:[{HANDLE_ATTRIBUTE}='{handle}']", timeout=1)
        if not element:
            raise StaleFieldError(f"element {handle} is gone")
        return element

    def _fill_element(self, element, value: str) -> None:
        if self.mode == "typing":
            if not self._simulate_human_input(element, value):
                self._log("warning", "⚠️ typing failed, falling back to direct input")
                element.input(value, clear=True)
            return
        element.run_js(NATIVE_FILL_SCRIPT, value)

    def _simulate_human_input(self, element, text: str) -> bool:
        """Click, then type one character at a time with human-like delays."""
        try:
            element.click()
            time.sleep(random.uniform(0.1, 0.3))

            for char in text:
                element.input(char)
                time.sleep(random.uniform(0.05, 0.15))

            time.sleep(random.uniform(0.2, 0.5))
            return True
        except Exception as e:
            logger.debug("[FILL] typing error: %s", e)
            return False

    def _log(self, level: str, message: str) -> None:
        log_fn = getattr(logger, level, logger.info)
        log_fn(f"[FILL] {message}")
        if self.log_callback:
            try:
                self.log_callback(level, message)
            except Exception:
                pass
