import json
import logging
from typing import Any, Callable, Optional

from streamlit_js_eval import streamlit_js_eval  # pip install streamlit-js-eval

from planner_core import STORAGE_KEY

logger = logging.getLogger(__name__)


def read_expression(key: str) -> str:
    # Stringified so an absent key comes back as "null" rather than no answer
    return f"JSON.stringify(localStorage.getItem({json.dumps(key)}))"


def write_expression(key: str, text: str) -> str:
    return f"localStorage.setItem({json.dumps(key)}, {json.dumps(text)})"


class BrowserStorage:
    """
    One localStorage key in the visitor's browser (hosted mode).

    The browser answers a script run late: fetch() is False until the stored
    value has come back on a later run. Writes are queued and handed to the
    browser by flush(), which the app calls once per run.
    """

    def __init__(self, key: str = STORAGE_KEY, evaluate: Optional[Callable[..., Any]] = None):
        self.key = key
        self.evaluate = evaluate or streamlit_js_eval
        self.loaded = False
        self._text: Optional[str] = None
        self._pending: Optional[str] = None
        self._writes = 0

    def fetch(self) -> bool:
        if self.loaded:
            return True

        raw = self.evaluate(js_expressions=read_expression(self.key), key=f"{self.key}_read")
        if raw is None:
            return False

        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error("Unreadable answer from browser storage: %s", e)
            value = None
        self._text = value if isinstance(value, str) else None
        self.loaded = True
        return True

    def read(self) -> Optional[str]:
        return self._text

    def write(self, text: str) -> None:
        self._text = text
        self._pending = text

    def flush(self) -> bool:
        if self._pending is None:
            return False
        self._writes += 1
        self.evaluate(js_expressions=write_expression(self.key, self._pending), key=f"{self.key}_write_{self._writes}")
        self._pending = None
        return True

    def __repr__(self) -> str:
        return f"BrowserStorage(key={self.key!r})"
