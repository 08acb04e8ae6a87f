import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

FLASH_TYPES = ("error", "success", "info", "warning")


@dataclass(frozen=True)
class FlashMessage:
    key: str
    type: str
    message: str

    def __post_init__(self):
        if self.type not in FLASH_TYPES:
            raise ValueError(f"Unsupported flash type: {self.type}")


class FlashStore:
    """
    A thread-safe store of user facing messages, grouped by key.

    Views render the messages stored under their own key (for example the
    file manager uses ``"files"``) and clear them before starting a new
    operation.
    """

    def __init__(self):
        self._messages: Dict[str, List[FlashMessage]] = {}
        self._lock = threading.Lock()

    def add_flash(self, key: str, message: str, type: str = "info") -> FlashMessage:
        flash = FlashMessage(key=key, type=type, message=message)
        with self._lock:
            self._messages.setdefault(key, []).append(flash)
        return flash

    def add_error(self, key: str, message: str) -> FlashMessage:
        return self.add_flash(key, message, type="error")

    def clear_flashes(self, key: Optional[str] = None) -> None:
        """Clear the messages for one key, or all of them when no key is given."""
        with self._lock:
            if key is None:
                self._messages.clear()
            else:
                self._messages.pop(key, None)

    def get(self, key: str) -> List[FlashMessage]:
        with self._lock:
            return list(self._messages.get(key, []))

    def errors(self, key: str) -> List[str]:
        return [flash.message for flash in self.get(key) if flash.type == "error"]
