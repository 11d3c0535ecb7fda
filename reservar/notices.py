"""
User-facing notices.

The booking flow never raises to the client: validation problems, data
problems and API failures become notices the frontend shows as toasts.
A NoticeBoard collects them until the next snapshot drains it.
"""

from dataclasses import dataclass
from typing import Optional

ERROR = "error"
SUCCESS = "success"


@dataclass
class Notice:
    level: str
    message: str
    title: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"level": self.level, "message": self.message}
        if self.title:
            data["title"] = self.title
        return data


class NoticeBoard:
    def __init__(self):
        self._items: list[Notice] = []

    @property
    def items(self) -> list[Notice]:
        return list(self._items)

    def error(self, message: str) -> Notice:
        return self._add(Notice(ERROR, message))

    def success(self, message: str, title: Optional[str] = None) -> Notice:
        return self._add(Notice(SUCCESS, message, title))

    def drain(self) -> list[Notice]:
        items, self._items = self._items, []
        return items

    def _add(self, notice: Notice) -> Notice:
        self._items.append(notice)
        return notice
