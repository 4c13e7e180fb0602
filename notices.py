import logging
from typing import List

from models import Notice

logger = logging.getLogger(__name__)


class NoticeBoard:
    """
    Collects settings notices raised while handling one admin request.

    The host renders them next to the license form, the way settings
    errors are shown after a form post.
    """

    def __init__(self):
        self._notices: List[Notice] = []

    def add(self, setting: str, message: str, success: bool = True) -> Notice:
        notice = Notice(
            setting=setting,
            message=message,
            type="updated" if success else "error",
        )
        self._notices.append(notice)
        logger.log(logging.INFO if success else logging.WARNING, "%s: %s", setting, message)
        return notice

    def all(self) -> List[Notice]:
        return list(self._notices)

    def clear(self):
        self._notices.clear()

    def __len__(self):
        return len(self._notices)
