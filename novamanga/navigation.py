from dataclasses import dataclass
from enum import Enum

from novamanga.page_store import PageStore


class NavigationAction(str, Enum):
    MOVE = "move"  # target is a valid page
    STOP = "stop"  # target is past the last page: playback stops
    STAY = "stay"  # target is before the first page: nothing happens


@dataclass(frozen=True)
class NavigationResult:
    action: NavigationAction
    index: int


class Navigator:
    """Bounds-checked page movement over a page store."""

    def __init__(self, page_store: PageStore):
        self.page_store = page_store

    def seek(self, current_index: int, target: int) -> NavigationResult:
        if self.page_store.contains(target):
            return NavigationResult(NavigationAction.MOVE, target)
        if target >= self.page_store.count():
            return NavigationResult(NavigationAction.STOP, current_index)
        return NavigationResult(NavigationAction.STAY, current_index)

    def next(self, current_index: int) -> NavigationResult:
        return self.seek(current_index, current_index + 1)

    def prev(self, current_index: int) -> NavigationResult:
        return self.seek(current_index, current_index - 1)
