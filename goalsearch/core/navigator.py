"""Keyboard selection over the rendered result list.

The navigator is a pure state machine: `transition(state, event)` returns the
next state and the action the UI should perform. Only the UI layer knows about
raw key events; `key_from_name` translates them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union


class Key(Enum):
    DOWN = "ArrowDown"
    UP = "ArrowUp"
    ENTER = "Enter"
    ESCAPE = "Escape"


@dataclass(frozen=True)
class KeyEvent:
    key: Key
    new_tab: bool = False


@dataclass(frozen=True)
class NavState:
    """`index` is None when nothing is selected."""
    count: int = 0
    index: Optional[int] = None

    @classmethod
    def rendered(cls, count: int) -> "NavState":
        """State after a render: the first result is selected when there is one."""
        return cls(count=count, index=0 if count > 0 else None)


@dataclass(frozen=True)
class Activate:
    index: int
    new_tab: bool = False


@dataclass(frozen=True)
class Cancel:
    pass


Action = Union[None, Activate, Cancel]


def transition(state: NavState, event: KeyEvent) -> Tuple[NavState, Action]:
    key = event.key

    if key is Key.ESCAPE:
        return NavState(count=state.count, index=None), Cancel()

    if state.count == 0:
        return state, None

    if key is Key.DOWN:
        current = -1 if state.index is None else state.index
        return NavState(state.count, min(current + 1, state.count - 1)), None

    if key is Key.UP:
        current = -1 if state.index is None else state.index
        return NavState(state.count, max(current - 1, 0)), None

    if key is Key.ENTER:
        if state.index is None:
            return state, None
        return state, Activate(index=state.index, new_tab=event.new_tab)

    return state, None


def key_from_name(name: str, meta: bool = False, ctrl: bool = False) -> Optional[KeyEvent]:
    """Map a raw key name to a navigator event; unknown keys map to None."""
    try:
        key = Key(name)
    except ValueError:
        return None
    return KeyEvent(key=key, new_tab=(meta or ctrl) and key is Key.ENTER)


class KeyboardNavigator:
    """Holds the current NavState for a controller."""

    def __init__(self):
        self.state = NavState()

    def reset(self, count: int, select_first: bool = True) -> None:
        if select_first:
            self.state = NavState.rendered(count)
        else:
            self.state = NavState(count=count, index=None)

    def clear(self) -> None:
        self.state = NavState()

    def handle(self, event: KeyEvent) -> Action:
        self.state, action = transition(self.state, event)
        return action

    @property
    def selected(self) -> Optional[int]:
        return self.state.index
