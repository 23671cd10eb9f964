"""
Scoped handles to UI regions.

A script never receives a region directly. It receives a handle holding an
(index, generation) pair into a `RegionArena`. The slot is released when the
invocation that produced the handle returns, which bumps the generation, so
a handle kept past its call can never reach a region again. While a nested
invocation runs, the slot of the handle it was derived from is marked busy:
the outer handle stays valid but cannot write into the region until the
inner call has returned.
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple


class StaleHandleError(RuntimeError):
    """A handle was used after the call that produced it returned."""
    pass


class RegionBusyError(StaleHandleError):
    """A handle was used while an inner call derived from it is still open."""
    pass


@dataclass
class _Slot:
    region: Any = None
    generation: int = 0
    live: bool = False
    busy: bool = False


class RegionArena:
    def __init__(self):
        self._slots: List[_Slot] = []
        self._free: List[int] = []

    def acquire(self, region: Any) -> Tuple[int, int]:
        if self._free:
            index = self._free.pop()
        else:
            index = len(self._slots)
            self._slots.append(_Slot())
        slot = self._slots[index]
        slot.region = region
        slot.live = True
        slot.busy = False
        return index, slot.generation

    def _slot(self, index: int, generation: int) -> _Slot:
        if index >= len(self._slots):
            raise StaleHandleError("handle does not belong to this arena")
        slot = self._slots[index]
        if not slot.live or slot.generation != generation:
            raise StaleHandleError("UI handle used outside the call that created it")
        return slot

    def get(self, index: int, generation: int) -> Any:
        slot = self._slot(index, generation)
        if slot.busy:
            raise RegionBusyError("UI handle used while a nested container call is still open")
        return slot.region

    def is_live(self, index: int, generation: int) -> bool:
        try:
            self._slot(index, generation)
        except StaleHandleError:
            return False
        return True

    def set_busy(self, index: int, generation: int, busy: bool):
        self._slot(index, generation).busy = busy

    def release(self, index: int, generation: int):
        slot = self._slot(index, generation)
        slot.region = None
        slot.live = False
        slot.busy = False
        slot.generation += 1
        self._free.append(index)

    @property
    def live_count(self) -> int:
        return sum(1 for s in self._slots if s.live)


class ScopedHandle:
    """Base of every script-visible proxy bound to an arena slot."""

    def __init__(self, bridge: 'ScopeBridge', index: int, generation: int):
        self._bridge = bridge
        self._index = index
        self._generation = generation

    def _region(self):
        return self._bridge.arena.get(self._index, self._generation)

    @property
    def is_valid(self) -> bool:
        return self._bridge.arena.is_live(self._index, self._generation)

    def __repr__(self):
        state = "live" if self.is_valid else "stale"
        return f"<{type(self).__name__} #{self._index}.{self._generation} {state}>"


class ScopeBridge:
    """Runs script closures against regions through short-lived handles."""

    def __init__(self, handle_factory: Callable[['ScopeBridge', int, int], ScopedHandle]):
        self.arena = RegionArena()
        self.handle_factory = handle_factory
        self.depth = 0

    def invoke(self, region: Any, closure: Callable, *args,
               parent: Optional[ScopedHandle] = None,
               factory: Optional[Callable[['ScopeBridge', int, int], ScopedHandle]] = None) -> Any:
        """
        Calls `closure(handle, *args)` with a fresh handle over `region` and
        returns its result. Errors raised by the closure propagate unchanged.
        """
        if parent is not None:
            # Raises for a stale or busy parent before anything is acquired.
            parent._region()
        index, generation = self.arena.acquire(region)
        handle = (factory or self.handle_factory)(self, index, generation)
        if parent is not None:
            self.arena.set_busy(parent._index, parent._generation, True)
        self.depth += 1
        try:
            return closure(handle, *args)
        finally:
            self.depth -= 1
            self.arena.release(index, generation)
            if parent is not None:
                self.arena.set_busy(parent._index, parent._generation, False)
