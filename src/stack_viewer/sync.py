# src/stack_viewer/sync.py
"""
Frame synchronisation between viewers.

Viewers are registered in a ``ViewerRegistry`` under integer handles and
refer to each other only through those handles. A peer that was closed or
garbage collected simply stops resolving; it is pruned from the peer list
at the next propagation pass.

Only the frame index and the repeat flag are mirrored. Propagation is one
level deep: a peer that receives a frame does not pass it on.
"""

from __future__ import annotations
import itertools
import logging
import threading
import weakref
from typing import Any, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class ViewerRegistry:
    """Live viewers addressed by integer handle."""

    def __init__(self):
        self._viewers: "weakref.WeakValueDictionary[int, Any]" = weakref.WeakValueDictionary()
        self._handles = itertools.count(1)
        self.lock = threading.RLock()

    def register(self, viewer: Any) -> int:
        with self.lock:
            handle = next(self._handles)
            self._viewers[handle] = viewer
        return handle

    def unregister(self, handle: int):
        with self.lock:
            self._viewers.pop(handle, None)

    def resolve(self, handle: int) -> Optional[Any]:
        """The viewer behind ``handle``, or None once it is gone."""
        return self._viewers.get(handle)

    def __contains__(self, handle: int) -> bool:
        return self.resolve(handle) is not None

    def __len__(self) -> int:
        return len(self._viewers)


REGISTRY = ViewerRegistry()


class SyncGroup:
    """The peers of one viewer."""

    def __init__(self, registry: Optional[ViewerRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY
        self._handles: List[int] = []

    @property
    def handles(self) -> Tuple[int, ...]:
        return tuple(self._handles)

    def set_peers(self, handles: Iterable[int]):
        with self.registry.lock:
            self._handles = list(handles)

    def clear(self):
        self.set_peers([])

    def prune(self) -> List[Any]:
        """Drop handles that no longer resolve; return the live peers."""
        with self.registry.lock:
            live, kept = [], []
            for handle in self._handles:
                peer = self.registry.resolve(handle)
                if peer is not None:
                    kept.append(handle)
                    live.append(peer)
            dropped = len(self._handles) - len(kept)
            self._handles = kept
        if dropped:
            logger.debug("Pruned %d vanished peer(s)", dropped)
        return live

    def propagate_frame(self, index: int):
        for peer in self.prune():
            peer._mirror_frame(index)

    def propagate_repeat(self, do_repeat: bool):
        for peer in self.prune():
            peer._mirror_repeat(do_repeat)

    def __len__(self) -> int:
        return len(self._handles)


def _unique_members(viewers: Iterable[Any]) -> List[Any]:
    members, seen = [], set()
    for viewer in viewers:
        # GUI hosts wrap their ViewerState
        viewer = getattr(viewer, "state", viewer)
        if not isinstance(getattr(viewer, "sync", None), SyncGroup):
            raise TypeError(f"Cannot synchronise {type(viewer).__name__} objects.")
        if id(viewer) not in seen:
            seen.add(id(viewer))
            members.append(viewer)
    return members


def group(viewers: Iterable[Any]):
    """
    Make every given viewer a peer of all the others.

    Viewers not named keep their current peers. Grouping again replaces the
    peer list of each named viewer.
    """
    members = _unique_members(viewers)
    if not members:
        return
    registry = members[0].sync.registry
    if any(v.sync.registry is not registry for v in members):
        raise ValueError("Viewers from different registries cannot be grouped.")
    handles = [v.handle for v in members]
    with registry.lock:
        for i, viewer in enumerate(members):
            viewer.sync.set_peers(handles[:i] + handles[i + 1:])
    logger.info("Synchronised %d viewer(s)", len(members))


def ungroup(viewers: Iterable[Any]):
    """Clear the peer list of every given viewer."""
    for viewer in _unique_members(viewers):
        viewer.sync.clear()
