"""
Drag-and-drop reordering and moving of files and notes.

Structure lives in a ContainerTree (container id -> ordered item ids).
Pointer hit-testing only maps the elements under the pointer to a folder id
or a root area; it never decides what belongs where. Every drop is applied
locally first and rolled back when the server rejects it.
"""
import copy
import logging
import math
import threading
from collections import namedtuple

from client.note_service import NoteServiceError, ensure_string_id
from note_constants import ROOT_MARKERS

logger = logging.getLogger(__name__)

DRAG_WATCHDOG_SECONDS = 10.0

TARGET_HOVERED_FOLDER = "hovered_folder"
TARGET_FOLDER_CONTENT = "folder_content"
TARGET_FOLDER_HEADER = "folder_header"
TARGET_ROOT = "root"

OUTCOME_CANCELLED = "cancelled"
OUTCOME_UNCHANGED = "unchanged"
OUTCOME_MOVED = "moved"
OUTCOME_REORDERED = "reordered"
OUTCOME_ROLLED_BACK = "rolled_back"

DropTarget = namedtuple("DropTarget", ["kind", "container_id"])


def normalize_container_id(value):
    """Map every spelling of "no folder" to None and everything else to a string id."""
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool) and value == 0:
        return None
    text = str(value).strip()
    if text.lower() in ROOT_MARKERS:
        return None
    return text


def same_container(a, b):
    return normalize_container_id(a) == normalize_container_id(b)


def array_move(items, old_index, new_index):
    moved = list(items)
    moved.insert(new_index, moved.pop(old_index))
    return moved


class ContainerTree:
    """Ordered children per container, plus the item records they point at."""

    def __init__(self, items=(), container_field="folder_id"):
        self.container_field = container_field
        self._items = {}
        self._children = {}
        self.load(items)

    @classmethod
    def from_files(cls, files):
        return cls(files, container_field="folder_id")

    @classmethod
    def from_notes(cls, notes):
        return cls(notes, container_field="file_id")

    def load(self, items):
        """Replace the tree with items, ordered by sort_order inside each container."""
        self._items = {}
        self._children = {}
        indexed = list(enumerate(items))
        indexed.sort(key=lambda pair: (pair[1].get("sort_order") is None, pair[1].get("sort_order") or 0, pair[0]))
        for _, raw in indexed:
            item = dict(raw)
            item_id = ensure_string_id(item["id"])
            item["id"] = item_id
            container_id = normalize_container_id(item.get(self.container_field))
            item[self.container_field] = container_id
            self._items[item_id] = item
            self._children.setdefault(container_id, []).append(item_id)
        for container_id in self._children:
            self._renumber(container_id)

    def __contains__(self, item_id):
        return ensure_string_id(item_id) in self._items

    def get(self, item_id):
        return self._items.get(ensure_string_id(item_id))

    def container_of(self, item_id):
        item = self._items[ensure_string_id(item_id)]
        return item[self.container_field]

    def children(self, container_id=None):
        return list(self._children.get(normalize_container_id(container_id), []))

    def items(self, container_id=None):
        return [self._items[i] for i in self.children(container_id)]

    def reorder(self, container_id, ordered_ids):
        container_id = normalize_container_id(container_id)
        ordered_ids = [ensure_string_id(i) for i in ordered_ids]
        current = self._children.get(container_id, [])
        if sorted(ordered_ids) != sorted(current):
            raise ValueError(f"order does not match the items of container {container_id!r}")
        self._children[container_id] = ordered_ids
        self._renumber(container_id)

    def move(self, item_id, target_container_id, index=None):
        """Move an item to another container, appended unless index is given."""
        item_id = ensure_string_id(item_id)
        target_container_id = normalize_container_id(target_container_id)
        item = self._items[item_id]
        source_container_id = item[self.container_field]
        self._children[source_container_id].remove(item_id)
        target = self._children.setdefault(target_container_id, [])
        target.insert(len(target) if index is None else index, item_id)
        item[self.container_field] = target_container_id
        self._renumber(source_container_id)
        self._renumber(target_container_id)

    def snapshot(self):
        return copy.deepcopy((self._items, self._children))

    def restore(self, snapshot):
        self._items, self._children = copy.deepcopy(snapshot)

    def _renumber(self, container_id):
        for idx, item_id in enumerate(self._children.get(container_id, [])):
            self._items[item_id]["sort_order"] = idx


class HitElement:
    """One element under the pointer: its id, classes and data attributes."""

    def __init__(self, element_id="", classes=(), attrs=None):
        self.id = element_id or ""
        self.classes = tuple(classes)
        self.attrs = dict(attrs or {})

    def get(self, name, default=None):
        return self.attrs.get(name, default)

    def __repr__(self):
        return f"HitElement(id={self.id!r}, attrs={self.attrs!r})"


def _folder_content_id(element):
    if element.id.startswith("folder-content-"):
        return element.get("data-folder-id") or element.id[len("folder-content-"):]
    if element.get("data-folder-content") == "true":
        return element.get("data-folder-id")
    return None


def _folder_header_id(element):
    if _folder_content_id(element) is not None:
        return None
    if element.id.startswith("folder-"):
        return element.get("data-folder-id") or element.id[len("folder-"):]
    droppable = element.get("data-droppable-id") or ""
    if droppable.startswith("folder-"):
        return droppable[len("folder-"):]
    if element.get("data-is-folder") == "true":
        return element.get("data-folder-id")
    return None


def _is_root_area(element):
    return (
        element.id == "root-files"
        or element.get("data-is-root-area") == "true"
        or element.get("data-droppable-id") == "root-area"
    )


def folder_under_pointer(elements):
    """Folder id of the topmost folder element (header or content), or None."""
    for element in elements:
        folder_id = _folder_content_id(element) or _folder_header_id(element) or element.get("data-folder-id")
        if folder_id:
            return normalize_container_id(folder_id)
    return None


def item_under_pointer(elements, attr, exclude=None):
    """Id of the topmost sortable item (by data attribute) other than exclude."""
    for element in elements:
        value = element.get(attr)
        if value is not None and ensure_string_id(value) != exclude:
            return ensure_string_id(value)
    return None


def resolve_drop_target(elements, hovered_folder_id=None):
    """
    Classify where a drag ended. First match wins: the folder tracked while
    dragging, a folder content region, a folder header, a root area.
    Returns None when nothing recognizable is under the pointer.
    """
    hovered = normalize_container_id(hovered_folder_id)
    if hovered is not None:
        return DropTarget(TARGET_HOVERED_FOLDER, hovered)
    for element in elements:
        folder_id = normalize_container_id(_folder_content_id(element))
        if folder_id is not None:
            return DropTarget(TARGET_FOLDER_CONTENT, folder_id)
    for element in elements:
        folder_id = normalize_container_id(_folder_header_id(element))
        if folder_id is not None:
            return DropTarget(TARGET_FOLDER_HEADER, folder_id)
    if any(_is_root_area(element) for element in elements):
        return DropTarget(TARGET_ROOT, None)
    return None


class HighlightState:
    """At most one folder is highlighted; collapsed folders only show their header."""

    def __init__(self, is_expanded=None):
        self._is_expanded = is_expanded
        self.folder_id = None
        self.regions = ()

    @property
    def active(self):
        return self.folder_id is not None

    def highlight(self, folder_id, header_only=False):
        folder_id = normalize_container_id(folder_id)
        if folder_id is None:
            logger.warning("Tried to highlight an empty folder id")
            return
        self.clear()
        expanded = bool(self._is_expanded(folder_id)) if self._is_expanded else False
        self.folder_id = folder_id
        self.regions = ("header",) if header_only or not expanded else ("header", "content")
        logger.debug("Highlighted folder %s regions=%s", folder_id, self.regions)

    def clear(self):
        self.folder_id = None
        self.regions = ()


class ReorderController:
    """Reorder items inside one container with optimistic update and rollback."""

    def __init__(self, tree, persist_order, on_error=None):
        self.tree = tree
        self._persist_order = persist_order
        self.on_error = on_error

    def reorder(self, active_id, over_id):
        """Move active_id to over_id's position, as a drop onto over_id does."""
        active_id = ensure_string_id(active_id)
        over_id = ensure_string_id(over_id)
        if active_id not in self.tree or over_id not in self.tree:
            logger.warning("Reorder of unknown item %s over %s ignored", active_id, over_id)
            return OUTCOME_CANCELLED
        if active_id == over_id:
            return OUTCOME_UNCHANGED
        container_id = self.tree.container_of(active_id)
        if self.tree.container_of(over_id) != container_id:
            return OUTCOME_UNCHANGED
        ids = self.tree.children(container_id)
        new_ids = array_move(ids, ids.index(active_id), ids.index(over_id))
        return self._apply(
            lambda: self.tree.reorder(container_id, new_ids),
            lambda: self._persist_order(new_ids),
            OUTCOME_REORDERED,
        )

    def _apply(self, mutate, persist, outcome):
        snapshot = self.tree.snapshot()
        mutate()
        try:
            persist()
        except NoteServiceError as exc:
            self.tree.restore(snapshot)
            logger.warning("Server rejected %s, local state rolled back: %s", outcome, exc)
            if self.on_error:
                self.on_error(exc)
            return OUTCOME_ROLLED_BACK
        return outcome


class NoteReorderController(ReorderController):
    def __init__(self, tree, service, on_error=None):
        super().__init__(tree, service.update_note_order, on_error=on_error)


class FileDragController(ReorderController):
    """
    Sidebar drag of files: reorder inside a container or move between folders.

    Only one drag is active at a time. start/move/end mirror pointer events;
    elements are the hit-test stack under the pointer, topmost first.
    """

    item_attr = "data-file-id"

    def __init__(self, tree, service, is_expanded=None, on_error=None, on_expand_folder=None,
                 watchdog_seconds=DRAG_WATCHDOG_SECONDS, timer_factory=threading.Timer):
        super().__init__(tree, service.update_file_order, on_error=on_error)
        self.service = service
        self.highlight = HighlightState(is_expanded)
        self.on_expand_folder = on_expand_folder
        self.watchdog_seconds = watchdog_seconds
        self._timer_factory = timer_factory
        self._lock = threading.RLock()
        self._watchdog = None
        self._drag_seq = 0
        self.active_id = None
        self.hovered_folder_id = None

    @property
    def dragging(self):
        return self.active_id is not None

    def start(self, item_id):
        item_id = ensure_string_id(item_id)
        with self._lock:
            if item_id not in self.tree:
                logger.warning("Drag start for unknown file %s ignored", item_id)
                return False
            if self.active_id is not None:
                self._cleanup()
            self._drag_seq += 1
            self.active_id = item_id
            self._watchdog = self._timer_factory(self.watchdog_seconds, self._on_watchdog, args=(self._drag_seq,))
            self._watchdog.daemon = True
            self._watchdog.start()
            logger.info("Drag started: file %s in %s", item_id, self.tree.container_of(item_id) or "root")
            return True

    def move(self, x, y, elements):
        """Track the folder under the pointer and keep a single highlight."""
        with self._lock:
            if self.active_id is None:
                return
            if not _finite(x, y):
                logger.warning("Drag move with invalid coordinates x=%s y=%s", x, y)
                return
            folder_id = folder_under_pointer(elements)
            if folder_id is not None:
                if folder_id != self.hovered_folder_id:
                    self.hovered_folder_id = folder_id
                    self.highlight.highlight(folder_id)
            elif self.hovered_folder_id is not None:
                self.hovered_folder_id = None
                self.highlight.clear()

    def end(self, elements, x=None, y=None):
        with self._lock:
            if self.active_id is None:
                return OUTCOME_CANCELLED
            active_id = self.active_id
            hovered = self.hovered_folder_id
            self._cleanup()

        if x is not None and y is not None and not _finite(x, y):
            logger.warning("Drop with invalid coordinates x=%s y=%s", x, y)
            elements = []

        target = resolve_drop_target(elements, hovered)
        if target is None:
            logger.info("No drop target for file %s, drag cancelled", active_id)
            return OUTCOME_CANCELLED

        source_id = self.tree.container_of(active_id)
        if not same_container(target.container_id, source_id):
            dest_id = target.container_id
            outcome = self._apply(
                lambda: self.tree.move(active_id, dest_id),
                lambda: self.service.move_file(active_id, dest_id),
                OUTCOME_MOVED,
            )
            if outcome == OUTCOME_MOVED:
                logger.info("Moved file %s from %s to %s", active_id, source_id or "root", dest_id or "root")
                if dest_id is not None and self.on_expand_folder:
                    self.on_expand_folder(dest_id)
            return outcome

        over_id = item_under_pointer(elements, self.item_attr, exclude=active_id)
        if over_id is not None:
            return self.reorder(active_id, over_id)
        logger.info("File %s already in %s, nothing to do", active_id, source_id or "root")
        return OUTCOME_UNCHANGED

    def cancel(self):
        with self._lock:
            self._cleanup()

    def _on_watchdog(self, drag_seq):
        with self._lock:
            if self.active_id is None or drag_seq != self._drag_seq:
                return
            logger.warning("Drag of file %s exceeded %ss, forcing cleanup", self.active_id, self.watchdog_seconds)
            self._watchdog = None
            self._cleanup()

    def _cleanup(self):
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None
        self.active_id = None
        self.hovered_folder_id = None
        self.highlight.clear()


def _finite(*values):
    try:
        return all(math.isfinite(float(v)) for v in values)
    except (TypeError, ValueError):
        return False
