"""
Per-note editor plumbing: instance registry, debounced autosave, and the
editing actions that talk to the API (format change, Enter split).
"""
import logging
import os
import re
import threading

import markdown

from client.note_service import NoteServiceError, ensure_string_id
from note_constants import NOTE_FORMATS
from text_helpers import is_blank_note_html, split_note_html

logger = logging.getLogger(__name__)

DEFAULT_AUTOSAVE_DELAY = 0.5
# Formats a new note keeps when Enter splits a note; everything else starts as text.
CONTINUED_FORMATS = ("bullet", "number")
PREVIOUS_KEYS = ("ArrowUp", "ArrowLeft")
NEXT_KEYS = ("ArrowDown", "ArrowRight")

MARKDOWN_PATTERN = re.compile(r"(^#|^\* |^- |^\d+\. |\n#|\n\* |\n- |\n\d+\.)")
SINGLE_HTML_ELEMENT_PATTERN = re.compile(r"^<([a-z][a-z0-9]*)\b[^>]*>(.*)</\1>$|^<[a-z][a-z0-9]*\b[^>]*/>$", re.I | re.S)


class EditorRegistry:
    """Live editor instances keyed by note id, owned by the application controller."""

    def __init__(self):
        self._editors = {}
        self._lock = threading.Lock()

    def register(self, note_id, editor):
        with self._lock:
            self._editors[ensure_string_id(note_id)] = editor

    def unregister(self, note_id, editor=None):
        """Drop the entry; with editor given, only if it is still the registered one."""
        note_id = ensure_string_id(note_id)
        with self._lock:
            current = self._editors.get(note_id)
            if current is None or (editor is not None and current is not editor):
                return False
            del self._editors[note_id]
            return True

    def get(self, note_id):
        return self._editors.get(ensure_string_id(note_id))

    def __contains__(self, note_id):
        return ensure_string_id(note_id) in self._editors

    def note_ids(self):
        return list(self._editors)


class NoteAutosaver:
    """
    Debounced saves, one pending write per note.

    Each scheduled save gets the note's next sequence number. A response is
    applied only if its sequence is newer than the last applied one, so a
    slow earlier save can never overwrite a later one.
    """

    def __init__(self, service, delay=None, on_saved=None, on_error=None, timer_factory=threading.Timer):
        self.service = service
        self.delay = delay if delay is not None else float(os.environ.get("NOTES_AUTOSAVE_DELAY", DEFAULT_AUTOSAVE_DELAY))
        self.on_saved = on_saved
        self.on_error = on_error
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._pending = {}
        self._timers = {}
        self._sequence = {}
        self._applied = {}

    def schedule(self, note_id, payload, editor=None):
        """
        Queue payload for note_id, replacing any save still waiting. The
        editor, when given, hears back through save_confirmed / save_failed.
        """
        note_id = ensure_string_id(note_id)
        with self._lock:
            seq = self._sequence.get(note_id, 0) + 1
            self._sequence[note_id] = seq
            self._pending[note_id] = (seq, dict(payload), editor)
            timer = self._timers.pop(note_id, None)
            if timer is not None:
                timer.cancel()
            timer = self._timer_factory(self.delay, self._fire, args=(note_id,))
            timer.daemon = True
            self._timers[note_id] = timer
            timer.start()
        return seq

    def pending(self, note_id):
        return ensure_string_id(note_id) in self._pending

    def flush(self, note_id=None):
        """Send pending saves now, for one note or all of them."""
        with self._lock:
            note_ids = [ensure_string_id(note_id)] if note_id is not None else list(self._pending)
        return [self._fire(nid) for nid in note_ids]

    def cancel(self, note_id=None):
        with self._lock:
            note_ids = [ensure_string_id(note_id)] if note_id is not None else list(self._pending)
            for nid in note_ids:
                self._pending.pop(nid, None)
                timer = self._timers.pop(nid, None)
                if timer is not None:
                    timer.cancel()

    def _fire(self, note_id):
        with self._lock:
            entry = self._pending.pop(note_id, None)
            timer = self._timers.pop(note_id, None)
            if timer is not None:
                timer.cancel()
        if entry is None:
            return None
        seq, payload, editor = entry
        try:
            saved = self.service.update_note(note_id, payload)
        except NoteServiceError as exc:
            logger.warning("Autosave of note %s (seq %s) failed: %s", note_id, seq, exc)
            if editor is not None:
                editor.save_failed()
            if self.on_error:
                self.on_error(note_id, exc)
            return None
        return self._apply_response(note_id, seq, saved, editor)

    def _apply_response(self, note_id, seq, saved, editor=None):
        with self._lock:
            if seq <= self._applied.get(note_id, 0):
                logger.debug("Discarding stale save response for note %s (seq %s)", note_id, seq)
                return None
            self._applied[note_id] = seq
        if editor is not None:
            editor.save_confirmed(saved)
        if self.on_saved:
            self.on_saved(saved)
        return saved


def looks_like_markdown(content):
    return isinstance(content, str) and bool(MARKDOWN_PATTERN.search(content))


def content_to_html(content):
    """Render Markdown-looking content to HTML; HTML and plain text pass through."""
    if content is None:
        return ""
    if looks_like_markdown(content) and not SINGLE_HTML_ELEMENT_PATTERN.match(content.strip()):
        return markdown.markdown(content)
    return content


def adjacent_note_id(note_ids, current_id, key):
    """Note id an arrow key moves focus to, or None at either end."""
    ids = [ensure_string_id(i) for i in note_ids]
    current_id = ensure_string_id(current_id)
    if current_id not in ids:
        return None
    idx = ids.index(current_id)
    if key in PREVIOUS_KEYS:
        return ids[idx - 1] if idx > 0 else None
    if key in NEXT_KEYS:
        return ids[idx + 1] if idx + 1 < len(ids) else None
    return None


class NoteEditor:
    """Editing state for one note, bridging the editor buffer and the API."""

    def __init__(self, note, service, autosaver, registry=None):
        self.note = dict(note)
        self.note["id"] = ensure_string_id(self.note["id"])
        self.service = service
        self.autosaver = autosaver
        self.registry = registry
        self.html = content_to_html(self.note.get("content") or "")
        # Last content handed to the autosaver, or confirmed by the server.
        self._last_content = self.note.get("content") or ""

    @property
    def note_id(self):
        return self.note["id"]

    def mount(self):
        if self.registry is not None:
            self.registry.register(self.note_id, self)

    def unmount(self):
        self.autosaver.flush(self.note_id)
        if self.registry is not None:
            self.registry.unregister(self.note_id, self)

    def on_change(self, html):
        """Editor content changed; schedule a save unless nothing really changed."""
        self.html = html
        if is_blank_note_html(html) and is_blank_note_html(self._last_content):
            return None
        if html == self._last_content:
            return None
        self._last_content = html
        payload = {"content": html, "format": self.note.get("format", "text")}
        return self.autosaver.schedule(self.note_id, payload, editor=self)

    def save_confirmed(self, saved):
        if saved and "content" in saved:
            self.note["content"] = saved["content"]

    def save_failed(self):
        self._last_content = self.note.get("content") or ""

    def sync_external(self, note):
        """Adopt content that changed elsewhere (e.g. a server response)."""
        self.note.update(note)
        self.note["id"] = ensure_string_id(self.note["id"])
        self._last_content = self.note.get("content") or ""
        html = content_to_html(self.note.get("content") or "")
        if html != self.html:
            self.html = html
            return True
        return False

    def change_format(self, new_format):
        if new_format not in NOTE_FORMATS:
            raise ValueError(f"Unknown note format: {new_format}")
        saved = self.service.update_note(self.note_id, {"format": new_format})
        self.note["format"] = (saved or {}).get("format", new_format)
        return saved

    def split(self, offset):
        """
        Enter at a caret offset into the note's text: keep what is before it
        here and create the rest as a new note right after. Inline markup
        survives on both sides.
        """
        before_html, after_html = split_note_html(self.html, offset)
        self.autosaver.cancel(self.note_id)
        updated = self.service.update_note(self.note_id, {"content": before_html, "format": self.note.get("format", "text")})
        self.note["content"] = before_html
        self._last_content = before_html
        self.html = before_html
        current_format = self.note.get("format", "text")
        new_format = current_format if current_format in CONTINUED_FORMATS else "text"
        created = self.service.create_note(
            self.note["file_id"],
            after_note_id=self.note_id,
            content=after_html,
            format=new_format,
        )
        logger.debug("Split note %s at %s into new note %s", self.note_id, offset, (created or {}).get("id"))
        return updated, created
