"""Sort-order bookkeeping shared by the file and note routes.

Positions are dense and 0-based inside a container: a folder (or the root)
for files, a file for notes.
"""

from models import db, File, Note


class ReorderError(ValueError):
    """Raised when a submitted order does not match the container's members."""


def _ordered(items):
    return sorted(items, key=lambda i: (i.sort_order if i.sort_order is not None else 0, i.id or 0))


def reindex(items):
    """Rewrite sort_order to 0..n-1 keeping the current relative order."""
    ordered = _ordered(items)
    for idx, item in enumerate(ordered):
        item.sort_order = idx
    return ordered


def files_in_container(folder_id, exclude_id=None):
    query = File.query
    if folder_id is None:
        query = query.filter(File.folder_id.is_(None))
    else:
        query = query.filter(File.folder_id == folder_id)
    if exclude_id is not None:
        query = query.filter(File.id != exclude_id)
    return query.all()


def notes_in_file(file_id, exclude_id=None):
    query = Note.query.filter(Note.file_id == file_id)
    if exclude_id is not None:
        query = query.filter(Note.id != exclude_id)
    return query.all()


def append_to(siblings, new_item):
    """Place new_item after every sibling."""
    ordered = reindex([i for i in siblings if i is not new_item])
    new_item.sort_order = len(ordered)


def insert_after(siblings, new_item, after_id=None):
    """Place new_item directly after the sibling with after_id (or at the end)."""
    ordered = [i for i in _ordered(siblings) if i is not new_item]
    insert_idx = len(ordered)
    if after_id is not None:
        for idx, item in enumerate(ordered):
            if item.id == after_id:
                insert_idx = idx + 1
                break
    ordered.insert(insert_idx, new_item)
    for idx, item in enumerate(ordered):
        item.sort_order = idx
    return ordered


def apply_reorder(members, ordered_ids, label='item'):
    """
    Rewrite sort_order of a container's members to match ordered_ids.

    members is every entity currently in the container. Raises ReorderError
    without touching anything when ordered_ids is not a permutation of them.
    """
    by_id = {m.id: m for m in members}
    missing = [i for i in ordered_ids if i not in by_id]
    if missing:
        raise ReorderError(f"{label} ids do not belong to the same container: {missing}")
    absent = sorted(set(by_id) - set(ordered_ids))
    if absent:
        raise ReorderError(f"{label} ids missing from the new order: {absent}")
    for idx, item_id in enumerate(ordered_ids):
        by_id[item_id].sort_order = idx
    return [by_id[i] for i in ordered_ids]


def commit_or_rollback(logger, action):
    """Commit the session; on failure roll back, log, and re-raise."""
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to %s", action)
        raise
