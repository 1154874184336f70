"""Note routes: the blocks of a file, their content, format and order."""

from flask import current_app, jsonify, request

from models import db, File, Note
from services.ordering import (
    ReorderError,
    append_to,
    apply_reorder,
    commit_or_rollback,
    insert_after,
    notes_in_file,
    reindex,
)
from services.validation_service import json_object, normalize_note_format, parse_id, parse_id_list, parse_text
from text_helpers import _sanitize_note_html


def handle_file_notes(file_id):
    """List the notes of a file, or create one (optionally right after another)."""
    file = db.get_or_404(File, file_id)

    if request.method == 'POST':
        data = json_object(request.get_json(silent=True))
        if data is None:
            return jsonify({'error': 'Request body must be a JSON object'}), 400
        content = parse_text(data.get('content'), strip=False)
        if content is None:
            return jsonify({'error': 'content must be a string'}), 400
        note_format = normalize_note_format(data.get('format'))
        if note_format is None:
            return jsonify({'error': f"Unknown format: {data.get('format')}"}), 400

        after_note_id = None
        raw_after = data.get('after_note_id')
        if raw_after not in (None, ''):
            after_note_id = parse_id(raw_after)
            if after_note_id is None:
                return jsonify({'error': 'Invalid after_note_id'}), 400
            anchor = db.session.get(Note, after_note_id)
            if not anchor or anchor.file_id != file.id:
                return jsonify({'error': 'after_note_id does not belong to this file'}), 400

        note = Note(
            file_id=file.id,
            content=_sanitize_note_html(content),
            format=note_format,
        )
        insert_after(notes_in_file(file.id), note, after_id=after_note_id)
        db.session.add(note)
        db.session.commit()
        current_app.logger.info("Created note %s in file %s after %s", note.id, file.id, after_note_id)
        return jsonify(note.to_dict()), 201

    notes = Note.query.filter_by(file_id=file.id).order_by(Note.sort_order.asc(), Note.id.asc()).all()
    return jsonify([n.to_dict() for n in notes])


def handle_note(note_id):
    """Update content/format, move to another file, or delete a single note."""
    note = db.get_or_404(Note, note_id)

    if request.method == 'DELETE':
        file_id = note.file_id
        db.session.delete(note)
        db.session.flush()
        reindex(notes_in_file(file_id))
        db.session.commit()
        return jsonify({'status': 'ok', 'id': note_id})

    data = json_object(request.get_json(silent=True))
    if data is None:
        return jsonify({'error': 'Request body must be a JSON object'}), 400
    if 'format' in data:
        note_format = normalize_note_format(data.get('format'))
        if note_format is None:
            return jsonify({'error': f"Unknown format: {data.get('format')}"}), 400
        note.format = note_format

    if 'content' in data:
        content = parse_text(data.get('content'), strip=False)
        if content is None:
            return jsonify({'error': 'content must be a string'}), 400
        note.content = _sanitize_note_html(content)

    if 'file_id' in data:
        target_id = parse_id(data.get('file_id'))
        if target_id is None:
            return jsonify({'error': 'Invalid file_id'}), 400
        if target_id != note.file_id:
            db.get_or_404(File, target_id)
            source_id = note.file_id
            append_to(notes_in_file(target_id, exclude_id=note.id), note)
            note.file_id = target_id
            reindex(notes_in_file(source_id, exclude_id=note.id))
            current_app.logger.info("Moved note %s from file %s to %s", note.id, source_id, target_id)

    db.session.commit()
    return jsonify(note.to_dict())


def reorder_notes():
    """Rewrite sort_order of one file's notes to match the submitted id list."""
    data = json_object(request.get_json(silent=True))
    if data is None:
        return jsonify({'error': 'Request body must be a JSON object'}), 400
    ids, error = parse_id_list(data.get('noteIds'))
    if error:
        return jsonify({'error': f'noteIds: {error}'}), 400

    notes = Note.query.filter(Note.id.in_(ids)).all()
    if len(notes) != len(ids):
        known = {n.id for n in notes}
        return jsonify({'error': f'Unknown note ids: {[i for i in ids if i not in known]}'}), 400

    file_ids = {n.file_id for n in notes}
    if len(file_ids) != 1:
        return jsonify({'error': 'noteIds must all belong to the same file'}), 400
    file_id = file_ids.pop()

    try:
        apply_reorder(notes_in_file(file_id), ids, label='note')
    except ReorderError as exc:
        db.session.rollback()
        return jsonify({'error': str(exc)}), 400

    commit_or_rollback(current_app.logger, 'reorder notes')
    current_app.logger.info("Reordered %s notes in file %s", len(ids), file_id)
    return jsonify({'status': 'ok', 'updated': len(ids)})
