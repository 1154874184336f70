"""Folder routes extracted from app.py for readability."""

from flask import current_app, jsonify, request

from models import db, Folder
from services.ordering import files_in_container, reindex
from services.validation_service import json_object, parse_text


def handle_folders():
    """List or create folders."""
    if request.method == 'POST':
        data = json_object(request.get_json(silent=True))
        if data is None:
            return jsonify({'error': 'Request body must be a JSON object'}), 400
        name = parse_text(data.get('name'))
        if name is None:
            return jsonify({'error': 'name must be a string'}), 400
        if not name:
            return jsonify({'error': 'name is required'}), 400
        folder = Folder(name=name)
        db.session.add(folder)
        db.session.commit()
        current_app.logger.info("Created folder %s (%s)", folder.id, folder.name)
        return jsonify(folder.to_dict()), 201

    folders = Folder.query.order_by(Folder.created_at.asc(), Folder.id.asc()).all()
    return jsonify([f.to_dict() for f in folders])


def handle_folder(folder_id):
    """Rename or delete a single folder."""
    folder = db.get_or_404(Folder, folder_id)

    if request.method == 'DELETE':
        # Files survive the folder: they are appended to the root container.
        root_files = files_in_container(None)
        moved = sorted(folder.files, key=lambda f: (f.sort_order or 0, f.id))
        start = len(reindex(root_files))
        for offset, file in enumerate(moved):
            file.folder_id = None
            file.sort_order = start + offset
        db.session.delete(folder)
        db.session.commit()
        current_app.logger.info("Deleted folder %s, moved %s files to root", folder_id, len(moved))
        return jsonify({'status': 'ok', 'id': folder_id})

    data = json_object(request.get_json(silent=True))
    if data is None:
        return jsonify({'error': 'Request body must be a JSON object'}), 400
    if 'name' in data:
        name = parse_text(data.get('name'))
        if name is None:
            return jsonify({'error': 'name must be a string'}), 400
        if not name:
            return jsonify({'error': 'name must not be empty'}), 400
        folder.name = name
    db.session.commit()
    return jsonify(folder.to_dict())
