"""File routes: CRUD, moving between folders, and sidebar reordering."""

from flask import current_app, jsonify, request

from models import db, Folder, File
from services.ordering import (
    ReorderError,
    append_to,
    apply_reorder,
    commit_or_rollback,
    files_in_container,
    reindex,
)
from services.validation_service import is_root_value, json_object, parse_id, parse_id_list, parse_text

DEFAULT_FILE_NAME = 'New File'


def _resolve_folder(raw):
    """
    Map a folder reference from a request onto (folder_id, error_response).

    Root markers map to None; anything else must name an existing folder.
    """
    if is_root_value(raw):
        return None, None
    folder_id = parse_id(raw)
    if folder_id is None:
        return None, (jsonify({'error': 'Invalid folder_id'}), 400)
    if not db.session.get(Folder, folder_id):
        return None, (jsonify({'error': 'Folder not found'}), 404)
    return folder_id, None


def handle_files():
    """List files (optionally one container) or create a file."""
    if request.method == 'POST':
        data = json_object(request.get_json(silent=True))
        if data is None:
            return jsonify({'error': 'Request body must be a JSON object'}), 400
        name = parse_text(data.get('name'))
        if name is None:
            return jsonify({'error': 'name must be a string'}), 400
        name = name or DEFAULT_FILE_NAME
        folder_id, error = _resolve_folder(data.get('folder_id'))
        if error:
            return error
        file = File(name=name, folder_id=folder_id)
        append_to(files_in_container(folder_id), file)
        db.session.add(file)
        db.session.commit()
        current_app.logger.info("Created file %s in container %s", file.id, folder_id or 'root')
        return jsonify(file.to_dict()), 201

    query = File.query
    if 'folder_id' in request.args:
        folder_id, error = _resolve_folder(request.args.get('folder_id'))
        if error:
            return error
        if folder_id is None:
            query = query.filter(File.folder_id.is_(None))
        else:
            query = query.filter(File.folder_id == folder_id)
    files = query.order_by(File.folder_id.asc(), File.sort_order.asc(), File.id.asc()).all()
    return jsonify([f.to_dict() for f in files])


def handle_file(file_id):
    """Rename, move, or delete a single file."""
    file = db.get_or_404(File, file_id)

    if request.method == 'DELETE':
        folder_id = file.folder_id
        db.session.delete(file)
        db.session.flush()
        reindex(files_in_container(folder_id))
        db.session.commit()
        current_app.logger.info("Deleted file %s", file_id)
        return jsonify({'status': 'ok', 'id': file_id})

    data = json_object(request.get_json(silent=True))
    if data is None:
        return jsonify({'error': 'Request body must be a JSON object'}), 400
    if 'name' in data:
        name = parse_text(data.get('name'))
        if name is None:
            return jsonify({'error': 'name must be a string'}), 400
        if not name:
            return jsonify({'error': 'name must not be empty'}), 400
        file.name = name

    if 'folder_id' in data:
        target_id, error = _resolve_folder(data.get('folder_id'))
        if error:
            return error
        if target_id != file.folder_id:
            move_file(file, target_id)

    db.session.commit()
    return jsonify(file.to_dict())


def move_file(file, target_folder_id):
    """Append file to the target container and close the gap it leaves behind."""
    source_folder_id = file.folder_id
    append_to(files_in_container(target_folder_id, exclude_id=file.id), file)
    file.folder_id = target_folder_id
    reindex(files_in_container(source_folder_id, exclude_id=file.id))
    current_app.logger.info(
        "Moved file %s from %s to %s", file.id, source_folder_id or 'root', target_folder_id or 'root'
    )


def reorder_files():
    """Rewrite sort_order of one container's files to match the submitted id list."""
    data = json_object(request.get_json(silent=True))
    if data is None:
        return jsonify({'error': 'Request body must be a JSON object'}), 400
    ids, error = parse_id_list(data.get('fileIds'))
    if error:
        return jsonify({'error': f'fileIds: {error}'}), 400

    files = File.query.filter(File.id.in_(ids)).all()
    if len(files) != len(ids):
        known = {f.id for f in files}
        return jsonify({'error': f'Unknown file ids: {[i for i in ids if i not in known]}'}), 400

    containers = {f.folder_id for f in files}
    if len(containers) != 1:
        return jsonify({'error': 'fileIds must all belong to the same folder'}), 400
    folder_id = containers.pop()

    try:
        apply_reorder(files_in_container(folder_id), ids, label='file')
    except ReorderError as exc:
        db.session.rollback()
        return jsonify({'error': str(exc)}), 400

    commit_or_rollback(current_app.logger, 'reorder files')
    current_app.logger.info("Reordered %s files in container %s", len(ids), folder_id or 'root')
    return jsonify({'status': 'ok', 'updated': len(ids)})
