import os

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

load_dotenv()

from models import db
from services import file_routes, folder_routes, note_routes
from services.validation_service import parse_bool

app = Flask(__name__)
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('NOTES_DATABASE_URI', 'sqlite:///notes.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['CORS_ORIGINS'] = [
    origin.strip() for origin in os.environ.get('CORS_ORIGINS', '*').split(',') if origin.strip()
]
app.logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO').upper())

db.init_app(app)
CORS(app, resources={r'/api/*': {'origins': app.config['CORS_ORIGINS']}})

with app.app_context():
    db.create_all()


@app.errorhandler(HTTPException)
def handle_http_error(exc):
    """Return JSON errors for API callers; leave other paths to Flask."""
    if not request.path.startswith('/api/') or exc.code is None or exc.code < 400:
        return exc
    if exc.code >= 500:
        app.logger.error("%s %s failed: %s", request.method, request.path, exc)
    return jsonify({'error': exc.description}), exc.code


@app.route('/api/health')
def health():
    return jsonify({'status': 'ok'})


# Folders
app.add_url_rule('/api/folders', view_func=folder_routes.handle_folders, methods=['GET', 'POST'])
app.add_url_rule('/api/folders/<int:folder_id>', view_func=folder_routes.handle_folder, methods=['PUT', 'DELETE'])

# Files (reorder is registered before the id route; the int converter keeps them apart anyway)
app.add_url_rule('/api/files', view_func=file_routes.handle_files, methods=['GET', 'POST'])
app.add_url_rule('/api/files/reorder', view_func=file_routes.reorder_files, methods=['PUT'])
app.add_url_rule('/api/files/<int:file_id>', view_func=file_routes.handle_file, methods=['PUT', 'DELETE'])

# Notes
app.add_url_rule('/api/files/<int:file_id>/notes', view_func=note_routes.handle_file_notes, methods=['GET', 'POST'])
app.add_url_rule('/api/notes/reorder', view_func=note_routes.reorder_notes, methods=['PUT'])
app.add_url_rule('/api/notes/<int:note_id>', view_func=note_routes.handle_note, methods=['PUT', 'DELETE'])


if __name__ == '__main__':
    app.run(
        host=os.environ.get('HOST', '0.0.0.0'),
        port=int(os.environ.get('PORT', 5000)),
        debug=parse_bool(os.environ.get('FLASK_DEBUG')),
    )
