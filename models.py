from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

from note_constants import DEFAULT_NOTE_FORMAT

db = SQLAlchemy()


class Folder(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Files are moved to the root container by the delete handler, never cascaded
    files = db.relationship(
        'File',
        backref='folder',
        lazy=True,
        order_by='File.sort_order'
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class File(db.Model):
    """A document in the sidebar. Lives in a folder or at the root (folder_id NULL)."""
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, default='New File')
    folder_id = db.Column(db.Integer, db.ForeignKey('folder.id'), nullable=True)
    sort_order = db.Column(db.Integer, default=0)  # Position within the folder (or root)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    notes = db.relationship(
        'Note',
        backref='file',
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Note.sort_order"
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'folder_id': self.folder_id,
            'sort_order': self.sort_order,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class Note(db.Model):
    """One editable block of a file. Content is stored as sanitized HTML."""
    id = db.Column(db.Integer, primary_key=True)
    file_id = db.Column(db.Integer, db.ForeignKey('file.id'), nullable=False)
    content = db.Column(db.Text, nullable=True)
    format = db.Column(db.String(20), default=DEFAULT_NOTE_FORMAT)  # one of NOTE_FORMATS
    sort_order = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'file_id': self.file_id,
            'content': self.content or '',
            'format': self.format or DEFAULT_NOTE_FORMAT,
            'sort_order': self.sort_order,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
