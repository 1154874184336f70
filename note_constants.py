"""Values shared by the API server and the client. No Flask imports here."""

NOTE_FORMATS = ('text', 'h1', 'h2', 'h3', 'bullet', 'number', 'quote', 'highlight')
DEFAULT_NOTE_FORMAT = 'text'

# Every spelling of "no folder" a request or a drop target may carry.
ROOT_MARKERS = ("", "0", "root", "null", "none")
