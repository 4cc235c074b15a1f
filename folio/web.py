"""HTTP interface to a folio store.

    POST   /               upload under a generated identifier
    POST   /files/<path>   create, 409 if the file exists
    PUT    /files/<path>   create or replace
    GET    /files/<path>   download
    HEAD   /files/<path>   existence check
    DELETE /files/<path>   delete

Uploads are multipart forms with the content in the ``file`` field. Replies
other than downloads are ``{"message": ...}`` JSON objects.
"""

import logging
import mimetypes
from flask import Blueprint
from flask import Flask
from flask import current_app
from flask import jsonify
from flask import request
from flask import send_file
from werkzeug.exceptions import RequestEntityTooLarge

from .config import FolioConfig
from .errors import FolioError
from .errors import NotFound
from .folio import Folio
from .storage import Outcome

logger = logging.getLogger(__name__)
bp = Blueprint('files', __name__)

# room for the multipart envelope around the file itself
FORM_OVERHEAD = 64 * 1024

STATUS = {
    Outcome.CREATED: 201,
    Outcome.REPLACED: 200,
    Outcome.DELETED: 200,
}

MESSAGES = {
    Outcome.CREATED: 'file created successfully',
    Outcome.REPLACED: 'file updated successfully',
    Outcome.DELETED: 'file deleted successfully',
}


def message(status, text, **extra):
    return jsonify(message=text, **extra), status


def store():
    return current_app.extensions['folio']


def uploaded_file():
    return request.files.get('file')


def handle_folio_error(e):
    if e.status_code >= 500:
        current_app.logger.error('storage error: %s', e)
    else:
        current_app.logger.warning('request refused: %s', e)
    return message(e.status_code, str(e))


def handle_request_too_large(e):
    current_app.logger.warning('request body refused: %s bytes', request.content_length)
    limit = current_app.config['MAX_CONTENT_LENGTH']
    return message(413, 'request body exceeds the limit of {0} bytes'.format(limit))


@bp.route('/health', methods=['GET'])
def health():
    return 'OK'


@bp.route('/', methods=['POST'])
def upload_file():
    file = uploaded_file()
    if file is None:
        return message(400, 'missing form field: file')
    stored = store().upload(file.stream, filename=file.filename, content_type=file.mimetype)
    return message(201, 'file uploaded successfully', path='/files/{0}'.format(stored.path))


@bp.route('/files/<path:path>', methods=['POST'])
def create_file(path):
    folio = store()
    resolved = folio.resolve(path)
    file = uploaded_file()
    if file is None:
        return message(400, 'missing form field: file')
    stored = folio.engine.create_only(resolved, file.stream)
    return message(STATUS[stored.outcome], MESSAGES[stored.outcome])


@bp.route('/files/<path:path>', methods=['PUT'])
def upsert_file(path):
    folio = store()
    resolved = folio.resolve(path)
    file = uploaded_file()
    if file is None:
        return message(400, 'missing form field: file')
    stored = folio.engine.upsert(resolved, file.stream)
    return message(STATUS[stored.outcome], MESSAGES[stored.outcome])


@bp.route('/files/<path:path>', methods=['GET'])
def read_file(path):
    folio = store()
    resolved = folio.resolve(path)
    if request.method == 'HEAD':
        if not folio.engine.exists(resolved):
            raise NotFound('file not found: {0}'.format(resolved))
        return '', 200
    stream = folio.engine.read(resolved)
    mimetype = mimetypes.guess_type(resolved.name)[0] or 'application/octet-stream'
    return send_file(stream, mimetype=mimetype)


@bp.route('/files/<path:path>', methods=['DELETE'])
def delete_file(path):
    folio = store()
    outcome = folio.engine.delete(folio.resolve(path))
    return message(STATUS[outcome], MESSAGES[outcome])


def create_app(config=None):
    """Return a Flask app serving the store described by `config`.

    Args:
        config (FolioConfig, optional): Defaults to
            :meth:`FolioConfig.from_env`.
    """
    if config is None:
        config = FolioConfig.from_env()
    app = Flask(__name__)
    if config.max_file_size is not None:
        app.config['MAX_CONTENT_LENGTH'] = config.max_file_size + FORM_OVERHEAD
    app.extensions['folio'] = Folio(config)
    app.register_blueprint(bp)
    app.register_error_handler(FolioError, handle_folio_error)
    app.register_error_handler(RequestEntityTooLarge, handle_request_too_large)
    logger.info('serving %s', app.extensions['folio'].root)
    return app
