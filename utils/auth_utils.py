# auth_utils.py
from flask import request, jsonify, current_app, g
from functools import wraps
from utils.identity import AuthError


def get_token():
    # 支持 Authorization: Bearer <token> 和直接传 token
    auth_header = request.headers.get('Authorization', '').strip()
    if auth_header.startswith('Bearer '):
        return auth_header.split(' ', 1)[1].strip()
    return auth_header


def jwt_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = get_token()
        if not token:
            return jsonify({'success': False, 'message': 'No token provided'}), 401

        resolver = current_app.extensions['identity_resolver']
        try:
            g.current_user = resolver.resolve(token)
        except AuthError as e:
            return jsonify({'success': False, 'message': e.message}), e.status_code

        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    @wraps(f)
    @jwt_required
    def decorated_function(*args, **kwargs):
        if not g.current_user.is_admin:
            return jsonify({'success': False, 'message': 'Permission denied'}), 403
        return f(*args, **kwargs)
    return decorated_function
