import jwt

TEST_SECRET = 'test-secret'


def make_token(user_id, role='user', secret=TEST_SECRET, **claims):
    payload = {'user_id': user_id, 'role': role, 'username': f'user-{user_id}'}
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm='HS256')
