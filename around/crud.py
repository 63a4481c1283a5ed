import os
import re
import logging
from opensearchpy import ConflictError as DocumentExistsError, NotFoundError, OpenSearchException
from .auth import create_access_token, hash_password, verify_password
from .errors import ConflictError, DependencyError, InputError
from .search_index import ensure_index

logger = logging.getLogger(__name__)

USER_INDEX = os.getenv('USER_INDEX', 'user')
USERNAME_RE = re.compile(r'^[a-z0-9_]+$')

USER_MAPPING = {
    'mappings': {
        'properties': {
            'username': {'type': 'keyword'},
            'password_hash': {'type': 'keyword', 'index': False},
        }
    }
}

async def ensure_user_index(client):
    return await ensure_index(client, USER_INDEX, USER_MAPPING)

async def create_user(client, payload):
    if not USERNAME_RE.match(payload.username or ''):
        raise InputError('Invalid username')
    if not payload.password:
        raise InputError('Password is required')
    doc = {'username': payload.username, 'password_hash': hash_password(payload.password)}
    try:
        # create() refuses to overwrite, so two signups for one name cannot both win
        await client.create(index=USER_INDEX, id=payload.username, body=doc, refresh=True)
    except DocumentExistsError:
        raise ConflictError('User already exists')
    except OpenSearchException as e:
        logger.error(f"Saving user {payload.username} failed: {e}")
        raise DependencyError('Failed to sign up') from e
    logger.info(f"User added: {payload.username}")
    return {'username': payload.username}

async def authenticate_user(client, username, password):
    try:
        res = await client.get(index=USER_INDEX, id=username)
    except NotFoundError:
        return None
    except OpenSearchException as e:
        logger.error(f"Reading user {username} failed: {e}")
        raise DependencyError('Failed to log in') from e
    source = res.get('_source') or {}
    hashed = source.get('password_hash')
    if not hashed or not verify_password(password, hashed):
        return None
    access = create_access_token({'username': username})
    return {'access_token': access, 'token_type': 'bearer'}
