from collections import namedtuple
from functools import wraps

from core.imports import get_jwt_identity, get_jwt, jwt_required, create_access_token
from core.extensions import jwt
from core.errors import AuthError, AuthorizationError

ROLE_USER = "USER"
ROLE_ADMIN = "ADMIN"

# caller identity, resolved from a verified token and handed to the services
Identity = namedtuple("Identity", ["user_id", "role"])


def issue_token(user):
    return create_access_token(
        identity=str(user.id),
        additional_claims={"role": user.role}
    )


def current_identity():
    """Read the caller from the verified JWT. Only valid inside a ``@jwt_required()`` view."""
    user_id = get_jwt_identity()
    if not user_id:
        raise AuthError("Authentication required")
    return Identity(user_id=user_id, role=get_jwt().get("role", ROLE_USER))


def admin_required(fn):
    @wraps(fn)
    @jwt_required()
    def wrapper(*args, **kwargs):
        if current_identity().role != ROLE_ADMIN:
            raise AuthorizationError("Admin access required")
        return fn(*args, **kwargs)
    return wrapper


@jwt.unauthorized_loader
def missing_token(reason):
    return AuthError("Authentication required").to_dict(), 401


@jwt.invalid_token_loader
def invalid_token(reason):
    return AuthError("Token is not valid").to_dict(), 401


@jwt.expired_token_loader
def expired_token(jwt_header, jwt_payload):
    return AuthError("Token has expired").to_dict(), 401
