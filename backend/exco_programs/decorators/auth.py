from functools import wraps
from flask import abort
from flask_jwt_extended import verify_jwt_in_request
from exco_programs.services.policy import current_role


def require_roles(*roles):
    """Reject the request with 403 unless the JWT role is one of ``roles``.

    Program actions do not use this: the workflow engine decides those so the
    answer depends on the program as well as the role.
    """
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if current_role() not in roles:
                abort(403, description='You are not allowed to do this')
            return fn(*args, **kwargs)
        return wrapper
    return outer
