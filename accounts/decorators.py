from functools import wraps
from django.http import JsonResponse


def _denied(code, message, status):
    return JsonResponse(
        {"success": False, "error": {"code": code, "message": message, "details": {}}},
        status=status,
    )


def role_required(*roles):
    """
    Gate a view on the caller's role. With no roles any authenticated user
    passes. Use ``method_decorator`` on class-based view methods.
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            user = getattr(request, "user", None)
            if user is None or not user.is_authenticated:
                return _denied("UNAUTHORIZED", "Authentication required", 401)
            if roles and getattr(user, "role", None) not in roles:
                return _denied("FORBIDDEN", "You do not have permission to perform this action", 403)
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator


login_required = role_required()
