from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from accounts.decorators import role_required, login_required
from accounts.models import User
from accounts.services.auth_service import AuthService


def _error(message, code, http_status):
    return Response(
        {'success': False, 'error': {'code': code, 'message': message, 'details': {}}},
        status=http_status,
    )


@api_view(['POST'])
def register(request):
    data = request.data
    result = AuthService.register(
        username=(data.get('username') or '').strip(),
        email=(data.get('email') or '').strip(),
        password=data.get('password') or '',
        first_name=(data.get('first_name') or '').strip(),
        last_name=(data.get('last_name') or '').strip(),
    )

    if not result['success']:
        return _error(result['message'], 'VALIDATION_ERROR', status.HTTP_400_BAD_REQUEST)

    return Response(result, status=status.HTTP_201_CREATED)


@api_view(['POST'])
def login(request):
    data = request.data
    result = AuthService.login(
        email=(data.get('email') or '').strip(),
        password=data.get('password') or '',
    )

    if not result['success']:
        return _error(result['message'], 'INVALID_CREDENTIALS', status.HTTP_401_UNAUTHORIZED)

    return Response(result)


@api_view(['GET'])
@login_required
def me(request):
    return Response({'success': True, 'user': AuthService.serialize_user(request.user)})


@api_view(['GET', 'POST'])
@role_required(User.RoleChoices.ADMIN)
def users(request):
    if request.method == 'GET':
        return Response(AuthService.list_users())

    data = request.data
    result = AuthService.create_user(
        username=(data.get('username') or '').strip(),
        email=(data.get('email') or '').strip(),
        password=data.get('password') or '',
        first_name=(data.get('first_name') or '').strip(),
        last_name=(data.get('last_name') or '').strip(),
        role=data.get('role') or User.RoleChoices.STAFF,
    )

    if not result['success']:
        return _error(result['message'], 'VALIDATION_ERROR', status.HTTP_400_BAD_REQUEST)

    return Response(result, status=status.HTTP_201_CREATED)


@api_view(['PUT', 'PATCH', 'DELETE'])
@role_required(User.RoleChoices.ADMIN)
def user_detail(request, user_id):
    if request.method == 'DELETE':
        result = AuthService.delete_user(user_id, actor_id=request.user.id)
    else:
        result = AuthService.update_user(user_id, **request.data)

    if not result['success']:
        if result.get('error_code') == 'NOT_FOUND':
            return _error(result['message'], 'NOT_FOUND', status.HTTP_404_NOT_FOUND)
        return _error(result['message'], result.get('error_code', 'VALIDATION_ERROR'), status.HTTP_400_BAD_REQUEST)

    return Response(result)
