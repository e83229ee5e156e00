import logging
import jwt
from datetime import datetime, timedelta, timezone
from django.conf import settings
from django.contrib.auth import authenticate
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction

from accounts.models import User


logger = logging.getLogger(__name__)


class AuthService:
    JWT_ALGORITHM = 'HS256'

    USER_FIELDS = ('username', 'email', 'first_name', 'last_name', 'role', 'is_active')

    @classmethod
    def secret(cls):
        return getattr(settings, 'JWT_SECRET_KEY', settings.SECRET_KEY)

    @classmethod
    def expiry(cls):
        return timedelta(hours=getattr(settings, 'JWT_EXPIRY_HOURS', 24))

    @classmethod
    def serialize_user(cls, user):
        return {
            'id': user.id,
            'username': user.username,
            'email': user.email,
            'first_name': user.first_name,
            'last_name': user.last_name,
            'role': user.role,
            'is_active': user.is_active,
        }

    @classmethod
    def _validate(cls, username, email, password, first_name, last_name, role=None):
        if not username or len(username) < 3:
            return 'Username must be at least 3 characters'
        try:
            validate_email(email or '')
        except ValidationError:
            return 'Please provide a valid email'
        if not password or len(password) < 6:
            return 'Password must be at least 6 characters'
        if not first_name:
            return 'First name is required'
        if not last_name:
            return 'Last name is required'
        if role is not None and role not in User.RoleChoices.values:
            return f'Invalid role. Valid: {User.RoleChoices.values}'
        if User.objects.filter(email__iexact=email).exists() or User.objects.filter(username=username).exists():
            return 'User already exists'
        return None

    @classmethod
    @transaction.atomic
    def register(cls, username, email, password, first_name, last_name):
        """Self-registration always yields a staff account."""
        error = cls._validate(username, email, password, first_name, last_name)
        if error:
            return {'success': False, 'user': None, 'token': None, 'message': error}

        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=User.RoleChoices.STAFF,
        )
        logger.info('User %s registered', user.username)

        return {
            'success': True,
            'user': cls.serialize_user(user),
            'token': cls.generate_token(user),
            'message': 'User registered successfully',
        }

    @classmethod
    def login(cls, email, password):
        user = User.objects.filter(email__iexact=email or '').first()
        if user is None or not password:
            return {'success': False, 'token': None, 'user': None, 'message': 'Invalid credentials'}

        if not user.is_active:
            return {'success': False, 'token': None, 'user': None, 'message': 'Account is deactivated'}

        if authenticate(username=user.username, password=password) is None:
            return {'success': False, 'token': None, 'user': None, 'message': 'Invalid credentials'}

        User.objects.filter(id=user.id).update(last_login=datetime.now(timezone.utc))

        return {
            'success': True,
            'token': cls.generate_token(user),
            'user': cls.serialize_user(user),
            'message': 'Login successful',
        }

    @classmethod
    def generate_token(cls, user, now=None):
        now = now or datetime.now(timezone.utc)
        payload = {
            'user_id': user.id,
            'username': user.username,
            'role': user.role,
            'exp': now + cls.expiry(),
            'iat': now,
        }
        return jwt.encode(payload, cls.secret(), algorithm=cls.JWT_ALGORITHM)

    @classmethod
    def get_user_from_token(cls, token):
        try:
            payload = jwt.decode(token, cls.secret(), algorithms=[cls.JWT_ALGORITHM])
        except jwt.InvalidTokenError:
            return None

        return User.objects.filter(id=payload.get('user_id'), is_active=True).first()

    @classmethod
    def list_users(cls):
        return {
            'success': True,
            'users': [cls.serialize_user(u) for u in User.objects.order_by('username')],
        }

    @classmethod
    @transaction.atomic
    def create_user(cls, username, email, password, first_name, last_name, role=User.RoleChoices.STAFF):
        error = cls._validate(username, email, password, first_name, last_name, role)
        if error:
            return {'success': False, 'user': None, 'message': error}

        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=role,
        )
        logger.info('User %s created with role %s', user.username, user.role)

        return {'success': True, 'user': cls.serialize_user(user), 'message': 'User created'}

    @classmethod
    def _validate_update(cls, user, data):
        others = User.objects.exclude(id=user.id)

        for field in ('username', 'email', 'first_name', 'last_name'):
            if field in data and not isinstance(data[field], str):
                return f'{field} must be a string'

        for field in ('first_name', 'last_name'):
            if field in data and not data[field].strip():
                return f'{field} is required'

        if 'username' in data:
            if len(data['username']) < 3:
                return 'Username must be at least 3 characters'
            if others.filter(username=data['username']).exists():
                return 'Username already taken'

        if 'email' in data:
            try:
                validate_email(data['email'])
            except ValidationError:
                return 'Please provide a valid email'
            if others.filter(email__iexact=data['email']).exists():
                return 'Email already taken'

        if 'role' in data and data['role'] not in User.RoleChoices.values:
            return f'Invalid role. Valid: {User.RoleChoices.values}'

        if 'is_active' in data and not isinstance(data['is_active'], bool):
            return 'is_active must be true or false'

        if data.get('password') and not isinstance(data['password'], str):
            return 'password must be a string'
        if data.get('password') and len(data['password']) < 6:
            return 'Password must be at least 6 characters'

        return None

    @classmethod
    @transaction.atomic
    def update_user(cls, user_id, **data):
        user = User.objects.filter(id=user_id).first()
        if user is None:
            return {'success': False, 'user': None, 'message': 'User not found', 'error_code': 'NOT_FOUND'}

        error = cls._validate_update(user, data)
        if error:
            return {'success': False, 'user': None, 'message': error, 'error_code': 'VALIDATION_ERROR'}

        for field in cls.USER_FIELDS:
            if field in data:
                setattr(user, field, data[field])

        if data.get('password'):
            user.set_password(data['password'])

        user.save()

        return {'success': True, 'user': cls.serialize_user(user), 'message': 'User updated'}

    @classmethod
    @transaction.atomic
    def delete_user(cls, user_id, actor_id):
        """Users referenced by orders or ledger rows are deactivated instead of removed."""
        if str(user_id) == str(actor_id):
            return {'success': False, 'message': 'Admins cannot delete themselves', 'error_code': 'SELF_DELETE'}

        user = User.objects.filter(id=user_id).first()
        if user is None:
            return {'success': False, 'message': 'User not found', 'error_code': 'NOT_FOUND'}

        if user.created_purchase_orders.exists() or user.stock_transactions.exists():
            user.is_active = False
            user.save(update_fields=['is_active'])
            logger.info('User %s deactivated, still referenced by stock records', user.username)
            return {'success': True, 'message': 'User deactivated', 'deactivated': True}

        username = user.username
        user.delete()
        logger.info('User %s deleted', username)
        return {'success': True, 'message': 'User deleted', 'deactivated': False}
