"""
Small helpers shared by the JSON views.

Engine and service exceptions carry a `status_code`; `error_response` turns
any of them into a JsonResponse so views only need one except clause.
"""
import json
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.http import JsonResponse


class BadRequest(Exception):
    status_code = 400


class NotFound(Exception):
    status_code = 404


def parse_json(request) -> dict:
    """Request body as a dict. Form-encoded bodies are accepted too."""
    if request.content_type == 'application/json':
        try:
            data = json.loads(request.body or b'{}')
        except (ValueError, UnicodeDecodeError):
            raise BadRequest('Request body is not valid JSON.')
        if not isinstance(data, dict):
            raise BadRequest('Request body must be a JSON object.')
        return data
    return request.POST.dict()


def parse_date(value, field='date'):
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (ValueError, TypeError):
        raise BadRequest(f'Invalid {field}: expected YYYY-MM-DD.')


def parse_time(value, field='time'):
    for fmt in ('%H:%M', '%H:%M:%S', '%I:%M %p', '%I:%M%p'):
        try:
            return datetime.strptime(str(value or '').strip().upper(), fmt).time()
        except ValueError:
            continue
    raise BadRequest(f'Invalid {field}: expected HH:MM.')


def parse_amount(value, field='amount'):
    if value in (None, ''):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise BadRequest(f'Invalid {field}.')
    if amount < 0:
        raise BadRequest(f'{field.capitalize()} cannot be negative.')
    return amount


def parse_uuid(value, field='id'):
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise BadRequest(f'Invalid {field}.')


def require(data: dict, *fields):
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise BadRequest(f"Missing required field(s): {', '.join(missing)}.")


def get_or_not_found(queryset, pk, message='Not found.'):
    """queryset.get(pk=pk), raising NotFound for missing rows and malformed ids."""
    try:
        return queryset.get(pk=pk)
    except (queryset.model.DoesNotExist, ValidationError, ValueError):
        raise NotFound(message)


def resolve_student(data: dict, create=False):
    """
    The student a request acts for: `student_id`, or `email` (created from
    first_name / last_name / phone when `create` is set).
    """
    from apps.students.models import Student

    student_id = data.get('student_id')
    if student_id:
        try:
            return Student.objects.get(pk=student_id, is_active=True)
        except (Student.DoesNotExist, ValidationError, ValueError):
            raise NotFound('Student not found.')

    email = (data.get('email') or '').strip().lower()
    if not email:
        raise BadRequest('student_id or email is required.')

    if not create:
        student = Student.objects.filter(email=email, is_active=True).first()
        if student is None:
            raise NotFound('Student not found.')
        return student

    require(data, 'first_name', 'last_name')
    try:
        student, _ = Student.get_or_create_by_email(
            email=email,
            first_name=data['first_name'].strip(),
            last_name=data['last_name'].strip(),
            middle_name=(data.get('middle_name') or '').strip(),
            phone=data.get('phone') or '',
        )
    except ValueError as exc:
        raise BadRequest(str(exc))
    return student


def error_response(exc) -> JsonResponse:
    status = getattr(exc, 'status_code', 400)
    return JsonResponse({'error': str(exc)}, status=status)
