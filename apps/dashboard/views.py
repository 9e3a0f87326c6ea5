"""
Dashboard views — staff-only JSON endpoints behind the instructor calendar.
"""
import logging
from datetime import timedelta

from django.contrib.auth import authenticate, login, logout
from django.db.models import Count
from django.http import JsonResponse
from django.middleware.csrf import get_token
from django.utils import timezone
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_GET, require_POST

from apps.bookings import engine
from apps.bookings.exceptions import BookingEngineError
from apps.bookings.models import ClassType, Slot, SlotStatus
from apps.core.http import BadRequest, NotFound, error_response, get_or_not_found, parse_date, parse_json
from apps.instructors.models import Instructor

from .decorators import dashboard_admin_required
from .forms import SlotCreateForm, SlotStatusForm

logger = logging.getLogger(__name__)


def _form_errors(form):
    return JsonResponse({'error': 'Invalid data.', 'fields': form.errors.get_json_data()}, status=400)


# ─────────────────────────────────────────────────────────────────────────────
# Auth views
# ─────────────────────────────────────────────────────────────────────────────

@ensure_csrf_cookie
@require_GET
def csrf(request):
    """Sets the CSRF cookie; the dashboard client echoes it in X-CSRFToken."""
    return JsonResponse({'csrf_token': get_token(request)})


@require_POST
def dashboard_login(request):
    """Session login for staff. django-axes locks out repeated failures."""
    try:
        data = parse_json(request)
    except BadRequest as exc:
        return error_response(exc)

    username = (data.get('username') or '').strip()
    password = data.get('password') or ''
    user = authenticate(request, username=username, password=password)
    if user is None:
        return JsonResponse({'error': 'Invalid username or password.'}, status=401)
    if not user.is_staff:
        return JsonResponse({'error': 'Your account does not have admin access.'}, status=403)

    login(request, user)
    logger.info('Dashboard login: %s', user.get_username())
    # login() rotates the token
    return JsonResponse({
        'success': True,
        'username': user.get_username(),
        'csrf_token': get_token(request),
    })


@require_POST
def dashboard_logout(request):
    logout(request)
    return JsonResponse({'success': True})


# ─────────────────────────────────────────────────────────────────────────────
# Schedule
# ─────────────────────────────────────────────────────────────────────────────

@dashboard_admin_required
@require_GET
def schedule(request, instructor_id):
    """
    GET /dashboard/instructors/<uuid>/schedule/?class_type=&start=&end=
    Full schedule including students, payment details and cancelled rows.
    """
    try:
        instructor = get_or_not_found(Instructor.objects.all(), instructor_id, 'Instructor not found.')
        start = parse_date(request.GET['start'], 'start') if request.GET.get('start') else None
        end = parse_date(request.GET['end'], 'end') if request.GET.get('end') else None
    except (BadRequest, NotFound) as exc:
        return error_response(exc)

    slots = Slot.objects.filter(instructor=instructor).select_related('student')
    class_type = request.GET.get('class_type')
    if class_type:
        if class_type not in ClassType.values:
            return JsonResponse({'error': 'Invalid class_type.'}, status=400)
        slots = slots.filter(class_type=class_type)
    if start:
        slots = slots.filter(date__gte=start)
    if end:
        slots = slots.filter(date__lte=end)
    if request.GET.get('include_cancelled') != '1':
        slots = slots.exclude(status=SlotStatus.CANCELLED)

    counts = dict(slots.order_by().values_list('status').annotate(n=Count('id')))
    return JsonResponse({
        'instructor': instructor.as_dict(),
        'slots': [slot.as_dict() for slot in slots],
        'counts': counts,
    })


# ─────────────────────────────────────────────────────────────────────────────
# Slot management
# ─────────────────────────────────────────────────────────────────────────────

@dashboard_admin_required
@require_POST
def slot_create(request):
    """POST /dashboard/slots/ — one slot, or `count` back-to-back slots."""
    try:
        form = SlotCreateForm(parse_json(request))
    except BadRequest as exc:
        return error_response(exc)
    if not form.is_valid():
        return _form_errors(form)

    data = form.cleaned_data
    try:
        slots = engine.create_available_slots(
            data['instructor'], data['class_type'], data['date'],
            form.intervals(), amount=data.get('amount'),
        )
    except BookingEngineError as exc:
        return error_response(exc)

    return JsonResponse({'success': True, 'slots': [s.as_dict() for s in slots]}, status=201)


@dashboard_admin_required
@require_POST
def slot_delete(request, slot_id):
    try:
        slot = get_or_not_found(Slot.objects.all(), slot_id, 'Slot not found.')
        engine.delete_available_slot(slot)
    except (BookingEngineError, NotFound) as exc:
        return error_response(exc)
    return JsonResponse({'success': True})


@dashboard_admin_required
@require_POST
def slot_update_status(request, slot_id):
    """
    POST /dashboard/slots/<uuid>/status/  {"status": "booked", "payment_reference": "..."}

    Cancelling a booked slot here is a school cancellation: the time is
    re-offered and the student keeps a credit.
    """
    try:
        slot = get_or_not_found(Slot.objects.all(), slot_id, 'Slot not found.')
        form = SlotStatusForm(parse_json(request))
    except (BadRequest, NotFound) as exc:
        return error_response(exc)
    if not form.is_valid():
        return _form_errors(form)

    changed_by = f'admin:{request.user.get_username()}'
    try:
        engine.set_slot_status(
            slot, form.cleaned_data['status'],
            changed_by=changed_by,
            payment_reference=form.cleaned_data['payment_reference'],
        )
    except BookingEngineError as exc:
        return error_response(exc)

    slot.refresh_from_db()
    data = {'success': True, 'slot': slot.as_dict()}
    if slot.replacement_id:
        data['new_slot_id'] = str(slot.replacement_id)
    return JsonResponse(data)


@dashboard_admin_required
@require_GET
def upcoming(request):
    """Live bookings for the next week across all instructors."""
    today = timezone.localdate()
    slots = (
        Slot.objects
        .filter(date__range=(today, today + timedelta(days=7)), status__in=[
            SlotStatus.PENDING, SlotStatus.BOOKED, SlotStatus.SCHEDULED,
        ])
        .select_related('instructor')
    )
    return JsonResponse({'slots': [s.as_dict() for s in slots]})
