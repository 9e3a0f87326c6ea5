"""
Booking API views — thin JSON wrappers around the booking engine.

Slots are addressed either by `slot_id` or by
instructor_id + class_type + date + start (+ end), the way calendar clients
know them. Engine exceptions are turned into JSON errors by error_response.
"""
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from apps.cart import services as cart_services
from apps.core.http import (
    BadRequest,
    NotFound,
    error_response,
    parse_amount,
    parse_date,
    parse_json,
    parse_time,
    require,
    resolve_student,
)
from apps.notifications.broadcast import get_schedule_version

from . import engine
from .exceptions import BookingEngineError
from .models import ClassType, PaymentMethod, StudentBooking

API_ERRORS = (BookingEngineError, BadRequest, NotFound)


def _class_type(value):
    if value not in ClassType.values:
        raise BadRequest(f"Invalid class_type: expected one of {', '.join(ClassType.values)}.")
    return value


def _slot_from_payload(data):
    require(data, 'instructor_id')
    if data.get('slot_id'):
        return engine.find_slot(data['instructor_id'], None, None, None, slot_id=data['slot_id'])
    require(data, 'class_type', 'date', 'start')
    return engine.find_slot(
        data['instructor_id'],
        _class_type(data['class_type']),
        parse_date(data['date']),
        parse_time(data['start'], 'start'),
        parse_time(data['end'], 'end') if data.get('end') else None,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Reserve / cancel / redeem
# ─────────────────────────────────────────────────────────────────────────────

@csrf_exempt
@require_POST
def reserve_pending(request):
    """
    POST /api/bookings/reserve-pending/
    Hold a slot as pending for a student. Holds are paid to the instructor
    unless `payment_method` is "online"; those go into the student's cart
    and are paid at checkout. Pay-at-appointment holds stay pending until
    the instructor confirms them.
    """
    try:
        data = parse_json(request)
        student = resolve_student(data, create=True)
        slot = _slot_from_payload(data)
        payment_method = data.get('payment_method') or PaymentMethod.INSTRUCTOR
        if payment_method not in (PaymentMethod.ONLINE, PaymentMethod.INSTRUCTOR):
            raise BadRequest('payment_method must be "online" or "instructor".')
        hold = dict(
            amount=parse_amount(data.get('amount')),
            pickup_location=data.get('pickup_location', ''),
            dropoff_location=data.get('dropoff_location', ''),
            package_reference=data.get('package_reference', ''),
        )
        if payment_method == PaymentMethod.ONLINE:
            slot = cart_services.add_to_cart(student, slot, **hold).slot
        else:
            slot = engine.reserve_pending(student, slot, payment_method=payment_method, **hold)
    except API_ERRORS as exc:
        return error_response(exc)

    return JsonResponse({'success': True, 'slot': slot.as_dict()}, status=201)


@csrf_exempt
@require_POST
def cancellation_policy(request):
    """POST /api/bookings/cancellation-policy/ — quote only, nothing changes."""
    try:
        data = parse_json(request)
        student = resolve_student(data)
        slot = _slot_from_payload(data)
        if slot.student_id != student.id:
            return JsonResponse({'error': 'This booking does not belong to you.'}, status=403)
    except API_ERRORS as exc:
        return error_response(exc)

    return JsonResponse(engine.evaluate_cancellation(slot).as_dict())


@csrf_exempt
@require_POST
def cancel(request):
    """
    POST /api/bookings/cancel/
    Free cancellations happen immediately. Inside the fee window the
    response carries requires_payment and the client creates a fee order.
    """
    try:
        data = parse_json(request)
        student = resolve_student(data)
        slot = _slot_from_payload(data)
        result = engine.cancel_booking(student, slot)
    except API_ERRORS as exc:
        return error_response(exc)

    return JsonResponse({'success': result.cancelled, **result.as_dict()})


@csrf_exempt
@require_POST
def redeem(request):
    """POST /api/bookings/redeem/ — book a slot with a cancellation credit."""
    try:
        data = parse_json(request)
        student = resolve_student(data)
        slot = _slot_from_payload(data)
        booking = engine.redeem_credit(student, slot)
    except API_ERRORS as exc:
        return error_response(exc)

    return JsonResponse({'success': True, 'booking': booking.as_dict()}, status=201)


# ─────────────────────────────────────────────────────────────────────────────
# Student views
# ─────────────────────────────────────────────────────────────────────────────

@require_GET
def student_bookings(request, student_id):
    """GET /api/bookings/students/<uuid>/ — the student's bookings, newest first."""
    try:
        student = resolve_student({'student_id': student_id})
    except API_ERRORS as exc:
        return error_response(exc)

    bookings = (
        StudentBooking.objects
        .filter(student=student)
        .select_related('instructor')
    )
    status = request.GET.get('status')
    if status:
        bookings = bookings.filter(status=status)
    return JsonResponse({'bookings': [b.as_dict() for b in bookings]})


@require_GET
def student_credits(request, student_id):
    """GET /api/bookings/students/<uuid>/credits/?class_type=&duration="""
    try:
        student = resolve_student({'student_id': student_id})
        class_type = request.GET.get('class_type')
        if class_type:
            _class_type(class_type)
        duration = request.GET.get('duration')
        if duration:
            try:
                duration = int(duration)
            except ValueError:
                raise BadRequest('duration must be a number of minutes.')
        credits = engine.available_credits(student, class_type or None, duration or None)
    except API_ERRORS as exc:
        return error_response(exc)

    credits = credits.select_related('instructor')
    return JsonResponse({
        'credits': [c.as_dict() for c in credits],
        'count': len(credits),
    })


# ─────────────────────────────────────────────────────────────────────────────
# Schedule polling
# ─────────────────────────────────────────────────────────────────────────────

@require_GET
def schedule_updates(request):
    """
    GET /api/bookings/schedule-updates/?instructor_id=&class_type=&since=<version>
    `changed` is true when the schedule moved on since the client's version.
    """
    try:
        require(request.GET, 'instructor_id', 'class_type')
        class_type = _class_type(request.GET['class_type'])
        since = int(request.GET.get('since') or 0)
    except ValueError:
        return JsonResponse({'error': 'since must be an integer.'}, status=400)
    except BadRequest as exc:
        return error_response(exc)

    version = get_schedule_version(request.GET['instructor_id'], class_type)
    return JsonResponse({'version': version, 'changed': version != since})
