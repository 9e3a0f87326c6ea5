"""
Ticket-class API views: listing, seat requests and cancellation.
"""
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from apps.bookings.exceptions import BookingEngineError
from apps.cart import services as cart_services
from apps.core.http import (
    BadRequest,
    NotFound,
    error_response,
    get_or_not_found,
    parse_date,
    parse_json,
    parse_uuid,
    require,
    resolve_student,
)

from . import services
from .models import Enrollment, EnrollmentStatus, TicketClass

API_ERRORS = (BookingEngineError, BadRequest, NotFound)


def _live_enrollment(data):
    require(data, 'ticket_class_id')
    student = resolve_student(data)
    enrollment = (
        Enrollment.objects
        .select_related('ticket_class')
        .filter(student=student, ticket_class_id=parse_uuid(data['ticket_class_id'], 'ticket_class_id'))
        .exclude(status=EnrollmentStatus.CANCELLED)
        .first()
    )
    if enrollment is None:
        raise BadRequest('User is not enrolled in this class.')
    return student, enrollment


@require_GET
def class_list(request):
    """GET /api/ticket-classes/?location_id=&class_type=&from=YYYY-MM-DD"""
    classes = TicketClass.objects.select_related('location')
    try:
        start = parse_date(request.GET['from'], 'from') if request.GET.get('from') else timezone.localdate()
        if request.GET.get('location_id'):
            classes = classes.filter(location_id=parse_uuid(request.GET['location_id'], 'location_id'))
    except BadRequest as exc:
        return error_response(exc)

    classes = classes.filter(date__gte=start)
    if request.GET.get('class_type'):
        classes = classes.filter(class_type=request.GET['class_type'])
    return JsonResponse({'classes': [c.as_dict() for c in classes]})


@csrf_exempt
@require_POST
def request_seat(request):
    """
    POST /api/ticket-classes/request/
    The seat is held as pending and goes into the student's cart, so it is
    paid for at checkout like any other item.
    """
    try:
        data = parse_json(request)
        require(data, 'ticket_class_id')
        student = resolve_student(data, create=True)
        ticket_class = get_or_not_found(
            TicketClass.objects.all(), data['ticket_class_id'], 'Ticket class not found.',
        )
        item = cart_services.add_class_to_cart(student, ticket_class)
    except API_ERRORS as exc:
        return error_response(exc)
    return JsonResponse({
        'success': True,
        'enrollment': item.enrollment.as_dict(),
        'cart_item': item.as_dict(),
    }, status=201)


@csrf_exempt
@require_POST
def cancellation_policy(request):
    """POST /api/ticket-classes/cancellation-policy/"""
    try:
        _, enrollment = _live_enrollment(parse_json(request))
    except API_ERRORS as exc:
        return error_response(exc)
    return JsonResponse(services.check_cancellation_policy(enrollment))


@csrf_exempt
@require_POST
def cancel(request):
    """POST /api/ticket-classes/cancel/"""
    try:
        student, enrollment = _live_enrollment(parse_json(request))
        enrollment = services.cancel_enrollment(student, enrollment)
    except API_ERRORS as exc:
        return error_response(exc)
    return JsonResponse({'success': True, 'enrollment': enrollment.as_dict()})
