"""
Cart API views.
"""
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from apps.bookings.exceptions import BookingEngineError
from apps.bookings.views import _slot_from_payload
from apps.core.http import (
    BadRequest,
    NotFound,
    error_response,
    get_or_not_found,
    parse_amount,
    parse_json,
    require,
    resolve_student,
)
from apps.ticketclasses.models import TicketClass

from . import services
from .models import CartItem

API_ERRORS = (BookingEngineError, BadRequest, NotFound)


@require_GET
def cart_status(request, student_id):
    """GET /api/cart/<uuid>/ — items, count, total."""
    try:
        student = resolve_student({'student_id': student_id})
    except API_ERRORS as exc:
        return error_response(exc)
    return JsonResponse(services.cart_summary(student))


@csrf_exempt
@require_POST
def add_item(request):
    """
    POST /api/cart/add/
    A slot (instructor_id + slot_id or date/start) or a ticket_class_id.
    """
    try:
        data = parse_json(request)
        student = resolve_student(data, create=True)
        if data.get('ticket_class_id'):
            ticket_class = get_or_not_found(
                TicketClass.objects.all(), data['ticket_class_id'], 'Ticket class not found.',
            )
            item = services.add_class_to_cart(student, ticket_class)
        else:
            slot = _slot_from_payload(data)
            item = services.add_to_cart(
                student, slot,
                amount=parse_amount(data.get('amount')),
                pickup_location=data.get('pickup_location', ''),
                dropoff_location=data.get('dropoff_location', ''),
                package_reference=data.get('package_reference', ''),
            )
    except API_ERRORS as exc:
        return error_response(exc)

    return JsonResponse({'success': True, 'item': item.as_dict()}, status=201)


@csrf_exempt
@require_POST
def remove_item(request, item_id):
    """POST /api/cart/items/<uuid>/remove/"""
    item = get_object_or_404(CartItem, pk=item_id)
    try:
        student = resolve_student(parse_json(request))
        services.remove_from_cart(student, item)
    except API_ERRORS as exc:
        return error_response(exc)
    return JsonResponse({'success': True})


@csrf_exempt
@require_POST
def clear(request):
    """POST /api/cart/clear/ — `release: false` keeps the holds (checkout handed over)."""
    try:
        data = parse_json(request)
        require(data, 'student_id')
        student = resolve_student(data)
        release = data.get('release', True) not in (False, 'false', '0', 0)
        removed = services.clear_cart(student, release=release)
    except API_ERRORS as exc:
        return error_response(exc)
    return JsonResponse({'success': True, 'removed': removed})
