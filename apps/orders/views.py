"""
Order API views.

Flow:
  1. create_order          → cart snapshot, slots linked to the order
  2. (payment provider)    → the customer pays outside this service
  3. payment_webhook       → provider reports completed / failed / cancelled
                           → apply_payment_result confirms or releases
  4. cancel_order          → customer abandons checkout, pending holds freed

Late cancellations use create_cancellation_order: the fee order runs through
the same webhook and finishes the cancellation once paid.
"""
import hashlib
import hmac
import json
import logging

from django.conf import settings
from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from apps.bookings.exceptions import BookingEngineError
from apps.bookings.views import _slot_from_payload
from apps.core.http import (
    BadRequest,
    NotFound,
    error_response,
    get_or_not_found,
    parse_json,
    resolve_student,
)

from . import services
from .models import Order, OrderPaymentStatus, OrderType

logger = logging.getLogger(__name__)

API_ERRORS = (BookingEngineError, BadRequest, NotFound)


def _verify_webhook_signature(raw_body: bytes, signature: str) -> bool:
    """HMAC-SHA256 of the raw body with the shared webhook secret."""
    secret = settings.PAYMENT_WEBHOOK_SECRET.encode()
    computed = hmac.new(key=secret, msg=raw_body, digestmod=hashlib.sha256).hexdigest()
    return hmac.compare_digest(computed, signature)


def _order_for(data, student):
    order = get_or_not_found(Order.objects.all(), data.get('order_id'), 'Order not found.')
    if order.student_id != student.id:
        raise NotFound('Order not found.')
    return order


# ─────────────────────────────────────────────────────────────────────────────
# Checkout
# ─────────────────────────────────────────────────────────────────────────────

@csrf_exempt
@require_POST
def create_order(request):
    """POST /api/orders/create/ — turn the student's cart into a pending order."""
    try:
        data = parse_json(request)
        student = resolve_student(data)
        order_type = data.get('order_type') or None
        if order_type and order_type not in OrderType.values:
            raise BadRequest('Invalid order_type.')
        package_hours = data.get('package_hours')
        order = services.create_order_from_cart(
            student,
            order_type=order_type,
            payment_method=data.get('payment_method') or 'online',
            package_name=data.get('package_name', ''),
            package_hours=int(package_hours) if package_hours not in (None, '') else None,
        )
    except ValueError:
        return JsonResponse({'error': 'package_hours must be a whole number.'}, status=400)
    except API_ERRORS as exc:
        return error_response(exc)

    return JsonResponse({'success': True, 'order': order.as_dict()}, status=201)


@csrf_exempt
@require_POST
def create_cancellation_order(request):
    """POST /api/orders/cancellation/ — fee order for a late cancellation."""
    try:
        data = parse_json(request)
        student = resolve_student(data)
        slot = _slot_from_payload(data)
        order = services.create_cancellation_order(student, slot)
    except API_ERRORS as exc:
        return error_response(exc)

    return JsonResponse({'success': True, 'order': order.as_dict()}, status=201)


@csrf_exempt
@require_POST
def cancel_order(request):
    """POST /api/orders/cancel/ — release the pending holds of an unpaid order."""
    try:
        data = parse_json(request)
        student = resolve_student(data)
        result = services.cancel_order(student, _order_for(data, student))
    except API_ERRORS as exc:
        return error_response(exc)

    return JsonResponse({'success': True, **result})


@require_GET
def order_detail(request, order_id):
    try:
        student = resolve_student(request.GET.dict())
        order = _order_for({'order_id': order_id}, student)
    except API_ERRORS as exc:
        return error_response(exc)
    return JsonResponse({'order': order.as_dict()})


@require_GET
def student_orders(request, student_id):
    try:
        student = resolve_student({'student_id': student_id})
    except API_ERRORS as exc:
        return error_response(exc)
    orders = student.orders.prefetch_related('appointments')
    return JsonResponse({'orders': [o.as_dict() for o in orders]})


# ─────────────────────────────────────────────────────────────────────────────
# Payment webhook
# ─────────────────────────────────────────────────────────────────────────────

@csrf_exempt
def payment_webhook(request):
    """
    POST /api/orders/payment-webhook/
    {"order_id": "...", "status": "completed|failed|cancelled", "reference": "..."}

    CSRF-exempt; the X-Payment-Signature header carries an HMAC-SHA256 of
    the body. Always answers 200 once the signature is good so the
    provider does not retry events we could not use.
    """
    if request.method != 'POST':
        return HttpResponse(status=405)

    raw_body = request.body
    signature = request.headers.get('X-Payment-Signature', '')
    if not settings.PAYMENT_WEBHOOK_SECRET or not _verify_webhook_signature(raw_body, signature):
        logger.warning('Payment webhook signature verification failed.')
        return HttpResponse(status=400)

    try:
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError):
        return HttpResponse(status=400)
    if not isinstance(payload, dict):
        return HttpResponse(status=400)

    status = payload.get('status', '')
    if status not in (OrderPaymentStatus.COMPLETED, OrderPaymentStatus.FAILED, OrderPaymentStatus.CANCELLED):
        logger.warning('Payment webhook: unsupported status %r', status)
        return HttpResponse(status=200)

    try:
        order = get_or_not_found(Order.objects.all(), payload.get('order_id'), 'Order not found.')
    except NotFound:
        logger.warning('Payment webhook: order %s not found', payload.get('order_id'))
        return HttpResponse(status=200)

    try:
        services.apply_payment_result(order, status, payload.get('reference', ''))
    except BookingEngineError as exc:
        logger.exception('Payment webhook processing error for order #%s: %s', order.order_number, exc)

    return HttpResponse(status=200)
