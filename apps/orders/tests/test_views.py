import hashlib
import hmac
import json

from django.test import TestCase, override_settings
from django.urls import reverse

from apps.bookings.models import SlotStatus
from apps.cart import services as cart_services
from apps.core.tests.factories import make_instructor, make_slot, make_student
from apps.orders import services
from apps.orders.models import OrderPaymentStatus, OrderStatus


def sign(body: bytes, secret='test-webhook-secret') -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class CheckoutViewTests(TestCase):
    def setUp(self):
        self.instructor = make_instructor()
        self.student = make_student()
        self.slot = make_slot(self.instructor)

    def test_create_order(self):
        cart_services.add_to_cart(self.student, self.slot)

        response = self.client.post(
            reverse('orders:create'), {'student_id': str(self.student.id)}, content_type='application/json',
        )

        self.assertEqual(response.status_code, 201)
        order = response.json()['order']
        self.assertEqual(order['status'], 'pending')
        self.assertEqual(order['appointments'][0]['slot_id'], str(self.slot.id))

    def test_empty_cart_answers_400(self):
        response = self.client.post(
            reverse('orders:create'), {'student_id': str(self.student.id)}, content_type='application/json',
        )
        self.assertEqual(response.status_code, 400)

    def test_cancel_order(self):
        cart_services.add_to_cart(self.student, self.slot)
        order = services.create_order_from_cart(self.student)

        response = self.client.post(reverse('orders:cancel'), {
            'student_id': str(self.student.id), 'order_id': str(order.id),
        }, content_type='application/json')

        self.assertEqual(response.json()['released'], 1)

    def test_order_detail_is_private(self):
        cart_services.add_to_cart(self.student, self.slot)
        order = services.create_order_from_cart(self.student)
        url = reverse('orders:detail', args=[order.id])

        self.assertEqual(self.client.get(url, {'student_id': str(self.student.id)}).status_code, 200)
        self.assertEqual(self.client.get(url, {'student_id': str(make_student().id)}).status_code, 404)


class PaymentWebhookTests(TestCase):
    def setUp(self):
        self.student = make_student()
        self.slot = make_slot(make_instructor())
        cart_services.add_to_cart(self.student, self.slot)
        self.order = services.create_order_from_cart(self.student)
        self.url = reverse('orders:payment_webhook')

    def _post(self, payload, signature=None):
        body = json.dumps(payload).encode()
        return self.client.post(
            self.url, body, content_type='application/json',
            HTTP_X_PAYMENT_SIGNATURE=signature if signature is not None else sign(body),
        )

    def test_completed_payment_books_the_slot(self):
        response = self._post({'order_id': str(self.order.id), 'status': 'completed', 'reference': 'txn-9'})

        self.assertEqual(response.status_code, 200)
        self.slot.refresh_from_db()
        self.assertEqual(self.slot.status, SlotStatus.BOOKED)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, OrderPaymentStatus.COMPLETED)

    def test_bad_signature_is_rejected(self):
        response = self._post({'order_id': str(self.order.id), 'status': 'completed'}, signature='nope')

        self.assertEqual(response.status_code, 400)
        self.slot.refresh_from_db()
        self.assertEqual(self.slot.status, SlotStatus.PENDING)

    @override_settings(PAYMENT_WEBHOOK_SECRET='')
    def test_missing_secret_rejects_everything(self):
        response = self._post({'order_id': str(self.order.id), 'status': 'completed'})
        self.assertEqual(response.status_code, 400)

    def test_unknown_order_is_acknowledged(self):
        response = self._post({'order_id': str(self.student.id), 'status': 'completed'})
        self.assertEqual(response.status_code, 200)

    def test_failed_payment_releases(self):
        self._post({'order_id': str(self.order.id), 'status': 'failed'})

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.CANCELLED)
        self.slot.refresh_from_db()
        self.assertEqual(self.slot.status, SlotStatus.AVAILABLE)

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(self.url).status_code, 405)

    def test_body_that_is_not_an_object(self):
        response = self._post([{'order_id': str(self.order.id), 'status': 'completed'}])

        self.assertEqual(response.status_code, 400)
        self.slot.refresh_from_db()
        self.assertEqual(self.slot.status, SlotStatus.PENDING)
