from datetime import datetime

from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from apps.core.tests.factories import make_student, make_ticket_class
from apps.orders import services as order_services
from apps.orders.models import OrderPaymentStatus
from apps.ticketclasses import services
from apps.ticketclasses.exceptions import (
    AlreadyEnrolledError,
    CancellationNotAllowedError,
    ClassFullError,
    NotEnrolledError,
)
from apps.ticketclasses.models import Enrollment, EnrollmentStatus


class EnrollmentTests(TestCase):
    def setUp(self):
        self.ticket_class = make_ticket_class(capacity=1)
        self.student = make_student()

    def test_last_seat(self):
        services.request_enrollment(self.student, self.ticket_class)

        self.assertEqual(self.ticket_class.available_spots, 0)
        with self.assertRaises(ClassFullError):
            services.request_enrollment(make_student(), self.ticket_class)

    def test_cannot_enroll_twice(self):
        services.request_enrollment(self.student, self.ticket_class)
        with self.assertRaises(AlreadyEnrolledError):
            services.request_enrollment(self.student, self.ticket_class)

    def test_cancelled_seat_is_free_again(self):
        enrollment = services.request_enrollment(self.student, self.ticket_class)
        services.cancel_enrollment(self.student, enrollment)

        other = services.request_enrollment(make_student(), self.ticket_class)

        self.assertEqual(other.status, EnrollmentStatus.PENDING)

    def test_confirm(self):
        enrollment = services.request_enrollment(self.student, self.ticket_class)

        enrollment = services.confirm_enrollment(enrollment)

        self.assertEqual(enrollment.status, EnrollmentStatus.ENROLLED)
        self.assertIsNotNone(enrollment.enrolled_at)

    def test_confirming_a_cancelled_seat(self):
        enrollment = services.request_enrollment(self.student, self.ticket_class)
        services.cancel_enrollment(self.student, enrollment)
        with self.assertRaises(NotEnrolledError):
            services.confirm_enrollment(enrollment)


class CancellationPolicyTests(TestCase):
    def setUp(self):
        self.student = make_student()

    def test_free_before_the_class_day(self):
        enrollment = services.request_enrollment(self.student, make_ticket_class(days_ahead=1))

        policy = services.check_cancellation_policy(enrollment)

        self.assertTrue(policy['can_cancel'])
        self.assertFalse(policy['requires_payment'])

    def test_not_on_the_class_day(self):
        ticket_class = make_ticket_class(days_ahead=1)
        enrollment = services.request_enrollment(self.student, ticket_class)
        morning_of_class = timezone.make_aware(datetime.combine(ticket_class.date, datetime.min.time()))

        self.assertFalse(services.check_cancellation_policy(enrollment, now=morning_of_class)['can_cancel'])
        with self.assertRaises(CancellationNotAllowedError):
            services.cancel_enrollment(self.student, enrollment, now=morning_of_class)

    def test_policy_can_be_bypassed_for_unpaid_seats(self):
        ticket_class = make_ticket_class(days_ahead=0)
        enrollment = services.request_enrollment(self.student, ticket_class)

        enrollment = services.cancel_enrollment(self.student, enrollment, enforce_policy=False)

        self.assertEqual(enrollment.status, EnrollmentStatus.CANCELLED)

    def test_only_the_owner_can_cancel(self):
        enrollment = services.request_enrollment(self.student, make_ticket_class())
        with self.assertRaises(NotEnrolledError):
            services.cancel_enrollment(make_student(), enrollment)


class TicketClassViewTests(TestCase):
    def test_list_hides_past_classes(self):
        upcoming = make_ticket_class(days_ahead=3)
        make_ticket_class(days_ahead=-3)

        response = self.client.get(reverse('ticketclasses:list'))

        ids = [c['id'] for c in response.json()['classes']]
        self.assertEqual(ids, [str(upcoming.id)])

    def test_request_and_cancel(self):
        ticket_class = make_ticket_class(days_ahead=3)
        payload = {
            'email': 'driver@example.com',
            'first_name': 'Dana',
            'last_name': 'Driver',
            'phone': '3055550111',
            'ticket_class_id': str(ticket_class.id),
        }

        response = self.client.post(reverse('ticketclasses:request'), payload, content_type='application/json')
        self.assertEqual(response.status_code, 201)

        response = self.client.post(reverse('ticketclasses:cancel'), payload, content_type='application/json')
        self.assertEqual(response.json()['enrollment']['status'], 'cancelled')

    def test_full_class_answers_409(self):
        ticket_class = make_ticket_class(capacity=1)
        services.request_enrollment(make_student(), ticket_class)

        response = self.client.post(reverse('ticketclasses:request'), {
            'student_id': str(make_student().id), 'ticket_class_id': str(ticket_class.id),
        }, content_type='application/json')

        self.assertEqual(response.status_code, 409)

    def test_policy_for_unknown_enrollment(self):
        response = self.client.post(reverse('ticketclasses:cancellation_policy'), {
            'student_id': str(make_student().id), 'ticket_class_id': str(make_ticket_class().id),
        }, content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_requested_seat_can_be_checked_out(self):
        ticket_class = make_ticket_class(capacity=1)
        student = make_student()
        payload = {'student_id': str(student.id), 'ticket_class_id': str(ticket_class.id)}

        response = self.client.post(reverse('ticketclasses:request'), payload, content_type='application/json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['cart_item']['enrollment_id'], response.json()['enrollment']['id'])

        response = self.client.post(reverse('cart:add'), payload, content_type='application/json')
        self.assertEqual(response.status_code, 409)

        order = order_services.create_order_from_cart(student)
        order_services.apply_payment_result(order, OrderPaymentStatus.COMPLETED)
        self.assertEqual(Enrollment.objects.get(student=student).status, EnrollmentStatus.ENROLLED)

    def test_malformed_class_id_answers_400(self):
        response = self.client.post(reverse('ticketclasses:cancellation_policy'), {
            'student_id': str(make_student().id), 'ticket_class_id': 'not-a-uuid',
        }, content_type='application/json')
        self.assertEqual(response.status_code, 400)
