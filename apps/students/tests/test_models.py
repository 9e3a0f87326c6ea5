from django.test import SimpleTestCase, TestCase

from apps.students.models import Student, normalize_phone


class NormalizePhoneTests(SimpleTestCase):
    def test_formats(self):
        for raw in ('(404) 555-0134', '+1 404-555-0134', '1.404.555.0134', '4045550134'):
            with self.subTest(raw=raw):
                self.assertEqual(normalize_phone(raw), '4045550134')

    def test_wrong_length(self):
        with self.assertRaises(ValueError):
            normalize_phone('555-0134')
        with self.assertRaises(ValueError):
            normalize_phone('2 404 555 0134')


class GetOrCreateByEmailTests(TestCase):
    def test_email_is_case_insensitive(self):
        first, created = Student.get_or_create_by_email('Ana@Example.com ', 'Ana', 'Diaz', phone='404-555-0134')
        again, created_again = Student.get_or_create_by_email('ana@example.com', 'Ana', 'Diaz')

        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(first, again)
        self.assertEqual(again.phone, '4045550134')

    def test_new_phone_replaces_the_old_one(self):
        Student.get_or_create_by_email('ana@example.com', 'Ana', 'Diaz', phone='404-555-0134')
        student, _ = Student.get_or_create_by_email('ana@example.com', 'Ana', 'Diaz', phone='305 555 0100')
        student.refresh_from_db()
        self.assertEqual(student.phone, '3055550100')

    def test_full_name_skips_blank_middle_name(self):
        student = Student(first_name='Ana', middle_name='  ', last_name='Diaz')
        self.assertEqual(student.full_name, 'Ana Diaz')
        student.middle_name = 'Maria'
        self.assertEqual(student.full_name, 'Ana Maria Diaz')
