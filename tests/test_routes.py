from tests.ledger_test_case import LedgerTestCase


class RoutesTestCase(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.client = self.app.test_client()
        self.student = self.add_student()
        self.invoice = self.add_invoice(self.student, total_amount=5000, days_overdue=30)

    def login(self, role='bursar'):
        with self.client.session_transaction() as sess:
            sess['user_id'] = 1
            sess['username'] = 'bursar1'
            sess['role'] = role

    def test_login_required(self):
        response = self.client.get('/collections/aged-receivables')

        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.get_json()['success'])

    def test_role_required(self):
        self.login(role='teacher')

        response = self.client.get('/collections/aged-receivables')

        self.assertEqual(response.status_code, 403)

    def test_aged_receivables(self):
        self.login()

        response = self.client.get(f'/collections/aged-receivables?as_of={self.AS_OF.isoformat()}')

        data = response.get_json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(data['buckets']), 5)
        self.assertEqual(data['buckets'][0]['total_amount'], 5000)
        self.assertEqual(data['buckets'][0]['accounts'][0]['days_overdue'], 30)

    def test_invalid_as_of(self):
        self.login()

        response = self.client.get('/collections/aged-receivables?as_of=31-03-2026')

        self.assertEqual(response.status_code, 400)
        data = response.get_json()
        self.assertEqual(data['error_type'], 'ValidationError')
        self.assertIn('error_id', data)

    def test_csv_export(self):
        self.login()

        response = self.client.get(f'/collections/aged-receivables/export.csv?as_of={self.AS_OF.isoformat()}')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.mimetype.startswith('text/csv'))
        lines = response.get_data(as_text=True).splitlines()
        self.assertEqual(lines[0], 'Bucket,Days Overdue,Student Count,Total Amount,Student Name,Admission #,Amount,Last Payment')
        self.assertEqual(len(lines), 2)

    def test_validate_and_record_payment(self):
        self.login()

        response = self.client.post('/payments/validate', json={'student_id': self.student.id, 'amount': 6000})
        data = response.get_json()
        self.assertEqual(response.status_code, 200)
        self.assertTrue(data['valid'])
        self.assertEqual(data['total_outstanding'], 5000)
        self.assertEqual(data['overpayment'], 1000)

        payload = {
            'student_id': self.student.id,
            'amount': 6000,
            'payment_method': 'MPESA',
            'transaction_date': self.AS_OF.isoformat(),
            'idempotency_key': 'mpesa-QX12',
        }
        response = self.client.post('/payments', json=payload)
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.get_json()['credited_amount'], 1000)

        replay = self.client.post('/payments', json=payload)
        self.assertEqual(replay.status_code, 200)
        self.assertTrue(replay.get_json()['replayed'])

        credit = self.client.get(f'/payments/students/{self.student.id}/credit')
        self.assertEqual(credit.get_json()['credit_balance'], 1000)

    def test_payment_errors(self):
        self.login()

        response = self.client.post('/payments', json={'student_id': self.student.id, 'amount': -10,
                                                        'payment_method': 'CASH'})
        self.assertEqual(response.status_code, 400)

        response = self.client.post('/payments/validate', json={'student_id': 9999, 'amount': 100})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['error_type'], 'NotFoundError')

        response = self.client.post('/payments/validate', json={'amount': 100})
        self.assertEqual(response.status_code, 400)

    def test_void_payment_requires_bursar_or_admin(self):
        self.login()
        created = self.client.post('/payments', json={'student_id': self.student.id, 'amount': 1000,
                                                       'payment_method': 'CASH'}).get_json()
        transaction_id = created['transaction']['id']

        self.login(role='accountant')
        self.assertEqual(self.client.post(f'/payments/{transaction_id}/void', json={'reason': 'x'}).status_code, 403)

        self.login(role='admin')
        response = self.client.post(f'/payments/{transaction_id}/void', json={'reason': 'Wrong student'})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()['transaction']['is_voided'])

    def test_reminders_and_actions(self):
        self.login()

        response = self.client.post(f'/collections/reminders?as_of={self.AS_OF.isoformat()}')
        data = response.get_json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(data['total'], 1)
        self.assertEqual(data['reminders'][0]['reminder_type'], 'FIRST_REMINDER')

        response = self.client.post(f'/collections/students/{self.student.id}/actions',
                                    json={'action_type': 'PHONE_CALL', 'notes': 'Called guardian'})
        self.assertEqual(response.status_code, 201)

        history = self.client.get(f'/collections/students/{self.student.id}/actions').get_json()['actions']
        self.assertEqual(len(history), 2)
        self.assertEqual({action['action_type'] for action in history}, {'FIRST_REMINDER', 'PHONE_CALL'})

    def test_reports(self):
        self.login(role='accountant')
        as_of = self.AS_OF.isoformat()

        summary = self.client.get(f'/collections/aging-summary?as_of={as_of}').get_json()
        self.assertEqual(summary['grand_total'], 5000)

        top = self.client.get(f'/collections/top-overdue?limit=5&as_of={as_of}').get_json()
        self.assertEqual(top['count'], 1)

        self.assertEqual(self.client.get('/collections/top-overdue?limit=0').status_code, 400)

        priority = self.client.get(f'/collections/high-priority?as_of={as_of}').get_json()
        self.assertEqual(priority['count'], 0)

        effectiveness = self.client.get(f'/collections/effectiveness?as_of={as_of}').get_json()
        self.assertIn(effectiveness['effectiveness_status'], ('EXCELLENT', 'GOOD', 'FAIR', 'POOR'))

    def test_health(self):
        self.assertEqual(self.client.get('/health').get_json(), {'status': 'ok'})
