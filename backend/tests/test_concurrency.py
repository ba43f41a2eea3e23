# Overview: Threaded concurrency tests for numbering, identifiers and ledger balances.

"""
Concurrency tests

Each test uses a file-backed SQLite database so every thread gets its own
connection; the in-memory database used elsewhere shares one connection.
"""
import os
import tempfile
import threading
import unittest
from datetime import date

from billing import create_app
from billing.extensions import db
from billing.models import Customer, LedgerEntry
from billing.services import account_service, document_service, identifier_service, ledger_service

WORKERS = 10


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "COUNTER_RETRY_ATTEMPTS": 10,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            account = account_service.create_account(name="Concurrency Traders", state="Kerala")
            self.account_id = account.id

            customer = account_service.create_customer(account.id, {"name": "Busy Buyer", "state": "Kerala"})
            self.customer_id = customer.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run(self, target, count=WORKERS):
        results = []
        errors = []
        lock = threading.Lock()

        def worker():
            with self.app.app_context():
                try:
                    value = target()
                    with lock:
                        results.append(value)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results, errors

    def test_document_numbers_unique(self):
        def create_invoice():
            result = document_service.create_document(
                account_id=self.account_id,
                kind="invoice",
                customer_id=self.customer_id,
                lines=[{"description": "Item", "hsn_code": "8471", "quantity": 1, "rate": "1000", "gst_rate": 18}],
                document_date=date(2026, 4, 10),
            )
            return result.document.document_number

        numbers, errors = self._run(create_invoice)

        self.assertFalse(errors)
        self.assertEqual(
            sorted(numbers),
            [f"INV/26/{n:03d}" for n in range(1, WORKERS + 1)],
        )

        with self.app.app_context():
            customer = db.session.get(Customer, self.customer_id)
            self.assertEqual(customer.balance_paise, 118000 * WORKERS)
            self.assertEqual(db.session.query(LedgerEntry).count(), WORKERS)

    def test_professional_ids_unique(self):
        def allocate():
            return identifier_service.allocate("GST Practitioner")

        allocated, errors = self._run(allocate)

        self.assertFalse(errors)
        self.assertTrue(all(a.authoritative for a in allocated))
        self.assertEqual(
            sorted(a.value for a in allocated),
            [f"BHPGP{n:05d}" for n in range(1, WORKERS + 1)],
        )

        with self.app.app_context():
            self.assertEqual(identifier_service.current_count(), WORKERS)

    def test_concurrent_payments_keep_balance(self):
        def pay():
            return ledger_service.record_payment(customer_id=self.customer_id, amount_paise=100).id

        entry_ids, errors = self._run(pay)

        self.assertFalse(errors)
        self.assertEqual(len(set(entry_ids)), WORKERS)

        with self.app.app_context():
            customer = db.session.get(Customer, self.customer_id)
            self.assertEqual(customer.balance_paise, -100 * WORKERS)
            self.assertEqual(ledger_service.reconcile_account(self.account_id), [])


if __name__ == "__main__":
    unittest.main()
