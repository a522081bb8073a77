import unittest
import os
import sys

# Add backend to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fake_db import FakeDB
from pfe_catalog.core.exceptions import StoreError
from pfe_catalog.schemas.report import ReportForm
from pfe_catalog.services.draft_service import DraftService


class TestDraftService(unittest.TestCase):
    def setUp(self):
        self.db = FakeDB()
        self.service = DraftService(db=self.db)
        self.form = ReportForm(title="Détection de fraude", academicYear="2023-2024")

    def test_load_draft_without_draft(self):
        self.assertIsNone(self.service.load_draft("student-1"))

    def test_first_save_creates_draft(self):
        draft_id = self.service.save_draft("student-1", self.form)

        rows = self.db.rows("drafts")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["id"], draft_id)
        self.assertEqual(rows[0]["draft_data"]["title"], "Détection de fraude")
        # draft_data 使用表单的 camelCase 键名
        self.assertEqual(rows[0]["draft_data"]["academicYear"], "2023-2024")

    def test_second_save_updates_same_row(self):
        draft_id = self.service.save_draft("student-1", self.form)
        self.form.title = "Détection de fraude bancaire"
        second_id = self.service.save_draft("student-1", self.form, draft_id)

        self.assertEqual(second_id, draft_id)
        rows = self.db.rows("drafts")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["draft_data"]["title"], "Détection de fraude bancaire")
        self.assertIn(("drafts", "update"), self.db.calls)

    def test_save_without_known_id_never_duplicates(self):
        first = self.service.save_draft("student-1", self.form)
        second = self.service.save_draft("student-1", self.form)

        self.assertEqual(first, second)
        self.assertEqual(len(self.db.rows("drafts")), 1)

    def test_drafts_are_per_user(self):
        self.service.save_draft("student-1", self.form)
        self.service.save_draft("student-2", self.form)
        self.assertEqual(len(self.db.rows("drafts")), 2)

    def test_load_draft_restores_form(self):
        self.form.keywords = ["ia", "fraude", "", "", ""]
        draft_id = self.service.save_draft("student-1", self.form)

        draft = self.service.load_draft("student-1")
        self.assertEqual(draft.id, draft_id)
        restored = draft.to_form()
        self.assertEqual(restored.title, "Détection de fraude")
        self.assertEqual(restored.keywords, ["ia", "fraude", "", "", ""])

    def test_delete_draft(self):
        draft_id = self.service.save_draft("student-1", self.form)
        self.service.delete_draft(draft_id)
        self.assertIsNone(self.service.load_draft("student-1"))

    def test_save_failure_raises_store_error(self):
        self.db.fail_on("drafts", "upsert")
        with self.assertRaises(StoreError):
            self.service.save_draft("student-1", self.form)


if __name__ == '__main__':
    unittest.main()
