import unittest
import os
import sys

# Add backend to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fake_db import FakeDB
from pfe_catalog.core.exceptions import FormValidationError, StoreError
from pfe_catalog.schemas.report import Author, ReportForm
from pfe_catalog.schemas.user import Role, SessionContext
from pfe_catalog.services.draft_service import DraftService
from pfe_catalog.services.submission_service import SubmissionService

STUDENT = SessionContext(user_id="student-1", email="amal.bensalah@esprim.tn", role=Role.STUDENT)


def valid_form(**overrides) -> ReportForm:
    data = dict(
        title="Application mobile de covoiturage",
        authors=[Author(name="Amal Ben Salah", email="amal.bensalah@esprim.tn")],
        academic_supervisor="Dr. Karim Trabelsi",
        academic_year="2023-2024",
        specialty="Informatique",
        department="Département Informatique",
        keywords=["mobile", "flutter", "covoiturage", "firebase", "géolocalisation"],
        abstract="r" * 250,
    )
    data.update(overrides)
    return ReportForm(**data)


class TestSubmissionService(unittest.TestCase):
    def setUp(self):
        self.db = FakeDB()
        self.drafts = DraftService(db=self.db)
        self.service = SubmissionService(db=self.db, drafts=self.drafts)

    def test_four_keywords_rejected_without_report(self):
        form = valid_form(keywords=["mobile", "flutter", "covoiturage", "firebase", "", "  "])
        with self.assertRaises(FormValidationError) as cm:
            self.service.submit(form, STUDENT)

        self.assertEqual(cm.exception.message, "Minimum 5 mots-clés requis")
        self.assertEqual(self.db.rows("reports"), [])
        self.assertEqual(self.db.calls, [])

    def test_blank_keyword_slots_are_ignored(self):
        keywords = ["a", " b ", "c", "d", "e", "", " ", "", "", ""]
        result = self.service.submit(valid_form(keywords=keywords), STUDENT)
        self.assertEqual(result.report.keywords, ["a", "b", "c", "d", "e"])

    def test_too_many_keyword_slots(self):
        with self.assertRaises(FormValidationError):
            self.service.validate_form(valid_form(keywords=[f"k{i}" for i in range(11)]))

    def test_abstract_length_bounds(self):
        for length, ok in [(199, False), (200, True), (500, True), (501, False)]:
            with self.subTest(length=length):
                form = valid_form(abstract="x" * length)
                if ok:
                    self.service.validate_form(form)
                else:
                    with self.assertRaises(FormValidationError) as cm:
                        self.service.validate_form(form)
                    self.assertIn("entre 200 et 500", cm.exception.message)

    def test_required_fields(self):
        for field, value in [
            ("title", " "),
            ("academic_supervisor", ""),
            ("academic_year", ""),
            ("specialty", ""),
            ("department", ""),
            ("abstract", ""),
        ]:
            with self.subTest(field=field):
                with self.assertRaises(FormValidationError):
                    self.service.validate_form(valid_form(**{field: value}))

    def test_unknown_specialty(self):
        with self.assertRaises(FormValidationError):
            self.service.validate_form(valid_form(specialty="Astronomie"))

    def test_incomplete_authors_are_dropped(self):
        form = valid_form(authors=[
            Author(name="Amal Ben Salah", email="amal.bensalah@esprim.tn"),
            Author(name="Youssef", email=""),
            Author(name="", email="x@esprim.tn"),
        ])
        row = self.service.validate_form(form)
        self.assertEqual(row["authors"], [{"name": "Amal Ben Salah", "email": "amal.bensalah@esprim.tn"}])

    def test_at_least_one_complete_author(self):
        with self.assertRaises(FormValidationError):
            self.service.validate_form(valid_form(authors=[Author(name="Amal", email="")]))

    def test_more_than_three_authors(self):
        authors = [Author(name=f"A{i}", email=f"a{i}@esprim.tn") for i in range(4)]
        with self.assertRaises(FormValidationError):
            self.service.validate_form(valid_form(authors=authors))

    def test_blank_optional_fields_stored_as_none(self):
        row = self.service.validate_form(valid_form(industrial_supervisor=" ", company="", video_url="", defense_date=""))
        self.assertIsNone(row["industrial_supervisor"])
        self.assertIsNone(row["company"])
        self.assertIsNone(row["video_url"])
        self.assertIsNone(row["defense_date"])

    def test_submit_creates_pending_report_and_deletes_draft(self):
        draft_id = self.drafts.save_draft(STUDENT.user_id, valid_form())

        result = self.service.submit(valid_form(), STUDENT, draft_id)

        self.assertEqual(result.report.status.value, "pending")
        self.assertEqual(result.report.submitted_by, "student-1")
        self.assertIsNotNone(result.report.submitted_at)
        self.assertTrue(result.draft_deleted)
        self.assertEqual(len(self.db.rows("reports")), 1)
        self.assertEqual(self.db.rows("drafts"), [])
        # 先插入报告，再删除草稿
        writes = self.db.writes()
        self.assertLess(writes.index(("reports", "insert")), writes.index(("drafts", "delete")))

    def test_draft_delete_failure_keeps_report(self):
        draft_id = self.drafts.save_draft(STUDENT.user_id, valid_form())
        self.db.fail_on("drafts", "delete")

        result = self.service.submit(valid_form(), STUDENT, draft_id)

        self.assertFalse(result.draft_deleted)
        self.assertEqual(len(self.db.rows("reports")), 1)
        self.assertEqual(len(self.db.rows("drafts")), 1)

    def test_report_insert_failure(self):
        draft_id = self.drafts.save_draft(STUDENT.user_id, valid_form())
        self.db.fail_on("reports", "insert")

        with self.assertRaises(StoreError) as cm:
            self.service.submit(valid_form(), STUDENT, draft_id)

        self.assertEqual(cm.exception.message, "Erreur lors de la soumission")
        self.assertEqual(len(self.db.rows("drafts")), 1)


if __name__ == '__main__':
    unittest.main()
