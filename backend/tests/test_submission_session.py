import unittest
from unittest.mock import MagicMock
from datetime import datetime, timedelta, timezone
import os
import sys
import threading

# Add backend to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fake_db import FakeDB
from pfe_catalog.core.exceptions import FormValidationError
from pfe_catalog.schemas.report import Author, ReportForm
from pfe_catalog.schemas.user import Role, SessionContext
from pfe_catalog.services.draft_service import DraftService
from pfe_catalog.services.submission_service import SubmissionService
from pfe_catalog.services.submission_session import (
    DRAFT_SAVED_TEXT,
    DRAFT_SAVE_FAILED_TEXT,
    SUBMITTED_TEXT,
    SubmissionSessionManager,
)

STUDENT = SessionContext(user_id="student-1", email="amal.bensalah@esprim.tn", role=Role.STUDENT)


def complete_form() -> ReportForm:
    return ReportForm(
        title="Maintenance prédictive par apprentissage automatique",
        authors=[Author(name="Amal Ben Salah", email="amal.bensalah@esprim.tn")],
        academicSupervisor="Dr. Karim Trabelsi",
        academicYear="2023-2024",
        specialty="Informatique",
        department="Département Informatique",
        keywords=["ml", "maintenance", "capteurs", "séries temporelles", "industrie"],
        abstract="m" * 250,
    )


class TestSubmissionSession(unittest.TestCase):
    def setUp(self):
        self.db = FakeDB()
        self.drafts = DraftService(db=self.db)
        self.autosaver = MagicMock()
        self.manager = SubmissionSessionManager(
            drafts=self.drafts,
            submissions=SubmissionService(db=self.db, drafts=self.drafts),
            autosaver=self.autosaver,
            notice_ttl_seconds=3,
        )

    def test_open_prepopulates_from_draft(self):
        draft_id = self.drafts.save_draft(STUDENT.user_id, ReportForm(title="Brouillon en cours"))

        session = self.manager.open(STUDENT)

        self.assertEqual(session.form.title, "Brouillon en cours")
        self.assertEqual(session.draft_id, draft_id)
        self.autosaver.arm.assert_called_once_with("student-1", self.manager.autosave)

    def test_open_without_draft_uses_empty_form(self):
        session = self.manager.open(STUDENT)
        self.assertEqual(session.form, ReportForm())
        self.assertIsNone(session.draft_id)

    def test_every_form_change_rearms_autosave(self):
        self.manager.open(STUDENT)
        self.manager.update_form(STUDENT, ReportForm(title="v1"))
        self.manager.update_form(STUDENT, ReportForm(title="v2"))
        self.assertEqual(self.autosaver.arm.call_count, 3)

    def test_manual_save_success_notice_expires(self):
        self.manager.update_form(STUDENT, ReportForm(title="Titre"))
        session = self.manager.save_draft(STUDENT)

        self.assertIsNotNone(session.draft_id)
        self.assertEqual(session.current_notice().text, DRAFT_SAVED_TEXT)
        self.assertEqual(session.current_notice().type, "success")

        later = datetime.now(timezone.utc) + timedelta(seconds=4)
        self.assertIsNone(session.current_notice(now=later))

    def test_manual_save_twice_keeps_one_draft(self):
        self.manager.update_form(STUDENT, ReportForm(title="Titre"))
        self.manager.save_draft(STUDENT)
        self.manager.update_form(STUDENT, ReportForm(title="Titre modifié"))
        self.manager.save_draft(STUDENT)

        rows = self.db.rows("drafts")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["draft_data"]["title"], "Titre modifié")

    def test_manual_save_failure_keeps_form(self):
        self.manager.update_form(STUDENT, ReportForm(title="Ne pas perdre"))
        self.db.fail_on("drafts", "upsert")

        session = self.manager.save_draft(STUDENT)

        self.assertEqual(session.notice.type, "error")
        self.assertEqual(session.notice.text, DRAFT_SAVE_FAILED_TEXT)
        self.assertEqual(session.form.title, "Ne pas perdre")

    def test_autosave_is_silent(self):
        self.manager.update_form(STUDENT, ReportForm(title="Auto"))
        self.manager.autosave("student-1")

        session = self.manager.get(STUDENT)
        self.assertIsNone(session.notice)
        self.assertEqual(len(self.db.rows("drafts")), 1)

    def test_autosave_failure_is_swallowed(self):
        self.manager.update_form(STUDENT, ReportForm(title="Auto"))
        self.db.fail_on("drafts", "upsert")

        self.manager.autosave("student-1")

        session = self.manager.get(STUDENT)
        self.assertIsNone(session.notice)
        self.assertEqual(session.form.title, "Auto")

    def test_autosave_skips_untouched_form(self):
        self.manager.open(STUDENT)
        self.manager.autosave("student-1")
        self.assertEqual(self.db.rows("drafts"), [])

    def test_autosave_for_closed_session_does_nothing(self):
        self.manager.autosave("nobody")
        self.assertEqual(self.db.calls, [])

    def test_author_and_keyword_slot_limits(self):
        for _ in range(5):
            self.manager.add_author(STUDENT)
        session = self.manager.get(STUDENT)
        self.assertEqual(len(session.form.authors), 3)

        for _ in range(3):
            self.manager.remove_author(STUDENT, 0)
        self.assertEqual(len(session.form.authors), 1)

        for _ in range(8):
            self.manager.add_keyword(STUDENT)
        self.assertEqual(len(session.form.keywords), 10)

    def test_submit_resets_form_and_draft(self):
        self.manager.update_form(STUDENT, complete_form())
        self.manager.save_draft(STUDENT)

        result = self.manager.submit(STUDENT)

        session = self.manager.get(STUDENT)
        self.assertEqual(result.report.status.value, "pending")
        self.assertEqual(session.form, ReportForm())
        self.assertIsNone(session.draft_id)
        self.assertEqual(session.notice.text, SUBMITTED_TEXT)
        self.assertEqual(self.db.rows("drafts"), [])

    def test_submit_validation_error_keeps_form(self):
        form = complete_form()
        form.keywords = ["a", "b", "c", "d", ""]
        self.manager.update_form(STUDENT, form)

        with self.assertRaises(FormValidationError):
            self.manager.submit(STUDENT)

        session = self.manager.get(STUDENT)
        self.assertEqual(session.notice.text, "Minimum 5 mots-clés requis")
        self.assertEqual(session.form.keywords, ["a", "b", "c", "d", ""])
        self.assertEqual(self.db.rows("reports"), [])

    def test_close_disarms_autosave(self):
        self.manager.open(STUDENT)
        self.manager.close(STUDENT)
        self.autosaver.disarm.assert_called_once_with("student-1")

    def test_open_with_null_fields_in_draft(self):
        self.db.tables["drafts"] = [{
            "id": "d-1", "user_id": "student-1", "last_saved": "2024-05-01T10:00:00+00:00",
            "draft_data": {"title": "t", "defenseDate": None, "company": None},
        }]

        session = self.manager.open(STUDENT)

        self.assertEqual(session.form.title, "t")
        self.assertEqual(session.form.defense_date, "")
        self.assertEqual(session.draft_id, "d-1")

    def test_open_with_unreadable_draft_uses_empty_form(self):
        self.db.tables["drafts"] = [{
            "id": "d-1", "user_id": "student-1", "last_saved": "2024-05-01T10:00:00+00:00",
            "draft_data": {"title": "t", "authors": "pas une liste"},
        }]

        session = self.manager.open(STUDENT)

        self.assertEqual(session.form, ReportForm())
        # 下次保存覆盖这条草稿
        self.assertEqual(session.draft_id, "d-1")


class TestSessionIdleTimeout(unittest.TestCase):
    def setUp(self):
        self.db = FakeDB()
        self.drafts = DraftService(db=self.db)
        self.autosaver = MagicMock()
        self.manager = SubmissionSessionManager(
            drafts=self.drafts,
            submissions=SubmissionService(db=self.db, drafts=self.drafts),
            autosaver=self.autosaver,
            idle_timeout_seconds=600,
        )

    def test_idle_session_is_saved_then_closed(self):
        session = self.manager.update_form(STUDENT, ReportForm(title="Onglet fermé"))
        session.last_activity = datetime.now(timezone.utc) - timedelta(seconds=601)

        self.manager.autosave("student-1")

        self.assertEqual(self.db.rows("drafts")[0]["draft_data"]["title"], "Onglet fermé")
        self.autosaver.disarm.assert_called_once_with("student-1")
        self.assertFalse(self.manager.is_open("student-1"))

    def test_active_session_stays_open(self):
        self.manager.update_form(STUDENT, ReportForm(title="En cours"))

        self.manager.autosave("student-1")

        self.autosaver.disarm.assert_not_called()
        self.assertTrue(self.manager.is_open("student-1"))

    def test_idle_session_kept_when_save_fails(self):
        session = self.manager.update_form(STUDENT, ReportForm(title="Ne pas perdre"))
        session.last_activity = datetime.now(timezone.utc) - timedelta(seconds=601)
        self.db.fail_on("drafts", "upsert")

        self.manager.autosave("student-1")

        self.autosaver.disarm.assert_not_called()
        self.assertTrue(self.manager.is_open("student-1"))

    def test_user_action_resets_idle_clock(self):
        session = self.manager.update_form(STUDENT, ReportForm(title="Titre"))
        session.last_activity = datetime.now(timezone.utc) - timedelta(seconds=601)

        self.manager.add_keyword(STUDENT)
        self.manager.autosave("student-1")

        self.assertTrue(self.manager.is_open("student-1"))


class BlockingDraftService(DraftService):
    """save_draft 在 release 之前一直阻塞，模拟慢速网络写入"""

    def __init__(self, db):
        super().__init__(db=db)
        self.started = threading.Event()
        self.release = threading.Event()

    def save_draft(self, user_id, form_snapshot, existing_draft_id=None):
        self.started.set()
        self.release.wait(5)
        return super().save_draft(user_id, form_snapshot, existing_draft_id)


class TestSessionIsolation(unittest.TestCase):
    def test_slow_save_does_not_block_other_students(self):
        db = FakeDB()
        drafts = BlockingDraftService(db)
        manager = SubmissionSessionManager(
            drafts=drafts,
            submissions=SubmissionService(db=db, drafts=drafts),
            autosaver=MagicMock(),
        )
        other = SessionContext(user_id="student-2", email="y.mansouri@esprim.tn", role=Role.STUDENT)
        manager.open(STUDENT)

        saver = threading.Thread(target=manager.save_draft, args=(STUDENT,))
        saver.start()
        self.assertTrue(drafts.started.wait(2))

        editor = threading.Thread(target=manager.add_keyword, args=(other,))
        editor.start()
        editor.join(1)
        try:
            self.assertFalse(editor.is_alive())
            self.assertEqual(len(manager.get(other).form.keywords), 6)
        finally:
            drafts.release.set()
            saver.join(5)
            editor.join(5)

        self.assertEqual(len(db.rows("drafts")), 1)


if __name__ == '__main__':
    unittest.main()
