import unittest
import uuid

from app.models.form import Form
from app.models.form_response import FormResponse
from tests.base import ApiTestBase


class ResponsesApiTests(ApiTestBase):
    def _submit(self, form_id, answers, headers=None):
        return self.client.post(f"/api/forms/{form_id}/responses", json={"answers": answers}, headers=headers or {})

    def test_anonymous_submission_is_recorded(self):
        form = self.create_form()
        response = self._submit(form["id"], {"q1": "Ada"})
        self.assertEqual(response.status_code, 201, response.text)
        body = response.json()
        self.assertEqual(body["message"], "Response recorded successfully.")

        with self.SessionLocal() as db:
            row = db.get(FormResponse, uuid.UUID(body["responseId"]))
            self.assertEqual(row.answers, {"q1": "Ada"})
            self.assertIsNone(row.respondent_id)
            self.assertIsNone(row.respondent_email)
            self.assertGreater(row.timestamp, 0)

    def test_submission_increments_responses_count(self):
        form = self.create_form()
        for name in ("Ada", "Bob", "Eve"):
            self.assertEqual(self._submit(form["id"], {"q1": name}).status_code, 201)
        current = self.client.get(f"/api/forms/{form['id']}", headers=self.auth_headers()).json()
        self.assertEqual(current["responsesCount"], 3)

    def test_missing_required_answers_are_listed(self):
        form = self.create_form(
            elements=[
                {"id": "q1", "type": "shortAnswer", "label": "Name", "required": True},
                {"id": "q2", "type": "email", "label": "Email", "required": True},
                {"id": "q3", "type": "paragraph", "label": "Notes"},
            ]
        )
        response = self._submit(form["id"], {"q3": "hello"})
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["code"], "MISSING_REQUIRED_ANSWERS")
        self.assertEqual(body["missingQuestions"], ["q1", "q2"])
        self.assertEqual(body["details"]["missingQuestions"], ["q1", "q2"])

        current = self.client.get(f"/api/forms/{form['id']}", headers=self.auth_headers()).json()
        self.assertEqual(current["responsesCount"], 0)

    def test_optional_answers_may_be_omitted(self):
        form = self.create_form()
        self.assertEqual(self._submit(form["id"], {"q1": ""}).status_code, 201)

    def test_form_without_required_elements_accepts_empty_answers(self):
        form = self.create_form(elements=[{"id": "q1", "type": "paragraph", "label": "Anything"}])
        response = self.client.post(f"/api/forms/{form['id']}/responses", json={})
        self.assertEqual(response.status_code, 201)

    def test_unpublished_form_rejects_submissions(self):
        form = self.create_form(isPublished=False)
        response = self._submit(form["id"], {"q1": "Ada"})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"], "This form is not accepting responses.")

    def test_unknown_form_is_not_found(self):
        response = self._submit(str(uuid.uuid4()), {"q1": "Ada"})
        self.assertEqual(response.status_code, 404)

    def test_authenticated_submission_records_respondent(self):
        form = self.create_form()
        headers = self.auth_headers(uid="respondent-9", email="r9@example.com")
        response = self._submit(form["id"], {"q1": "Ada"}, headers=headers)
        self.assertEqual(response.status_code, 201)

        listed = self.client.get(f"/api/forms/{form['id']}/responses", headers=self.auth_headers()).json()
        self.assertEqual(listed[0]["respondentId"], "respondent-9")
        self.assertEqual(listed[0]["respondentEmail"], "r9@example.com")

    def test_invalid_bearer_on_submission_is_rejected(self):
        form = self.create_form()
        response = self._submit(form["id"], {"q1": "Ada"}, headers={"Authorization": "Bearer broken"})
        self.assertEqual(response.status_code, 401)

    def test_owner_lists_responses_newest_first(self):
        form = self.create_form()
        form_id = uuid.UUID(form["id"])
        with self.SessionLocal() as db:
            db.add(FormResponse(form_id=form_id, answers={"q1": "old"}, timestamp=1767225600000))
            db.add(FormResponse(form_id=form_id, answers={"q1": "new"}, timestamp=1767225660500))
            db.commit()

        response = self.client.get(f"/api/forms/{form['id']}/responses", headers=self.auth_headers())
        self.assertEqual(response.status_code, 200)
        items = response.json()
        self.assertEqual([item["answers"]["q1"] for item in items], ["new", "old"])
        self.assertEqual(items[0]["timestamp"], "2026-01-01T00:01:00.500000Z")
        self.assertEqual(items[1]["timestamp"], "2026-01-01T00:00:00Z")
        self.assertEqual(items[0]["formId"], form["id"])

    def test_list_responses_is_owner_only(self):
        form = self.create_form()
        other = self.auth_headers(uid="owner-2", email="two@example.com")
        response = self.client.get(f"/api/forms/{form['id']}/responses", headers=other)
        self.assertEqual(response.status_code, 403)
        self.assertIn("Access denied", response.json()["error"])

    def test_list_responses_requires_authentication(self):
        form = self.create_form()
        response = self.client.get(f"/api/forms/{form['id']}/responses")
        self.assertEqual(response.status_code, 401)

    def test_list_responses_for_unknown_form(self):
        response = self.client.get(f"/api/forms/{uuid.uuid4()}/responses", headers=self.auth_headers())
        self.assertEqual(response.status_code, 404)

    def test_responses_of_other_forms_are_not_listed(self):
        first = self.create_form()
        second = self.create_form(name="Second")
        self._submit(first["id"], {"q1": "a"})
        self._submit(second["id"], {"q1": "b"})
        items = self.client.get(f"/api/forms/{first['id']}/responses", headers=self.auth_headers()).json()
        self.assertEqual([item["answers"] for item in items], [{"q1": "a"}])

        with self.SessionLocal() as db:
            self.assertEqual(db.get(Form, uuid.UUID(second["id"])).responses_count, 1)


if __name__ == "__main__":
    unittest.main()
