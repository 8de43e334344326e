import unittest
import uuid
from datetime import datetime, timedelta, timezone

from app.core.errors import Conflict
from app.models.form import Form
from app.models.form_response import FormResponse
from app.schemas.forms import FormUpdate
from app.services import forms as form_service
from app.services.identity import IdentityClaim
from tests.base import ApiTestBase


class FormsApiTests(ApiTestBase):
    def test_create_then_read_round_trip(self):
        created = self.client.post(
            "/api/forms",
            headers=self.auth_headers(),
            json={
                "name": "Signup",
                "description": "Event signup",
                "elements": [
                    {"id": "q1", "type": "shortAnswer", "label": "Name", "required": True, "placeholder": "Ada"},
                    {"type": "fileUpload", "label": "CV", "acceptedTypes": ["application/pdf"]},
                ],
            },
        )
        self.assertEqual(created.status_code, 201, created.text)
        body = created.json()
        self.assertEqual(body["message"], "Form created successfully.")
        self.assertEqual(body["formId"], body["data"]["id"])

        response = self.client.get(f"/api/forms/{body['formId']}", headers=self.auth_headers())
        self.assertEqual(response.status_code, 200)
        form = response.json()
        self.assertEqual(form["ownerId"], "owner-1")
        self.assertEqual(form["name"], "Signup")
        self.assertEqual(form["description"], "Event signup")
        self.assertFalse(form["isPublished"])
        self.assertEqual(form["responsesCount"], 0)
        self.assertEqual(form["version"], 1)
        self.assertTrue(form["createdAt"])
        self.assertTrue(form["updatedAt"])

        first, second = form["elements"]
        self.assertEqual(first["placeholder"], "Ada")
        self.assertTrue(first["required"])
        self.assertEqual(second["acceptedTypes"], ["application/pdf"])
        self.assertTrue(second["id"])

    def test_create_requires_name_and_elements(self):
        response = self.client.post("/api/forms", headers=self.auth_headers(), json={"elements": []})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "INVALID_INPUT")

        response = self.client.post("/api/forms", headers=self.auth_headers(), json={"name": "No elements"})
        self.assertEqual(response.status_code, 400)

    def test_create_reports_every_invalid_element(self):
        response = self.client.post(
            "/api/forms",
            headers=self.auth_headers(),
            json={
                "name": "Broken",
                "elements": [
                    {"type": "shortAnswer", "label": "Ok"},
                    {"type": "shortAnswer"},
                    {"label": "No type"},
                ],
            },
        )
        self.assertEqual(response.status_code, 400)
        invalid = response.json()["details"]["invalidElements"]
        self.assertEqual(invalid, [{"index": 1, "missing": ["label"]}, {"index": 2, "missing": ["type"]}])

    def test_create_requires_authentication(self):
        response = self.client.post("/api/forms", json={"name": "x", "elements": []})
        self.assertEqual(response.status_code, 401)

    def test_list_returns_own_forms_newest_first(self):
        base = datetime(2026, 3, 1, tzinfo=timezone.utc)
        with self.SessionLocal() as db:
            for index, name in enumerate(["oldest", "middle", "newest"]):
                at = base + timedelta(hours=index)
                db.add(Form(owner_id="owner-1", name=name, elements=[], created_at=at, updated_at=at))
            db.add(Form(owner_id="owner-2", name="foreign", elements=[], created_at=base, updated_at=base))
            db.commit()

        response = self.client.get("/api/forms", headers=self.auth_headers())
        self.assertEqual(response.status_code, 200)
        self.assertEqual([form["name"] for form in response.json()], ["newest", "middle", "oldest"])

    def test_list_empty(self):
        response = self.client.get("/api/forms", headers=self.auth_headers())
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [])

    def test_unknown_or_malformed_form_id_is_not_found(self):
        for form_id in (str(uuid.uuid4()), "not-a-uuid"):
            response = self.client.get(f"/api/forms/{form_id}", headers=self.auth_headers())
            self.assertEqual(response.status_code, 404)
            self.assertEqual(response.json()["code"], "NOT_FOUND")

    def test_unpublished_form_hidden_from_other_users(self):
        form = self.create_form(isPublished=False)
        other = self.auth_headers(uid="owner-2", email="two@example.com")
        response = self.client.get(f"/api/forms/{form['id']}", headers=other)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "FORBIDDEN")

    def test_published_form_visible_to_other_users(self):
        form = self.create_form()
        other = self.auth_headers(uid="owner-2", email="two@example.com")
        response = self.client.get(f"/api/forms/{form['id']}", headers=other)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["ownerId"], "owner-1")

    def test_partial_update_touches_only_present_fields(self):
        form = self.create_form()
        response = self.client.put(
            f"/api/forms/{form['id']}",
            headers=self.auth_headers(),
            json={"name": "Renamed", "isPublished": False},
        )
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual(body["message"], "Form updated successfully.")
        self.assertEqual(body["updatedFields"], ["name", "isPublished", "updatedAt"])
        self.assertEqual(body["version"], 2)

        current = self.client.get(f"/api/forms/{form['id']}", headers=self.auth_headers()).json()
        self.assertEqual(current["name"], "Renamed")
        self.assertFalse(current["isPublished"])
        self.assertEqual(current["description"], "Contact form")
        self.assertEqual(current["elements"], form["elements"])

    def test_update_description_can_be_cleared(self):
        form = self.create_form()
        response = self.client.put(f"/api/forms/{form['id']}", headers=self.auth_headers(), json={"description": ""})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["updatedFields"], ["description", "updatedAt"])
        current = self.client.get(f"/api/forms/{form['id']}", headers=self.auth_headers()).json()
        self.assertEqual(current["description"], "")

    def test_update_without_fields_is_rejected(self):
        form = self.create_form()
        for body in ({}, {"unknown": 1}, {"isPublished": None}):
            response = self.client.put(f"/api/forms/{form['id']}", headers=self.auth_headers(), json=body)
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["error"], "No fields to update were provided.")

    def test_update_validates_elements(self):
        form = self.create_form()
        response = self.client.put(
            f"/api/forms/{form['id']}",
            headers=self.auth_headers(),
            json={"elements": [{"type": "shortAnswer"}]},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["details"]["invalidElements"], [{"index": 0, "missing": ["label"]}])

    def test_update_by_non_owner_is_forbidden(self):
        form = self.create_form()
        other = self.auth_headers(uid="owner-2", email="two@example.com")
        response = self.client.put(f"/api/forms/{form['id']}", headers=other, json={"name": "Hijacked"})
        self.assertEqual(response.status_code, 403)
        current = self.client.get(f"/api/forms/{form['id']}", headers=self.auth_headers()).json()
        self.assertEqual(current["name"], "Contact")

    def test_stale_version_in_body_conflicts(self):
        form = self.create_form()
        url = f"/api/forms/{form['id']}"
        first = self.client.put(url, headers=self.auth_headers(), json={"name": "A", "version": 1})
        self.assertEqual(first.status_code, 200)
        stale = self.client.put(url, headers=self.auth_headers(), json={"name": "B", "version": 1})
        self.assertEqual(stale.status_code, 409)
        self.assertEqual(stale.json()["details"], {"expectedVersion": 1, "currentVersion": 2})
        current = self.client.get(url, headers=self.auth_headers()).json()
        self.assertEqual(current["name"], "A")

    def test_stale_if_match_header_conflicts(self):
        form = self.create_form()
        url = f"/api/forms/{form['id']}"
        headers = {**self.auth_headers(), "If-Match": '"1"'}
        self.assertEqual(self.client.put(url, headers=headers, json={"name": "A"}).status_code, 200)
        self.assertEqual(self.client.put(url, headers=headers, json={"name": "B"}).status_code, 409)

        bad = {**self.auth_headers(), "If-Match": "abc"}
        self.assertEqual(self.client.put(url, headers=bad, json={"name": "C"}).status_code, 400)

    def test_update_without_version_is_last_write_wins(self):
        form = self.create_form()
        url = f"/api/forms/{form['id']}"
        self.assertEqual(self.client.put(url, headers=self.auth_headers(), json={"name": "A"}).status_code, 200)
        response = self.client.put(url, headers=self.auth_headers(), json={"name": "B"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["version"], 3)

    def test_delete_cascades_to_responses_and_files(self):
        form = self.create_form()
        form_id = uuid.UUID(form["id"])
        self.s3.add_object("uploads/respondent/cv.pdf", b"%PDF-1.4", mime="application/pdf")
        self.s3.add_object("uploads/owner-1/keep.txt")
        with self.SessionLocal() as db:
            db.add(
                FormResponse(
                    form_id=form_id,
                    answers={"q1": "Ada", "q3": {"path": "uploads/respondent/cv.pdf"}},
                    respondent_id="respondent",
                )
            )
            db.add(
                FormResponse(
                    form_id=form_id,
                    answers={"q1": "Bob", "q3": [{"path": "uploads/gone/missing.pdf"}]},
                    respondent_id="gone",
                )
            )
            db.commit()

        response = self.client.delete(f"/api/forms/{form['id']}", headers=self.auth_headers())
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual(body["message"], "Form deleted successfully.")
        self.assertEqual(body["formId"], form["id"])
        self.assertEqual(body["deletedResponses"], 2)
        self.assertNotIn("uploads/respondent/cv.pdf", self.s3.objects)
        self.assertIn("uploads/owner-1/keep.txt", self.s3.objects)

        with self.SessionLocal() as db:
            self.assertIsNone(db.get(Form, form_id))
            self.assertEqual(db.query(FormResponse).filter(FormResponse.form_id == form_id).count(), 0)

        again = self.client.delete(f"/api/forms/{form['id']}", headers=self.auth_headers())
        self.assertEqual(again.status_code, 404)

    def test_delete_by_non_owner_is_forbidden(self):
        form = self.create_form()
        other = self.auth_headers(uid="owner-2", email="two@example.com")
        response = self.client.delete(f"/api/forms/{form['id']}", headers=other)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.client.get(f"/api/forms/{form['id']}", headers=self.auth_headers()).status_code, 200)

    def test_delete_keeps_files_outside_respondent_prefix(self):
        self.s3.add_object("uploads/victim/secret.pdf", b"%PDF-1.4", mime="application/pdf")
        self.s3.add_object("uploads/guest/own.pdf", b"%PDF-1.4", mime="application/pdf")
        owner = self.auth_headers(uid="form-owner", email="owner2@example.com")
        form = self.create_form(headers=owner)
        url = f"/api/forms/{form['id']}/responses"

        anonymous = self.client.post(url, json={"answers": {"q1": "x", "q2": {"path": "uploads/victim/secret.pdf"}}})
        self.assertEqual(anonymous.status_code, 201)
        guest = self.auth_headers(uid="guest", email="guest@example.com")
        answers = {
            "q1": "y",
            "q2": [
                {"path": "uploads/guest/own.pdf"},
                {"path": "uploads/guest/../victim/secret.pdf"},
                {"path": "uploads/victim/secret.pdf"},
            ],
        }
        self.assertEqual(self.client.post(url, json={"answers": answers}, headers=guest).status_code, 201)

        response = self.client.delete(f"/api/forms/{form['id']}", headers=owner)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["deletedFiles"], 1)
        self.assertIn("uploads/victim/secret.pdf", self.s3.objects)
        self.assertNotIn("uploads/guest/own.pdf", self.s3.objects)

    def test_stale_version_from_concurrent_session_conflicts(self):
        form = self.create_form()
        identity = IdentityClaim(uid="owner-1", email="owner@example.com")

        with self.SessionLocal() as first:
            self.assertEqual(form_service.get_form_or_404(first, form["id"]).version, 1)
            with self.SessionLocal() as second:
                form_service.update_form(second, identity, form["id"], FormUpdate(name="B"), expected_version=1)

            with self.assertRaises(Conflict) as ctx:
                form_service.update_form(first, identity, form["id"], FormUpdate(name="A"), expected_version=1)
            self.assertEqual(ctx.exception.details, {"expectedVersion": 1, "currentVersion": 2})

        current = self.client.get(f"/api/forms/{form['id']}", headers=self.auth_headers()).json()
        self.assertEqual(current["name"], "B")
        self.assertEqual(current["version"], 2)


if __name__ == "__main__":
    unittest.main()
