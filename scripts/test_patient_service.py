import unittest

from google.api_core.exceptions import PermissionDenied

from fake_firestore import FakeFirestore
from practicedesk.core.config import Settings
from practicedesk.core.errors import (
    DuplicateFoundError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from practicedesk.services.patient_service import ALL_PRACTICES, ListMode, PatientService

JANE = {"firstName": "Jane", "lastName": "Doe", "dob": "1990-01-01"}
AID = {"scheme": "Discovery", "plan": "Classic", "memberNo": "M123", "dependentNo": "01"}


class PatientServiceCase(unittest.TestCase):
    def setUp(self):
        self.db = FakeFirestore()
        self.service = PatientService(self.db, Settings(STRICT_TENANCY=True))


class TestCreate(PatientServiceCase):
    def test_create_normalizes_and_stamps(self):
        created = self.service.create("p1", {
            "firstName": "  jANE ",
            "lastName": "doe",
            "dob": "1990-01-01",
            "phone": "+27 (71) 234-5678",
            "email": " Jane@Example.com",
        })
        stored = self.db.docs[("tenants", "p1", "patients", created["id"])]

        self.assertEqual(stored["firstName"], "Jane")
        self.assertEqual(stored["lastName"], "Doe")
        self.assertEqual(stored["firstNameLower"], "jane")
        self.assertEqual(stored["lastNameLower"], "doe")
        self.assertEqual(stored["phone"], "27712345678")
        self.assertEqual(stored["email"], "jane@example.com")
        self.assertEqual(stored["practiceId"], "p1")
        self.assertEqual(stored["visitType"], "new")
        self.assertEqual(stored["payer"], "private")
        self.assertIsNone(stored["medicalAid"])

        self.assertEqual(created["practiceId"], "p1")
        self.assertTrue(created["createdAt"].startswith("2024-01-01T"))

    def test_duplicate_blocks_in_same_practice_only(self):
        existing = self.service.create("p1", JANE)

        with self.assertRaises(DuplicateFoundError) as ctx:
            self.service.create("p1", {"firstName": "JANE", "lastName": "DOE", "dob": "1990-01-01"})
        self.assertEqual([m["id"] for m in ctx.exception.matches], [existing["id"]])
        self.assertIn("Jane Doe - DOB 1990-01-01", str(ctx.exception))

        other = self.service.create("p2", {"firstName": "JANE", "lastName": "doe", "dob": "1990-01-01"})
        self.assertEqual(other["practiceId"], "p2")

    def test_tenant_required_when_strict(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.create(None, JANE)
        self.assertEqual(str(ctx.exception), "tenant required")
        self.assertEqual(self.db.docs, {})

    def test_all_practices_is_not_writable(self):
        with self.assertRaises(ValidationError):
            self.service.create(ALL_PRACTICES, JANE)

    def test_legacy_write_when_not_strict(self):
        service = PatientService(self.db, Settings(STRICT_TENANCY=False))
        created = service.create(None, JANE)
        self.assertIn(("patients", created["id"]), self.db.docs)
        self.assertIsNone(created["practiceId"])

        with self.assertRaises(DuplicateFoundError):
            service.create("", JANE)

    def test_medical_aid_required(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.create("p1", {**JANE, "payer": "medical_aid"})
        self.assertTrue(ctx.exception.errors)

    def test_medical_aid_kept_and_legacy_payer_value(self):
        created = self.service.create("p1", {**JANE, "payer": "medical", "medicalAid": AID})
        self.assertEqual(created["payer"], "medical_aid")
        self.assertEqual(created["medicalAid"]["memberNo"], "M123")

    def test_private_payer_clears_medical_aid(self):
        created = self.service.create("p1", {**JANE, "payer": "private", "medicalAid": AID})
        self.assertIsNone(created["medicalAid"])


class TestGetAndUpdate(PatientServiceCase):
    def test_get(self):
        created = self.service.create("p1", JANE)
        self.assertEqual(self.service.get("p1", created["id"])["firstName"], "Jane")
        self.assertIsNone(self.service.get("p1", "nope"))
        self.assertIsNone(self.service.get("p2", created["id"]))
        self.assertIsNone(self.service.get(None, created["id"]))

    def test_update_only_touches_given_fields(self):
        created = self.service.create("p1", {**JANE, "phone": "0712345678", "email": "jane@example.com"})
        updated = self.service.update("p1", created["id"], {"phone": "071-111-2222"})

        self.assertEqual(updated["phone"], "0711112222")
        for key in ("firstName", "lastName", "dob", "email", "createdAt", "practiceId"):
            self.assertEqual(updated[key], created[key])

    def test_update_renormalizes_names(self):
        created = self.service.create("p1", JANE)
        updated = self.service.update("p1", created["id"], {"lastName": "  SMITH-jones "})
        self.assertEqual(updated["lastName"], "Smith-jones")
        self.assertEqual(updated["lastNameLower"], "smith-jones")
        self.assertEqual(updated["firstName"], "Jane")

    def test_update_missing_patient(self):
        with self.assertRaises(NotFoundError):
            self.service.update("p1", "ghost", {"phone": "1"})
        with self.assertRaises(NotFoundError):
            self.service.update("p1", "ghost", {})

    def test_update_does_not_check_duplicates(self):
        self.service.create("p1", {**JANE, "phone": "0710000000"})
        other = self.service.create("p1", {"firstName": "Ann", "lastName": "Lee", "dob": "1970-03-03"})
        updated = self.service.update("p1", other["id"], {"phone": "0710000000"})
        self.assertEqual(updated["phone"], "0710000000")

    def test_update_payer_switch(self):
        created = self.service.create("p1", {**JANE, "payer": "medical_aid", "medicalAid": AID})
        updated = self.service.update("p1", created["id"], {"payer": "private"})
        self.assertIsNone(updated["medicalAid"])

        with self.assertRaises(ValidationError):
            self.service.update("p1", created["id"], {"payer": "medical_aid"})

    def test_update_medical_aid_on_private_patient(self):
        created = self.service.create("p1", JANE)
        with self.assertRaises(ValidationError):
            self.service.update("p1", created["id"], {"medicalAid": {"scheme": "Discovery", "memberNo": "M1"}})
        self.assertIsNone(self.service.get("p1", created["id"]).get("medicalAid"))

    def test_update_medical_aid_on_medical_aid_patient(self):
        created = self.service.create("p1", {**JANE, "payer": "medical_aid", "medicalAid": AID})
        updated = self.service.update("p1", created["id"], {"medicalAid": {**AID, "memberNo": "M999"}})
        self.assertEqual(updated["medicalAid"]["memberNo"], "M999")

        with self.assertRaises(ValidationError):
            self.service.update("p1", created["id"], {"medicalAid": None})
        self.assertEqual(self.service.get("p1", created["id"])["medicalAid"]["memberNo"], "M999")

    def test_update_medical_aid_on_legacy_medical_payer(self):
        self.db.seed("tenants/p1/patients/old1", {**JANE, "payer": "medical", "medicalAid": AID})
        updated = self.service.update("p1", "old1", {"medicalAid": {**AID, "plan": "Saver"}})
        self.assertEqual(updated["medicalAid"]["plan"], "Saver")

    def test_update_medical_aid_missing_patient(self):
        with self.assertRaises(NotFoundError):
            self.service.update("p1", "ghost", {"medicalAid": AID})

    def test_update_rejects_null_for_required_fields(self):
        created = self.service.create("p1", JANE)
        for field in ("firstName", "lastName", "dob", "visitType", "payer"):
            with self.subTest(field=field):
                with self.assertRaises(ValidationError):
                    self.service.update("p1", created["id"], {field: None})

        stored = self.service.get("p1", created["id"])
        for key in ("firstName", "lastName", "dob", "visitType", "payer"):
            self.assertEqual(stored[key], created[key])

    def test_update_allows_null_for_optional_fields(self):
        created = self.service.create("p1", {**JANE, "phone": "0712345678", "notes": "x"})
        updated = self.service.update("p1", created["id"], {"phone": None, "notes": None})
        self.assertEqual(updated["phone"], "")
        self.assertIsNone(updated["notes"])

    def test_update_requires_tenant(self):
        with self.assertRaises(ValidationError):
            self.service.update(None, "x", {"phone": "1"})


class TestList(PatientServiceCase):
    def test_scoped_newest_first(self):
        for name in ("Ann", "Bob", "Cid"):
            self.service.create("p1", {"firstName": name, "lastName": "X", "dob": "2000-01-01"})
        self.service.create("p2", {"firstName": "Other", "lastName": "Y"})

        rows = self.service.list("p1")
        self.assertEqual([r["firstName"] for r in rows], ["Cid", "Bob", "Ann"])
        stamps = [r["createdAt"] for r in rows]
        self.assertEqual(stamps, sorted(stamps, reverse=True))
        self.assertTrue(all(r["practiceId"] == "p1" for r in rows))

    def test_scoped_is_capped(self):
        service = PatientService(self.db, Settings(LIST_LIMIT=2))
        for name in ("Ann", "Bob", "Cid"):
            service.create("p1", {"firstName": name, "lastName": "X"})
        self.assertEqual(len(service.list("p1")), 2)

    def test_unknown_or_missing_practice_is_empty(self):
        self.assertEqual(self.service.list("nowhere"), [])
        self.assertEqual(self.service.list(""), [])
        self.assertEqual(self.service.list(None), [])

    def test_legacy_fallback_is_explicit(self):
        self.db.seed("patients/old1", {"firstName": "Old", "lastName": "Record"})
        self.db.seed("patients/old2", {"firstName": "Else", "lastName": "Where", "practiceId": "p9"})

        self.assertEqual(self.service.list("p1"), [])
        rows = self.service.list("p1", ListMode.LEGACY_UNSCOPED)
        self.assertEqual([r["id"] for r in rows], ["old1"])
        self.assertIsNone(rows[0]["practiceId"])

    def test_legacy_fallback_only_when_scoped_is_empty(self):
        self.db.seed("patients/old1", {"firstName": "Old", "lastName": "Record"})
        created = self.service.create("p1", JANE)
        rows = self.service.list("p1", "legacy-unscoped")
        self.assertEqual([r["id"] for r in rows], [created["id"]])

    def test_all_practices_sorted_by_name(self):
        self.service.create("p1", {"firstName": "Zed", "lastName": "Adams"})
        self.service.create("p2", {"firstName": "Amy", "lastName": "Brown"})
        self.service.create("p2", {"firstName": "Bea", "lastName": "adams"})
        self.db.seed("patients/old1", {"firstName": "old", "lastName": "carter"})

        rows = self.service.list(ALL_PRACTICES)
        names = [(r["lastName"].lower(), r["firstName"].lower()) for r in rows]
        self.assertEqual(names, sorted(names))
        self.assertEqual(len(rows), 4)

        by_id = {r["id"]: r for r in rows}
        self.assertIsNone(by_id["old1"]["practiceId"])
        self.assertEqual({r["practiceId"] for r in rows}, {"p1", "p2", None})

    def test_all_practices_is_capped(self):
        service = PatientService(self.db, Settings(ALL_PRACTICES_LIMIT=3))
        for i in range(5):
            self.db.seed(f"tenants/p1/patients/x{i}", {"firstName": "A", "lastName": f"N{i}"})
        self.assertEqual(len(service.list(ALL_PRACTICES)), 3)


class TestSearch(PatientServiceCase):
    def setUp(self):
        super().setUp()
        self.service.create("p1", {**JANE, "phone": "0712345678", "email": "jane@example.com"})
        self.service.create("p1", {
            "firstName": "Ann", "lastName": "Lee", "dob": "1970-03-03",
            "payer": "medical_aid", "medicalAid": AID,
        })

    def test_search_fields(self):
        self.assertEqual([r["firstName"] for r in self.service.search("p1", "DOE")], ["Jane"])
        self.assertEqual([r["firstName"] for r in self.service.search("p1", "2345")], ["Jane"])
        self.assertEqual([r["firstName"] for r in self.service.search("p1", "m123")], ["Ann"])
        self.assertEqual([r["firstName"] for r in self.service.search("p1", "1970-03")], ["Ann"])

    def test_blank_query_lists_everything(self):
        self.assertEqual(len(self.service.search("p1", "  ")), 2)


class TestTransportErrors(PatientServiceCase):
    def test_store_failure_surfaces(self):
        self.db.fail_with = PermissionDenied("Missing or insufficient permissions.")

        with self.assertRaises(TransportError) as ctx:
            self.service.list("p1")
        self.assertEqual(str(ctx.exception), "Missing or insufficient permissions.")

        with self.assertRaises(TransportError):
            self.service.create("p1", JANE)

        with self.assertRaises(TransportError):
            self.service.update("p1", "x", {"phone": "1"})


if __name__ == '__main__':
    unittest.main()
