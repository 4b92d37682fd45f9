import unittest as test
from datetime import date

from usi.verify import models as m
from usi.exceptions import InvalidArgument

class TestIdentityVerificationRequest(test.TestCase):

    def test_from_json(self):
        req = m.IdentityVerificationRequest.from_json({
            "usi": "ABCDE12345", "dateOfBirth": "1990-04-01",
            "firstName": "Jane", "familyName": "Doe"
        })
        self.assertEqual(req.usi, "ABCDE12345")
        self.assertEqual(req.date_of_birth, date(1990, 4, 1))
        self.assertEqual(req.first_name, "Jane")
        self.assertEqual(req.family_name, "Doe")
        self.assertIsNone(req.single_name)

    def test_from_json_case_insensitive(self):
        req = m.IdentityVerificationRequest.from_json({
            "Usi": "ABCDE12345", "DateOfBirth": "1990-04-01T00:00:00", "SINGLENAME": "Madonna"
        })
        self.assertEqual(req.usi, "ABCDE12345")
        self.assertEqual(req.date_of_birth, date(1990, 4, 1))
        self.assertEqual(req.single_name, "Madonna")

    def test_from_json_datetime_with_zone(self):
        req = m.IdentityVerificationRequest.from_json({
            "usi": "ABCDE12345", "dateOfBirth": "1990-04-01T00:00:00Z", "singleName": "Jo"
        })
        self.assertEqual(req.date_of_birth, date(1990, 4, 1))

    def test_from_json_bad_usi(self):
        with self.assertRaises(InvalidArgument) as cm:
            m.IdentityVerificationRequest.from_json({"usi": "ABC", "dateOfBirth": "1990-04-01"})
        self.assertEqual(cm.exception.reason, "Invalid request")
        self.assertIn("Usi", str(cm.exception))

        with self.assertRaises(InvalidArgument):
            m.IdentityVerificationRequest.from_json({"usi": "ABCDE123456",
                                                     "dateOfBirth": "1990-04-01"})
        with self.assertRaises(InvalidArgument):
            m.IdentityVerificationRequest.from_json({"dateOfBirth": "1990-04-01"})
        with self.assertRaises(InvalidArgument):
            m.IdentityVerificationRequest.from_json({"usi": 1234567890,
                                                     "dateOfBirth": "1990-04-01"})

    def test_from_json_bad_date(self):
        with self.assertRaises(InvalidArgument):
            m.IdentityVerificationRequest.from_json({"usi": "ABCDE12345"})
        with self.assertRaises(InvalidArgument):
            m.IdentityVerificationRequest.from_json({"usi": "ABCDE12345",
                                                     "dateOfBirth": "April 1, 1990"})
        with self.assertRaises(InvalidArgument):
            m.IdentityVerificationRequest.from_json({"usi": "ABCDE12345",
                                                     "dateOfBirth": "1990-13-01"})

    def test_from_json_not_object(self):
        with self.assertRaises(InvalidArgument):
            m.IdentityVerificationRequest.from_json(["ABCDE12345"])
        with self.assertRaises(InvalidArgument):
            m.IdentityVerificationRequest.from_json({"usi": "ABCDE12345",
                                                     "dateOfBirth": "1990-04-01",
                                                     "firstName": 3})

    def test_name_encoding(self):
        req = m.IdentityVerificationRequest("ABCDE12345", date(1990, 4, 1), single_name="Jo")
        self.assertEqual(req.name_encoding(), m.SingleName("Jo"))

        req = m.IdentityVerificationRequest("ABCDE12345", date(1990, 4, 1), "Jane", "Doe")
        self.assertEqual(req.name_encoding(), m.FirstLastName("Jane", "Doe"))

        # single name takes priority
        req = m.IdentityVerificationRequest("ABCDE12345", date(1990, 4, 1), "Jane", "Doe", "Jo")
        self.assertEqual(req.name_encoding(), m.SingleName("Jo"))

        # whitespace-only counts as blank
        req = m.IdentityVerificationRequest("ABCDE12345", date(1990, 4, 1), "Jane", "Doe", "  ")
        self.assertEqual(req.name_encoding(), m.FirstLastName("Jane", "Doe"))

        # values are passed through untrimmed
        req = m.IdentityVerificationRequest("ABCDE12345", date(1990, 4, 1), single_name=" Jo ")
        self.assertEqual(req.name_encoding(), m.SingleName(" Jo "))

    def test_name_encoding_incomplete(self):
        req = m.IdentityVerificationRequest("ABCDE12345", date(1990, 4, 1), "", "", "")
        self.assertIsNone(req.name_encoding())
        req = m.IdentityVerificationRequest("ABCDE12345", date(1990, 4, 1), "Jane")
        self.assertIsNone(req.name_encoding())
        req = m.IdentityVerificationRequest("ABCDE12345", date(1990, 4, 1), None, "Doe")
        self.assertIsNone(req.name_encoding())

    def test_name_elements(self):
        self.assertEqual(m.SingleName("Jo").elements(), [("SingleName", "Jo")])
        self.assertEqual(m.FirstLastName("Jane", "Doe").elements(),
                         [("FirstName", "Jane"), ("FamilyName", "Doe")])

class TestParseBulkRequest(test.TestCase):

    def test_parse(self):
        reqs = m.parse_bulk_request({"verifications": [
            {"usi": "AAAAAAAAAA", "dateOfBirth": "1990-04-01", "singleName": "Jo"},
            {"usi": "BBBBBBBBBB", "dateOfBirth": "1991-05-02", "firstName": "", "familyName": ""}
        ]})
        self.assertEqual(len(reqs), 2)
        self.assertEqual(reqs[0].usi, "AAAAAAAAAA")
        self.assertEqual(reqs[1].usi, "BBBBBBBBBB")
        self.assertIsNone(reqs[1].name_encoding())

    def test_parse_bad(self):
        with self.assertRaises(InvalidArgument):
            m.parse_bulk_request({})
        with self.assertRaises(InvalidArgument):
            m.parse_bulk_request({"verifications": []})
        with self.assertRaises(InvalidArgument):
            m.parse_bulk_request({"verifications": "AAAAAAAAAA"})
        with self.assertRaises(InvalidArgument):
            m.parse_bulk_request([])
        with self.assertRaises(InvalidArgument) as cm:
            m.parse_bulk_request({"Verifications": [
                {"usi": "AAAAAAAAAA", "dateOfBirth": "1990-04-01", "singleName": "Jo"},
                {"usi": "BBB", "dateOfBirth": "1991-05-02", "singleName": "Al"}
            ]})
        self.assertIn("Verifications[1]", str(cm.exception))

class TestResultTypes(test.TestCase):

    def test_batch_count(self):
        batch = m.VerificationBatch("ORG01", [])
        self.assertEqual(batch.count, 0)
        batch = m.VerificationBatch("ORG01", [
            m.NormalizedVerificationEntry(1, "AAAAAAAAAA", date(1990, 4, 1), m.SingleName("Jo"))
        ])
        self.assertEqual(batch.count, 1)

    def test_result_to_dict(self):
        res = m.VerificationResult(True, "AAAAAAAAAA", "Valid", None, 1)
        self.assertEqual(dict(res.to_dict()), {
            "isValid": True, "usi": "AAAAAAAAAA", "verificationStatus": "Valid",
            "message": None, "recordId": 1
        })
        self.assertEqual(list(res.to_dict().keys()),
                         ["isValid", "usi", "verificationStatus", "message", "recordId"])

    def test_summary_to_dict(self):
        summ = m.BulkOutcomeSummary(3, 1, 1, [
            m.VerificationResult(True, "AAAAAAAAAA", "Valid", None, 1),
            m.VerificationResult(False, "BBBBBBBBBB", "Invalid", None, 2)
        ])
        data = summ.to_dict()
        self.assertEqual(data["totalRequested"], 3)
        self.assertEqual(data["validCount"], 1)
        self.assertEqual(data["invalidCount"], 1)
        self.assertEqual(len(data["results"]), 2)
        self.assertEqual(data["results"][1]["verificationStatus"], "Invalid")

    def test_country_to_dict(self):
        self.assertEqual(dict(m.Country("1101", "Australia").to_dict()),
                         {"code": "1101", "name": "Australia"})

    def test_result(self):
        res = m.Result.success(3)
        self.assertTrue(res.ok)
        self.assertEqual(res.unwrap(), 3)

        res = m.Result.failure(InvalidArgument("bad"))
        self.assertFalse(res.ok)
        self.assertIsNone(res.value)
        with self.assertRaises(InvalidArgument):
            res.unwrap()


if __name__ == '__main__':
    test.main()
