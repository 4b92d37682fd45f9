import os, json, logging, tempfile
import unittest as test
from unittest.mock import Mock
from io import BytesIO
from copy import deepcopy

from usi.verify import wsgi
from usi.verify.client import USIClient, SimulatedUSIClient
from usi.verify.models import VerificationOutcome
from usi.exceptions import ConfigurationException, USICommError

tmpdir = tempfile.TemporaryDirectory(prefix="_test_wsgi.")
loghdlr = None
rootlog = None
def setUpModule():
    global loghdlr
    global rootlog
    rootlog = logging.getLogger()
    loghdlr = logging.FileHandler(os.path.join(tmpdir.name,"test_wsgi.log"))
    loghdlr.setLevel(logging.DEBUG)
    rootlog.addHandler(loghdlr)

def tearDownModule():
    global loghdlr
    if loghdlr:
        if rootlog:
            rootlog.removeHandler(loghdlr)
            loghdlr.flush()
            loghdlr.close()
        loghdlr = None
    tmpdir.cleanup()

APIKEY = "s3cr3t"
config = {
    "name": "USI Web API",
    "usi": { "org_code": "ORG01" },
    "authentication": { "api_key": APIKEY },
    "client": { "mode": "sim", "statuses": { "BBBBBBBBBB": "Invalid" } },
    "cors": { "allowed_origins": [ "http://localhost:3000" ] }
}

class TestUSIWebApp(test.TestCase):

    def start(self, status, headers=None, extup=None):
        self.resp.append(status)
        for head in headers:
            self.resp.append("{0}: {1}".format(head[0], head[1]))

    def body2dict(self, body):
        return json.loads("\n".join(self.tostr(body)), object_pairs_hook=dict)

    def tostr(self, resplist):
        return [e.decode() for e in resplist]

    def header(self, name):
        hdrs = [h.split(': ', 1)[1] for h in self.resp[1:] if h.startswith(name+": ")]
        return hdrs[0] if hdrs else None

    def setUp(self):
        self.cfg = deepcopy(config)
        self.app = wsgi.app(self.cfg, rootlog.getChild("usiapp"))
        self.resp = []

    def request(self, meth, path, body=None, apikey=APIKEY, **extra):
        req = {
            'REQUEST_METHOD': meth,
            'PATH_INFO': path
        }
        if apikey is not None:
            req['HTTP_X_API_KEY'] = apikey
        if body is not None:
            if not isinstance(body, (str, bytes)):
                body = json.dumps(body)
            if isinstance(body, str):
                body = body.encode('utf-8')
            req['wsgi.input'] = BytesIO(body)
            req['CONTENT_LENGTH'] = str(len(body))
            req['CONTENT_TYPE'] = "application/json"
        req.update(extra)
        return self.app(req, self.start)

    def test_ctor(self):
        self.assertEqual(self.app.name, "USI Web API")
        self.assertEqual(self.app.settings.org_code, "ORG01")
        self.assertIsInstance(self.app.service.client, SimulatedUSIClient)
        self.assertIn("health", self.app.svcapps)
        self.assertIn("api/usi", self.app.svcapps)

    def test_ctor_requires_apikey(self):
        del self.cfg['authentication']
        with self.assertRaises(ConfigurationException):
            wsgi.app(self.cfg)
        self.cfg['authentication'] = { "api_key": "" }
        with self.assertRaises(ConfigurationException):
            wsgi.app(self.cfg)

    def test_ctor_bad_client_mode(self):
        self.cfg['client']['mode'] = "fax"
        with self.assertRaises(ConfigurationException):
            wsgi.app(self.cfg)

    def test_health(self):
        body = self.request("GET", "/health", apikey=None)
        self.assertIn("200 ", self.resp[0])
        data = self.body2dict(body)
        self.assertEqual(data['status'], "Healthy")
        self.assertEqual(data['service'], "USI Web API")
        self.assertTrue(data['timestamp'].endswith("Z"))

    def test_verify(self):
        body = self.request("POST", "/api/usi/verify",
                            {"usi": "AAAAAAAAAA", "dateOfBirth": "1990-04-01", "singleName": "Jo"})
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.header("Content-Type"), "application/json")
        self.assertEqual(self.body2dict(body), {
            "isValid": True, "usi": "AAAAAAAAAA", "verificationStatus": "Valid",
            "message": None, "recordId": 1
        })

        self.resp = []
        body = self.request("POST", "/api/usi/verify",
                            {"usi": "BBBBBBBBBB", "dateOfBirth": "1990-04-01",
                             "firstName": "Jane", "familyName": "Doe"})
        self.assertIn("200 ", self.resp[0])
        data = self.body2dict(body)
        self.assertFalse(data['isValid'])
        self.assertEqual(data['verificationStatus'], "Invalid")

    def test_verify_bad_names(self):
        body = self.request("POST", "/api/usi/verify",
                            {"usi": "AAAAAAAAAA", "dateOfBirth": "1990-04-01",
                             "firstName": "", "familyName": "", "singleName": ""})
        self.assertIn("400 ", self.resp[0])
        data = self.body2dict(body)
        self.assertEqual(data['error'], "Invalid name fields")
        self.assertEqual(data['details'],
                         "Must provide either SingleName OR both FirstName and FamilyName")
        self.assertIn('timestamp', data)

    def test_verify_bad_input(self):
        body = self.request("POST", "/api/usi/verify",
                            {"usi": "AAA", "dateOfBirth": "1990-04-01", "singleName": "Jo"})
        self.assertIn("400 ", self.resp[0])
        self.assertEqual(self.body2dict(body)['error'], "Invalid request")

        self.resp = []
        body = self.request("POST", "/api/usi/verify", "{ not json")
        self.assertIn("400 ", self.resp[0])
        self.assertEqual(self.body2dict(body)['error'], "Invalid request")

        self.resp = []
        body = self.request("POST", "/api/usi/verify", "")
        self.assertIn("400 ", self.resp[0])

    def test_verify_empty_response(self):
        cli = Mock(spec=USIClient)
        cli.bulk_verify.return_value = []
        self.app = wsgi.app(self.cfg, rootlog.getChild("usiapp"), client=cli)

        body = self.request("POST", "/api/usi/verify",
                            {"usi": "AAAAAAAAAA", "dateOfBirth": "1990-04-01", "singleName": "Jo"})
        self.assertIn("500 ", self.resp[0])
        data = self.body2dict(body)
        self.assertEqual(data['error'], "No verification response received")
        self.assertEqual(data['details'], "The USI service did not return a verification result")

    def test_verify_upstream_failure(self):
        cli = Mock(spec=USIClient)
        cli.bulk_verify.side_effect = USICommError("USI service unreachable")
        self.app = wsgi.app(self.cfg, rootlog.getChild("usiapp"), client=cli)

        body = self.request("POST", "/api/usi/verify",
                            {"usi": "AAAAAAAAAA", "dateOfBirth": "1990-04-01", "singleName": "Jo"})
        self.assertIn("500 ", self.resp[0])
        data = self.body2dict(body)
        self.assertEqual(data['error'], "USI verification failed")
        self.assertEqual(data['details'], "USI service unreachable")

    def test_verify_no_org_code(self):
        del self.cfg['usi']
        self.app = wsgi.app(self.cfg, rootlog.getChild("usiapp"))

        body = self.request("POST", "/api/usi/verify",
                            {"usi": "AAAAAAAAAA", "dateOfBirth": "1990-04-01", "singleName": "Jo"})
        self.assertIn("500 ", self.resp[0])
        data = self.body2dict(body)
        self.assertEqual(data['error'], "USI verification failed")
        self.assertEqual(data['details'], "Organization code not configured")

        self.resp = []
        body = self.request("POST", "/api/usi/bulk-verify", {"verifications": [
            {"usi": "AAAAAAAAAA", "dateOfBirth": "1990-04-01", "singleName": "Jo"}]})
        self.assertIn("500 ", self.resp[0])
        self.assertEqual(self.body2dict(body)['error'], "Bulk USI verification failed")

        self.resp = []
        body = self.request("GET", "/api/usi/countries")
        self.assertIn("500 ", self.resp[0])
        data = self.body2dict(body)
        self.assertEqual(data['error'], "Failed to fetch country data")
        self.assertEqual(data['details'], "Organization code not configured")

    def test_bulk_verify(self):
        cli = Mock(spec=USIClient)
        cli.bulk_verify.return_value = [VerificationOutcome(1, "AAAAAAAAAA", "Valid")]
        self.app = wsgi.app(self.cfg, rootlog.getChild("usiapp"), client=cli)

        body = self.request("POST", "/api/usi/bulk-verify", {"verifications": [
            {"usi": "AAAAAAAAAA", "dateOfBirth": "1990-04-01", "singleName": "Jo"},
            {"usi": "BBBBBBBBBB", "dateOfBirth": "1991-05-02", "firstName": "", "familyName": ""}
        ]})
        self.assertIn("200 ", self.resp[0])
        data = self.body2dict(body)
        self.assertEqual(data['totalRequested'], 2)
        self.assertEqual(data['validCount'], 1)
        self.assertEqual(data['invalidCount'], 0)
        self.assertEqual(data['results'], [{
            "isValid": True, "usi": "AAAAAAAAAA", "verificationStatus": "Valid",
            "message": None, "recordId": 1
        }])

        batch = cli.bulk_verify.call_args[0][0]
        self.assertEqual(batch.count, 1)
        self.assertEqual(batch.entries[0].name.name, "Jo")

    def test_bulk_verify_sim(self):
        body = self.request("POST", "/api/usi/bulk-verify", {"Verifications": [
            {"usi": "AAAAAAAAAA", "dateOfBirth": "1990-04-01", "singleName": "Jo"},
            {"usi": "BBBBBBBBBB", "dateOfBirth": "1991-05-02", "firstName": "Jane",
             "familyName": "Doe"},
            {"usi": "CCCCCCCCCC", "dateOfBirth": "1992-06-03"}
        ]})
        self.assertIn("200 ", self.resp[0])
        data = self.body2dict(body)
        self.assertEqual(data['totalRequested'], 3)
        self.assertEqual(data['validCount'], 1)
        self.assertEqual(data['invalidCount'], 1)
        self.assertEqual([r['recordId'] for r in data['results']], [1, 2])
        self.assertEqual([r['usi'] for r in data['results']], ["AAAAAAAAAA", "BBBBBBBBBB"])

    def test_bulk_verify_bad_input(self):
        body = self.request("POST", "/api/usi/bulk-verify", {"verifications": []})
        self.assertIn("400 ", self.resp[0])
        self.assertEqual(self.body2dict(body)['error'], "Invalid request")

        self.resp = []
        body = self.request("POST", "/api/usi/bulk-verify", {"verifications": [
            {"usi": "AAAAAAAAAA", "dateOfBirth": "yesterday", "singleName": "Jo"}]})
        self.assertIn("400 ", self.resp[0])

    def test_bulk_verify_upstream_failure(self):
        cli = Mock(spec=USIClient)
        cli.bulk_verify.side_effect = USICommError("timed out")
        self.app = wsgi.app(self.cfg, rootlog.getChild("usiapp"), client=cli)

        body = self.request("POST", "/api/usi/bulk-verify", {"verifications": [
            {"usi": "AAAAAAAAAA", "dateOfBirth": "1990-04-01", "singleName": "Jo"}]})
        self.assertIn("500 ", self.resp[0])
        data = self.body2dict(body)
        self.assertEqual(data['error'], "Bulk USI verification failed")
        self.assertEqual(data['details'], "timed out")

    def test_countries(self):
        body = self.request("GET", "/api/usi/countries")
        self.assertIn("200 ", self.resp[0])
        data = self.body2dict(body)
        self.assertIsInstance(data, list)
        self.assertIn({"code": "1101", "name": "Australia"}, data)

        self.resp = []
        body = self.request("HEAD", "/api/usi/countries")
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(body, [])

    def test_countries_failure(self):
        cli = Mock(spec=USIClient)
        cli.get_countries.side_effect = USICommError("connection reset")
        self.app = wsgi.app(self.cfg, rootlog.getChild("usiapp"), client=cli)

        body = self.request("GET", "/api/usi/countries")
        self.assertIn("500 ", self.resp[0])
        data = self.body2dict(body)
        self.assertEqual(data['error'], "Failed to fetch country data")
        self.assertEqual(data['details'], "connection reset")

    def test_unauthorized(self):
        body = self.request("GET", "/api/usi/countries", apikey=None)
        self.assertIn("401 ", self.resp[0])
        data = self.body2dict(body)
        self.assertEqual(data['error'], "Unauthorized")
        self.assertEqual(data['details'], "Missing or invalid API key.")

        self.resp = []
        body = self.request("POST", "/api/usi/verify",
                            {"usi": "AAAAAAAAAA", "dateOfBirth": "1990-04-01", "singleName": "Jo"},
                            apikey="wrong")
        self.assertIn("401 ", self.resp[0])
        self.assertEqual(self.body2dict(body)['details'], "Invalid API key.")

        # key comparison is case-sensitive
        self.resp = []
        self.request("GET", "/api/usi/countries", apikey=APIKEY.upper())
        self.assertIn("401 ", self.resp[0])

    def test_method_override_ignored(self):
        cli = Mock(spec=USIClient)
        cli.bulk_verify.return_value = [VerificationOutcome(1, "AAAAAAAAAA", "Valid")]
        self.app = wsgi.app(self.cfg, rootlog.getChild("usiapp"), client=cli)

        # an unauthenticated OPTIONS request is only ever a preflight
        body = self.request("OPTIONS", "/api/usi/verify",
                            {"usi": "AAAAAAAAAA", "dateOfBirth": "1990-04-01", "singleName": "Jo"},
                            apikey=None, HTTP_X_HTTP_METHOD_OVERRIDE="POST")
        self.assertIn("204 ", self.resp[0])
        self.assertEqual(body, [])
        self.assertFalse(cli.bulk_verify.called)

        self.resp = []
        body = self.request("OPTIONS", "/api/usi/countries", apikey=None,
                            HTTP_X_HTTP_METHOD_OVERRIDE="GET")
        self.assertIn("204 ", self.resp[0])
        self.assertEqual(body, [])
        self.assertFalse(cli.get_countries.called)

        # nor can an override turn a keyless request into a preflight
        self.resp = []
        body = self.request("POST", "/api/usi/verify",
                            {"usi": "AAAAAAAAAA", "dateOfBirth": "1990-04-01", "singleName": "Jo"},
                            apikey=None, HTTP_X_HTTP_METHOD_OVERRIDE="OPTIONS")
        self.assertIn("401 ", self.resp[0])
        self.assertEqual(self.body2dict(body)['error'], "Unauthorized")
        self.assertFalse(cli.bulk_verify.called)

        self.resp = []
        self.request("GET", "/api/usi/countries", apikey=None,
                     HTTP_X_HTTP_METHOD_OVERRIDE="OPTIONS")
        self.assertIn("401 ", self.resp[0])
        self.assertFalse(cli.get_countries.called)

    def test_numeric_apikey(self):
        self.cfg['authentication']['api_key'] = 12345
        self.app = wsgi.app(self.cfg, rootlog.getChild("usiapp"))

        self.request("GET", "/api/usi/countries", apikey="12345")
        self.assertIn("200 ", self.resp[0])

        self.resp = []
        self.request("GET", "/api/usi/countries", apikey="1234")
        self.assertIn("401 ", self.resp[0])

    def test_apikey_trimmed(self):
        self.request("GET", "/api/usi/countries", apikey="  "+APIKEY+" ")
        self.assertIn("200 ", self.resp[0])

    def test_not_found(self):
        self.request("GET", "/api/usi/goober")
        self.assertIn("404 ", self.resp[0])

        self.resp = []
        self.request("GET", "/api/usi/countries/1101")
        self.assertIn("404 ", self.resp[0])

        self.resp = []
        self.request("GET", "/nowhere")
        self.assertIn("404 ", self.resp[0])

    def test_method_not_allowed(self):
        body = self.request("GET", "/api/usi/verify")
        self.assertIn("405 ", self.resp[0])
        self.assertIn('error', self.body2dict(body))

        self.resp = []
        self.request("DELETE", "/api/usi/countries")
        self.assertIn("405 ", self.resp[0])

    def test_not_acceptable(self):
        self.request("GET", "/api/usi/countries", HTTP_ACCEPT="text/html")
        self.assertIn("406 ", self.resp[0])

        self.resp = []
        self.request("GET", "/api/usi/countries", HTTP_ACCEPT="text/html, */*;q=0.5")
        self.assertIn("200 ", self.resp[0])

    def test_cors(self):
        self.request("GET", "/api/usi/countries", HTTP_ORIGIN="http://localhost:3000")
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.header("Access-Control-Allow-Origin"), "http://localhost:3000")
        self.assertEqual(self.header("Access-Control-Allow-Credentials"), "true")

        self.resp = []
        self.request("GET", "/api/usi/countries", HTTP_ORIGIN="http://evil.example.com")
        self.assertIn("200 ", self.resp[0])
        self.assertIsNone(self.header("Access-Control-Allow-Origin"))

    def test_preflight(self):
        body = self.request("OPTIONS", "/api/usi/verify", apikey=None,
                            HTTP_ORIGIN="http://localhost:3000",
                            HTTP_ACCESS_CONTROL_REQUEST_METHOD="POST",
                            HTTP_ACCESS_CONTROL_REQUEST_HEADERS="Content-Type, X-Api-Key")
        self.assertIn("204 ", self.resp[0])
        self.assertEqual(body, [])
        self.assertEqual(self.header("Access-Control-Allow-Origin"), "http://localhost:3000")
        self.assertEqual(self.header("Access-Control-Allow-Methods"), "POST, OPTIONS")
        self.assertEqual(self.header("Access-Control-Allow-Headers"), "Content-Type, X-Api-Key")

    def test_base_endpoint(self):
        self.cfg['base_endpoint'] = "/usi-webapi"
        self.app = wsgi.app(self.cfg, rootlog.getChild("usiapp"))

        self.request("GET", "/usi-webapi/api/usi/countries")
        self.assertIn("200 ", self.resp[0])

        self.resp = []
        self.request("GET", "/api/usi/countries")
        self.assertIn("404 ", self.resp[0])


if __name__ == '__main__':
    test.main()
