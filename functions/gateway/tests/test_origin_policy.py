import unittest

from gateway.config import DEFAULT_UPLOAD_ORIGIN_PATTERNS
from gateway.origin_policy import CorsConfig, OriginPolicy


class OriginPolicyTests(unittest.TestCase):
    def test_empty_allow_list_admits_everything(self):
        policy = OriginPolicy.from_allow_list([])
        self.assertTrue(policy.allows("https://anything.test"))
        self.assertTrue(policy.allows(None))

    def test_exact_and_suffix(self):
        policy = OriginPolicy.from_allow_list(["https://app.example.com", "example.org"])
        self.assertTrue(policy.allows("https://app.example.com"))
        self.assertTrue(policy.allows("https://www.example.org"))
        self.assertFalse(policy.allows("https://app.example.com.evil.test"))
        self.assertFalse(policy.allows(""))
        self.assertFalse(policy.allows(None))

    def test_local_development(self):
        policy = OriginPolicy.from_allow_list(["https://app.example.com"], allow_local=True)
        self.assertTrue(policy.allows("http://localhost:3000"))
        self.assertTrue(policy.allows("http://127.0.0.1:5173"))
        self.assertFalse(policy.allows("https://other.test"))

    def test_upload_patterns(self):
        policy = OriginPolicy.from_allow_list(
            ["https://app.example.com"], patterns=DEFAULT_UPLOAD_ORIGIN_PATTERNS
        )
        self.assertTrue(policy.allows("https://branch--site.netlify.app"))
        self.assertTrue(policy.allows("https://site.vercel.app"))
        self.assertTrue(policy.allows("https://iwish.com"))
        self.assertTrue(policy.allows("https://shop.iwishes.cn"))
        self.assertTrue(policy.allows("http://localhost:8080"))
        self.assertFalse(policy.allows("http://site.netlify.app"))
        self.assertFalse(policy.allows("https://iwish.org"))
        self.assertFalse(policy.allows("http://localhost"))


class CorsConfigTests(unittest.TestCase):
    def test_echoes_origin(self):
        headers = CorsConfig(methods=("GET", "OPTIONS")).headers_for("https://a.test")
        self.assertEqual(headers["Access-Control-Allow-Origin"], "https://a.test")
        self.assertEqual(headers["Access-Control-Allow-Methods"], "GET, OPTIONS")
        self.assertEqual(
            headers["Access-Control-Allow-Headers"], "Content-Type, X-Main-Access-Token"
        )
        self.assertNotIn("Access-Control-Allow-Credentials", headers)
        self.assertNotIn("Access-Control-Max-Age", headers)

    def test_missing_origin_falls_back_to_wildcard(self):
        headers = CorsConfig(
            methods=("POST",), allow_credentials=True, max_age=60
        ).headers_for(None)
        self.assertEqual(headers["Access-Control-Allow-Origin"], "*")
        self.assertEqual(headers["Access-Control-Allow-Credentials"], "true")
        self.assertEqual(headers["Access-Control-Max-Age"], "60")


if __name__ == "__main__":
    unittest.main()
