import unittest

from markpatch.core.selftests import MarkPatchSelfTests


class SelfTestsTests(unittest.TestCase):
    def test_all_checks_pass(self) -> None:
        ok, report = MarkPatchSelfTests.run()
        self.assertTrue(ok, report)
        self.assertEqual(report.count("OK: "), 7)


if __name__ == "__main__":
    unittest.main()
