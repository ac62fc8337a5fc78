from __future__ import annotations

import io
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path

from ghost_static import verify


class VerifyTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        (self.root / "CNAME").write_text("blog.example.com", encoding="utf-8")
        (self.root / ".nojekyll").write_text("", encoding="utf-8")
        (self.root / "index.html").write_text('<a href="https://blog.example.com/">x</a>', encoding="utf-8")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def run_verify(self) -> tuple[int, str]:
        out = io.StringIO()
        with redirect_stdout(out):
            code = verify.main(["--output-dir", str(self.root), "--source-url", "http://localhost:2368"])
        return code, out.getvalue()

    def test_clean_snapshot(self) -> None:
        code, output = self.run_verify()
        self.assertEqual(code, 0)
        self.assertIn("NG: 0", output)

    def test_reports_leftovers(self) -> None:
        (self.root / "feed.xml").write_text("<link>http://localhost:2368/</link>", encoding="utf-8")
        (self.root / "screen.css@v=1").write_text("", encoding="utf-8")
        (self.root / ".nojekyll").unlink()
        code, output = self.run_verify()
        self.assertEqual(code, 1)
        self.assertIn("[NG] missing marker file: .nojekyll", output)
        self.assertIn("[NG] file name keeps a query suffix: screen.css@v=1", output)
        self.assertIn("- feed.xml", output)
        self.assertIn("NG: 3", output)

    def test_missing_output_directory(self) -> None:
        self.root = self.root / "nope"
        code, output = self.run_verify()
        self.assertEqual(code, 1)
        self.assertIn("output directory not found", output)


if __name__ == "__main__":
    unittest.main()
