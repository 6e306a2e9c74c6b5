import unittest
from pathlib import Path
import tempfile
from unittest import mock


from shipkit.io import read_json, write_json_atomic, write_text_atomic


class TestSafeIO(unittest.TestCase):
    def test_write_json_is_atomic_and_cleans_temp(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            out_dir = root / "runs" / "42"
            out_path = out_dir / "run.json"

            payload = {"b": True, "a": 1, "c": None, "nested": {"x": "y"}}
            write_json_atomic(out_path, payload)

            # File written (parents created) and readable
            self.assertTrue(out_path.exists())
            self.assertEqual(payload, read_json(out_path))

            # Stable formatting: sorted keys, trailing newline
            text = out_path.read_text(encoding="utf-8")
            self.assertTrue(text.endswith("\n"))
            self.assertLess(text.index('"a"'), text.index('"b"'))

            # No temp files left behind on success
            self.assertEqual([], list(out_dir.glob("*.tmp")))

    def test_failed_replace_keeps_previous_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            out_path = Path(td) / "LATEST"
            write_text_atomic(out_path, "7\n")

            with mock.patch("shipkit.io.fs.os.replace", side_effect=OSError("disk full")):
                with self.assertRaises(OSError):
                    write_text_atomic(out_path, "8\n")

            self.assertEqual("7\n", out_path.read_text(encoding="utf-8"))
            self.assertEqual([], list(Path(td).glob("*.tmp")))


if __name__ == "__main__":
    unittest.main()
