import argparse
import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from shipkit.errors import ValidationError
from shipline.settings import Settings

from cli.common import explicit_run_number, issue_run_number, preview_run_number
from shipline_cli import parse_args

REPO_ROOT = Path(__file__).resolve().parents[1]
CLI = REPO_ROOT / "shipline_cli.py"

SCRUBBED_VARS = (
    "REGISTRY_PASSWORD",
    "DOCKER_PASSWORD",
    "BUILD_NUMBER",
    "SHIPLINE_WORKSPACE_ROOT",
    "SHIPLINE_RUNS_ROOT",
    "SHIPLINE_REGISTRY_HOST",
)


class CliTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.root = Path(self._td.name)
        self.env_file = self.root / "empty.env"
        self.env_file.write_text("", encoding="utf-8")
        self.config = self.root / "shipline.yaml"
        self.config.write_text("health_path: ''\nimage_test_settle_seconds: 0\n", encoding="utf-8")

    def tearDown(self) -> None:
        self._td.cleanup()

    def run_cli(self, *argv: str, env=None) -> subprocess.CompletedProcess:
        environ = {k: v for k, v in os.environ.items() if k not in SCRUBBED_VARS}
        environ["PYTHONIOENCODING"] = "utf-8"
        environ.update(env or {})
        cmd = [
            sys.executable,
            str(CLI),
            "--env-file",
            str(self.env_file),
            "--config",
            str(self.config),
            "--workspace-root",
            str(self.root / "workspace"),
            "--runs-root",
            str(self.root / "runs"),
            *argv,
        ]
        return subprocess.run(
            cmd,
            cwd=str(REPO_ROOT),
            env=environ,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            timeout=120,
        )


class TestCliModes(CliTestCase):
    def test_list_stages(self) -> None:
        proc = self.run_cli("--mode", "list-stages")
        self.assertEqual(0, proc.returncode, proc.stderr)
        out = proc.stdout
        self.assertLess(out.index("clean-workspace"), out.index("checkout"))
        self.assertLess(out.index("push"), out.index("deploy"))
        self.assertIn("when: push_to_registry and build-image succeeded", out)

    def test_plan_runs_nothing(self) -> None:
        proc = self.run_cli("--mode", "plan", "--branch", "develop", "--run-number", "12", "--build-image", "no")
        self.assertEqual(0, proc.returncode, proc.stderr)
        self.assertIn("Plan for run 12 (develop-12)", proc.stdout)
        self.assertIn("node-app-develop", proc.stdout)
        self.assertFalse((self.root / "runs").exists())
        self.assertFalse((self.root / "workspace").exists())

    def test_dry_run_writes_manifest_without_consuming_run_number(self) -> None:
        proc = self.run_cli("--dry-run", "--quiet", "--run-number", "7")
        self.assertEqual(0, proc.returncode, proc.stderr)

        runs = self.root / "runs"
        manifest = json.loads((runs / "7" / "run.json").read_text(encoding="utf-8"))
        self.assertEqual("success", manifest["run"]["outcome"])
        self.assertEqual("main-7", manifest["context"]["version_label"])
        self.assertEqual("7", (runs / "LATEST").read_text(encoding="utf-8").strip())
        self.assertFalse((runs / ".run_number").exists())

    def test_build_number_from_environment(self) -> None:
        proc = self.run_cli("--mode", "plan", env={"BUILD_NUMBER": "31"})
        self.assertEqual(0, proc.returncode, proc.stderr)
        self.assertIn("Plan for run 31 (main-31)", proc.stdout)


class TestCliValidation(CliTestCase):
    def assert_validation_error(self, *argv: str, message: str) -> None:
        proc = self.run_cli(*argv)
        self.assertEqual(2, proc.returncode, proc.stdout)
        self.assertIn(message, proc.stderr)
        self.assertFalse((self.root / "runs").exists())

    def test_unknown_branch(self) -> None:
        self.assert_validation_error("--branch", "release", message="invalid choice")

    def test_bad_boolean(self) -> None:
        self.assert_validation_error("--run-tests", "maybe", message="run_tests: expected a boolean")

    def test_push_needs_username(self) -> None:
        self.assert_validation_error("--push-to-registry", "true", message="registry_username is required")

    def test_push_needs_password(self) -> None:
        self.assert_validation_error(
            "--push-to-registry", "true", "--registry-username", "acme",
            message="no registry password is set",
        )

    def test_bad_run_number(self) -> None:
        self.assert_validation_error("--run-number", "0", message="run number must be positive")

    def test_unknown_settings_key(self) -> None:
        self.config.write_text("retries: 3\n", encoding="utf-8")
        self.assert_validation_error("--mode", "plan", message="Unknown settings key(s): retries")


class TestRunNumber(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.settings = Settings(runs_root=Path(self._td.name) / "runs")

    def tearDown(self) -> None:
        self._td.cleanup()

    def args(self, run_number=None) -> argparse.Namespace:
        return argparse.Namespace(run_number=run_number)

    def test_flag_wins_over_environment(self) -> None:
        self.assertEqual(5, explicit_run_number(self.args("5"), {"BUILD_NUMBER": "9"}))
        self.assertEqual(9, explicit_run_number(self.args(), {"BUILD_NUMBER": "9"}))
        self.assertIsNone(explicit_run_number(self.args(), {}))

    def test_rejects_non_numeric(self) -> None:
        with self.assertRaises(ValidationError):
            explicit_run_number(self.args(), {"BUILD_NUMBER": "abc"})

    def test_counter_issues_and_records(self) -> None:
        self.assertEqual(1, preview_run_number(self.args(), self.settings, {}))
        self.assertEqual(1, issue_run_number(self.args(), self.settings, {}))
        self.assertEqual(2, issue_run_number(self.args(), self.settings, {}))
        self.assertEqual(40, issue_run_number(self.args("40"), self.settings, {}))
        self.assertEqual(41, issue_run_number(self.args(), self.settings, {}))
        self.assertEqual(42, preview_run_number(self.args(), self.settings, {}))
        self.assertEqual(42, preview_run_number(self.args(), self.settings, {}))

    def test_parse_args_defaults_are_absent(self) -> None:
        args = parse_args([])
        self.assertEqual("run", args.mode)
        self.assertIsNone(args.run_tests)
        self.assertIsNone(args.branch)
        self.assertFalse(args.dry_run)


if __name__ == "__main__":
    unittest.main()
