import os
import tempfile
import unittest
from pathlib import Path

from shipkit.errors import ValidationError
from shipline.models import PARAMETER_DEFAULTS, ParameterSet, parse_bool


class TestParseBool(unittest.TestCase):
    def test_accepts_common_spellings(self) -> None:
        for raw in ("true", "TRUE", "yes", "y", "1", "on", True, 1):
            self.assertTrue(parse_bool(raw), raw)
        for raw in ("false", "No", "n", "0", "off", False, 0):
            self.assertFalse(parse_bool(raw), raw)

    def test_rejects_anything_else(self) -> None:
        for raw in ("maybe", "", None, 2, "truthy"):
            with self.assertRaises(ValidationError):
                parse_bool(raw, field="run_tests")


class TestParameterSet(unittest.TestCase):
    def test_defaults(self) -> None:
        params = ParameterSet.from_mapping({})
        self.assertEqual(PARAMETER_DEFAULTS, params.as_dict())
        self.assertEqual(3000, params.port)

    def test_string_values_are_coerced(self) -> None:
        params = ParameterSet.from_mapping(
            {"branch": "develop", "run_tests": "no", "deploy_port": 8080, "push_to_registry": "yes",
             "registry_username": "acme"}
        )
        self.assertEqual("develop", params.branch)
        self.assertFalse(params.run_tests)
        self.assertEqual("8080", params.deploy_port)
        self.assertTrue(params.push_to_registry)

    def test_none_means_absent(self) -> None:
        params = ParameterSet.from_mapping({"branch": None, "run_linting": None})
        self.assertEqual("main", params.branch)
        self.assertTrue(params.run_linting)

    def test_settings_defaults_override_declared_defaults(self) -> None:
        params = ParameterSet.from_mapping({"branch": "staging"}, defaults={"image_name": "shop", "branch": "develop"})
        self.assertEqual("shop", params.image_name)
        self.assertEqual("staging", params.branch)

    def test_unknown_names_fail(self) -> None:
        with self.assertRaises(ValidationError) as cm:
            ParameterSet.from_mapping({"deploy_remotely": True})
        self.assertEqual("deploy_remotely", cm.exception.field)
        with self.assertRaises(ValidationError):
            ParameterSet.from_mapping({}, defaults={"colour": "blue"})

    def test_choices_are_enforced(self) -> None:
        with self.assertRaises(ValidationError) as cm:
            ParameterSet.from_mapping({"branch": "feature/x"})
        self.assertEqual("branch", cm.exception.field)
        with self.assertRaises(ValidationError):
            ParameterSet.from_mapping({"deploy_port": "9999"})

    def test_booleans_must_be_real_booleans_when_constructed_directly(self) -> None:
        with self.assertRaises(ValidationError):
            ParameterSet(repo_url="https://github.com/example/node-app.git", run_tests="true")

    def test_push_requires_registry_username(self) -> None:
        with self.assertRaises(ValidationError) as cm:
            ParameterSet.from_mapping({"push_to_registry": True})
        self.assertEqual("registry_username", cm.exception.field)

    def test_image_name_domain(self) -> None:
        for bad in ("Node-App", "-app", "app name", ""):
            with self.assertRaises(ValidationError):
                ParameterSet.from_mapping({"image_name": bad})

    def test_repo_url_must_be_url_or_existing_path(self) -> None:
        for ok in ("git@github.com:acme/app.git", "ssh://git@host/app.git", "file:///srv/app.git"):
            self.assertEqual(ok, ParameterSet.from_mapping({"repo_url": ok}).repo_url)
        with tempfile.TemporaryDirectory() as td:
            self.assertEqual(str(Path(td).resolve()), ParameterSet.from_mapping({"repo_url": td}).repo_url)
        with self.assertRaises(ValidationError):
            ParameterSet.from_mapping({"repo_url": "/definitely/not/here/app"})

    def test_relative_repo_path_is_made_absolute(self) -> None:
        cwd = os.getcwd()
        with tempfile.TemporaryDirectory() as td:
            (Path(td) / "myapp").mkdir()
            os.chdir(td)
            try:
                params = ParameterSet.from_mapping({"repo_url": "./myapp"})
            finally:
                os.chdir(cwd)
            self.assertEqual(str((Path(td) / "myapp").resolve()), params.repo_url)
            self.assertTrue(Path(params.repo_url).is_absolute())

    def test_parameter_set_is_immutable(self) -> None:
        params = ParameterSet.from_mapping({})
        with self.assertRaises(Exception):
            params.branch = "develop"  # type: ignore[misc]


if __name__ == "__main__":
    unittest.main()
