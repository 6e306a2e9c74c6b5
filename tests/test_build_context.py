import unittest
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

from shipkit.errors import ValidationError
from shipline.context import derive_build_context
from shipline.identifiers import container_name, sanitize_name_fragment
from shipline.identifiers import test_container_name as transient_container_name
from shipline.models import ParameterSet
from shipline.settings import Settings

NOW = datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)


def params(**kw) -> ParameterSet:
    return ParameterSet.from_mapping(kw)


class TestBuildContext(unittest.TestCase):
    def setUp(self) -> None:
        self.settings = Settings(workspace_root=Path("/srv/ws"), runs_root=Path("/srv/runs"))

    def test_derived_names(self) -> None:
        ctx = derive_build_context(params(branch="develop"), 42, settings=self.settings, now=NOW)
        self.assertEqual("develop-42", ctx.version_label)
        self.assertEqual("42", ctx.image_tag)
        self.assertEqual("node-app:42", ctx.image_ref)
        self.assertEqual(("42", "develop", "latest"), ctx.image_tags)
        self.assertEqual("node-app-develop", ctx.container_name)
        self.assertEqual("node-app-test-42", ctx.test_container_name)
        self.assertEqual("2026-03-04T05:06:07Z", ctx.timestamp)
        self.assertEqual(Path("/srv/ws/node-app-develop"), ctx.workdir)

    def test_derivation_is_pure(self) -> None:
        p = params()
        a = derive_build_context(p, 7, settings=self.settings, now=NOW)
        b = derive_build_context(p, 7, settings=self.settings, now=NOW)
        self.assertEqual(a, b)

    def test_consecutive_runs_differ_only_in_run_scoped_fields(self) -> None:
        p = params()
        a = derive_build_context(p, 10, settings=self.settings, now=NOW)
        b = derive_build_context(p, 11, settings=self.settings, now=NOW)
        self.assertNotEqual(a.image_tag, b.image_tag)
        self.assertNotEqual(a.test_container_name, b.test_container_name)
        self.assertNotEqual(a.version_label, b.version_label)
        self.assertEqual(a.container_name, b.container_name)
        self.assertEqual(a.workdir, b.workdir)
        run_scoped = {"run_number", "version_label", "image_tag", "image_ref", "image_tags", "test_container_name"}
        self.assertEqual(
            replace(a, **{k: getattr(b, k) for k in run_scoped}),
            b,
        )

    def test_environment_modes(self) -> None:
        ctx = derive_build_context(params(deploy_port="8080"), 3, settings=self.settings, now=NOW)
        env = ctx.environment("test")
        self.assertEqual(
            {
                "BUILD_VERSION": "main-3",
                "BUILD_NUMBER": "3",
                "BRANCH_NAME": "main",
                "NODE_ENV": "test",
                "APP_PORT": "8080",
                "BUILD_TIMESTAMP": "2026-03-04T05:06:07Z",
            },
            env,
        )
        self.assertEqual("production", ctx.environment("production")["NODE_ENV"])
        with self.assertRaises(ValueError):
            ctx.environment("staging")

    def test_build_args(self) -> None:
        ctx = derive_build_context(params(), 5, settings=self.settings, now=NOW)
        self.assertEqual(
            {"BUILD_NUMBER": "5", "VERSION": "main-5", "BRANCH": "main", "BUILD_TIMESTAMP": "2026-03-04T05:06:07Z"},
            ctx.build_args(),
        )

    def test_run_number_must_be_positive(self) -> None:
        for bad in (0, -1, True, "3"):
            with self.assertRaises(ValidationError):
                derive_build_context(params(), bad, settings=self.settings, now=NOW)  # type: ignore[arg-type]

    def test_naive_now_is_treated_as_utc(self) -> None:
        ctx = derive_build_context(params(), 1, settings=self.settings, now=datetime(2026, 1, 1, 0, 0, 0))
        self.assertEqual("2026-01-01T00:00:00Z", ctx.timestamp)


class TestNameHelpers(unittest.TestCase):
    def test_sanitize(self) -> None:
        self.assertEqual("feature-login", sanitize_name_fragment("feature/login"))
        with self.assertRaises(ValueError):
            sanitize_name_fragment("///")

    def test_container_names(self) -> None:
        self.assertEqual("shop-staging", container_name("shop", "staging"))
        self.assertEqual("shop-test-9", transient_container_name("shop", 9))


if __name__ == "__main__":
    unittest.main()
