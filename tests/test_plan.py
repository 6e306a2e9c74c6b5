import unittest

from shipline.framework import DEFAULT_PIPELINE, PIPELINES
from shipline.plan import format_plan, plan_stages
from shipline.settings import Settings
from shipline.stages import build_stages

from fakes import scenario_params


def enabled_names(planned):
    return [p.name for p in planned if p.enabled]


class TestPlan(unittest.TestCase):
    def setUp(self) -> None:
        self.stages = build_stages(Settings(stage_timeouts={"build-image": 600}))

    def test_catalogue_order(self) -> None:
        self.assertEqual(list(PIPELINES[DEFAULT_PIPELINE]), [s.name for s in self.stages])

    def test_default_parameters(self) -> None:
        planned = plan_stages(scenario_params(), self.stages)
        self.assertEqual(
            ["checkout", "lint", "test", "build-image", "test-image", "security-scan", "deploy"],
            enabled_names(planned),
        )

    def test_image_dependants_follow_build_image(self) -> None:
        planned = plan_stages(
            scenario_params(build_image=False, push_to_registry=True, registry_username="acme"),
            self.stages,
        )
        self.assertEqual(["checkout", "lint", "test"], enabled_names(planned))

    def test_image_smoke_test_needs_run_tests(self) -> None:
        planned = plan_stages(scenario_params(run_tests=False), self.stages)
        names = enabled_names(planned)
        self.assertNotIn("test", names)
        self.assertNotIn("test-image", names)
        self.assertIn("security-scan", names)

    def test_format_plan(self) -> None:
        lines = format_plan(plan_stages(scenario_params(), self.stages))
        self.assertEqual(len(self.stages), len(lines))

        by_name = {line.split()[1]: line for line in lines}
        self.assertIn("fatal", by_name["build-image"])
        self.assertIn("timeout=600s", by_name["build-image"])
        self.assertIn("when: push_to_registry and build-image succeeded", by_name["push"])
        self.assertIn("env=test", by_name["lint"])
        self.assertTrue(by_name["clean-workspace"].lstrip().startswith("⏭"))

    def test_policies(self) -> None:
        fatal = {s.name for s in self.stages if s.fatal}
        self.assertEqual({"checkout", "build-image", "push", "deploy"}, fatal)


if __name__ == "__main__":
    unittest.main()
