import tempfile
import unittest
from pathlib import Path

from shipkit.errors import ValidationError
from shipline.settings import ROOT_DIR, Settings, load_settings, settings_from_mapping
from shipline.stages import build_stages


def write_yaml(td: str, text: str) -> Path:
    p = Path(td) / "shipline.yaml"
    p.write_text(text, encoding="utf-8")
    return p


class TestSettings(unittest.TestCase):
    def test_yaml_values_are_typed(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = write_yaml(
                td,
                "workspace_root: %s/ws\n"
                "registry_host: ghcr.io\n"
                "container_port: '8081'\n"
                "prune_images: 'no'\n"
                "stage_timeouts:\n  test: 900\n"
                "defaults:\n  image_name: storefront\n" % td,
            )
            s = load_settings(cfg, environ={})
        self.assertEqual(Path(td) / "ws", s.workspace_root)
        self.assertEqual("ghcr.io", s.registry_host)
        self.assertEqual(8081, s.container_port)
        self.assertFalse(s.prune_images)
        self.assertEqual({"test": 900.0}, dict(s.stage_timeouts))
        self.assertEqual({"image_name": "storefront"}, dict(s.defaults))

    def test_environment_overrides_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = write_yaml(td, "registry_host: ghcr.io\n")
            s = load_settings(cfg, environ={"SHIPLINE_REGISTRY_HOST": "registry.local:5000", "SHIPLINE_RUNS_ROOT": td})
        self.assertEqual("registry.local:5000", s.registry_host)
        self.assertEqual(Path(td), s.runs_root)
        self.assertEqual(Path(td) / ".run_number", s.state_file)

    def test_relative_paths_are_anchored_at_repo_root(self) -> None:
        s = settings_from_mapping({"workspace_root": "build/ws"})
        self.assertEqual(ROOT_DIR / "build" / "ws", s.workspace_root)

    def test_unknown_keys_fail(self) -> None:
        with self.assertRaises(ValidationError):
            settings_from_mapping({"registry": "docker.io"})

    def test_invalid_values_fail(self) -> None:
        with self.assertRaises(ValidationError):
            settings_from_mapping({"container_port": "http"})
        with self.assertRaises(ValidationError):
            settings_from_mapping({"container_port": 70000})
        with self.assertRaises(ValidationError):
            settings_from_mapping({"stage_timeouts": {"test": 0}})
        with self.assertRaises(ValidationError):
            settings_from_mapping({"stage_timeouts": ["test"]})

    def test_yaml_must_be_a_mapping(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = write_yaml(td, "- just\n- a list\n")
            with self.assertRaises(ValidationError):
                load_settings(cfg, environ={})

    def test_missing_config_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_settings(Path("/definitely/not/here/shipline.yaml"), environ={})

    def test_stage_timeouts_reach_the_stage_list(self) -> None:
        stages = build_stages(Settings(stage_timeouts={"build-image": 1800}))
        by_name = {s.name: s for s in stages}
        self.assertEqual(1800.0, by_name["build-image"].timeout_seconds)
        self.assertIsNone(by_name["test"].timeout_seconds)

    def test_timeouts_for_unknown_stages_fail(self) -> None:
        with self.assertRaises(ValidationError):
            build_stages(Settings(stage_timeouts={"publish": 10}))


if __name__ == "__main__":
    unittest.main()
