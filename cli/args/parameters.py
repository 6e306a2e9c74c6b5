from __future__ import annotations

import argparse

from shipline.models import BRANCH_CHOICES, DEPLOY_PORT_CHOICES, PARAMETER_DEFAULTS

_BOOL_FLAGS = {
    "--run-tests": "Run the unit tests (and the image smoke test).",
    "--run-linting": "Run the lint script.",
    "--build-image": "Build the container image.",
    "--push-to-registry": "Push the image to the registry (needs --registry-username and REGISTRY_PASSWORD).",
    "--deploy-locally": "Deploy the image as a local container.",
    "--clean-workspace": "Delete the checkout before cloning.",
    "--verbose": "Debug logging and an extended diagnostic dump at the end of the run.",
}


def add_parameter_args(parser: argparse.ArgumentParser) -> None:
    """Register the run parameters.

    Every flag defaults to ``None`` ("not given") so settings-file defaults
    can apply. Booleans take a value (``true/false/yes/no/1/0/on/off``) and are
    validated by :class:`shipline.models.ParameterSet`, not by argparse.
    """

    group = parser.add_argument_group("run parameters")
    group.add_argument(
        "--repo-url",
        help=f"Git URL or local path of the application (default: {PARAMETER_DEFAULTS['repo_url']})",
    )
    group.add_argument(
        "--branch",
        choices=list(BRANCH_CHOICES),
        help=f"Branch to build (default: {PARAMETER_DEFAULTS['branch']})",
    )

    for flag, help_text in _BOOL_FLAGS.items():
        dest = flag[2:].replace("-", "_")
        default = "true" if PARAMETER_DEFAULTS[dest] else "false"
        group.add_argument(flag, metavar="BOOL", help=f"{help_text} (default: {default})")

    group.add_argument(
        "--deploy-port",
        choices=list(DEPLOY_PORT_CHOICES),
        help=f"Host port for the deployed container (default: {PARAMETER_DEFAULTS['deploy_port']})",
    )
    group.add_argument(
        "--image-name",
        help=f"Container image name (default: {PARAMETER_DEFAULTS['image_name']})",
    )
    group.add_argument(
        "--registry-username",
        help="Registry account used by the push stage.",
    )

