from __future__ import annotations

import argparse

from shipline.models import ParameterSet
from shipline.pipeline import ShiplinePipeline
from shipline.wiring import configure_logging

from cli.commands.plan import run_list_stages, run_plan
from cli.commands.build import run_build
from cli.common import parameter_values


def dispatch(args: argparse.Namespace, pipeline: ShiplinePipeline) -> int:
    """Route to the selected mode and return its exit code."""
    if args.mode == "list-stages":
        return run_list_stages(args, pipeline)

    params = ParameterSet.from_mapping(parameter_values(args), defaults=pipeline.settings.defaults)
    configure_logging(params.verbose)

    if args.mode == "plan":
        return run_plan(args, pipeline, params=params)
    return run_build(args, pipeline, params=params)
