from __future__ import annotations

from shipline.models import ParameterSet
from shipline.pipeline import ShiplinePipeline
from shipline.plan import format_plan

from cli.common import preview_run_number


def run_plan(args, pipeline: ShiplinePipeline, *, params: ParameterSet) -> int:
    ctx = pipeline.context(params, preview_run_number(args, pipeline.settings))

    print(f"\n📋 Plan for run {ctx.run_number} ({ctx.version_label})")
    print(f"  Repo      : {params.repo_url}")
    print(f"  Image     : {ctx.image_ref} (tags: {', '.join(ctx.image_tags)})")
    print(f"  Container : {ctx.container_name} -> http://localhost:{params.deploy_port}")
    print(f"  Workdir   : {ctx.workdir}")
    print("")
    for line in format_plan(pipeline.plan(params)):
        print(line)
    return 0


def run_list_stages(args, pipeline: ShiplinePipeline) -> int:
    width = max((len(s.name) for s in pipeline.stages), default=0)
    print("\nStages (in execution order):")
    for i, stage in enumerate(pipeline.stages, start=1):
        policy = "fatal" if stage.fatal else "soft"
        print(f"  {i}. {stage.name:<{width}}  {policy:<5}  {stage.description}")
        print(f"     {'':<{width}}  when: {stage.condition}")
    return 0
