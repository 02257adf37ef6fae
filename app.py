#!/usr/bin/env python3
import os

import aws_cdk as cdk

from stacks.unified_login_stack import UnifiedLoginStack
from unified_login.cli_shared import _eprint, _json_line, _truthy
from unified_login.config import acknowledged_changes, config_from_env
from unified_login.deployed import deployed_state, load_previous
from unified_login.pipeline import require_acknowledged, run_pipeline

app = cdk.App()

config = config_from_env()

# Compare against what is deployed so prefix renames are flagged before synth.
previous = None
previous_outputs_file = (os.getenv("PREVIOUS_OUTPUTS_FILE") or "").strip()
if previous_outputs_file:
    previous = load_previous(previous_outputs_file, stack=config.stack_name)
elif _truthy(os.getenv("COMPARE_DEPLOYED")):
    previous = deployed_state(stack=config.stack_name)

report = run_pipeline(config, previous=previous)
for warning in report.warnings:
    _eprint(_json_line({"event": "unified-login.warning", **warning.to_dict()}))
require_acknowledged(report.warnings, acknowledged_changes())

UnifiedLoginStack(
    app,
    config.stack_name,
    graph=report.graph,
    warnings=report.warnings,
    env=cdk.Environment(
        account=os.getenv("CDK_DEFAULT_ACCOUNT"),
        region=config.region,
    ),
)

app.synth()
