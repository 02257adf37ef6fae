from __future__ import annotations

import os
import sys

import click
import typer

from . import __version__
from .cli_shared import OpError, _eprint, _json_line, _print_json, _rich_error
from .config import UNIFIED_LOGIN_CONFIG, StackConfig, acknowledged_changes, config_from_env
from .deployed import deployed_state, load_previous
from .errors import ConfigurationError, InternalInvariantViolation, UsageError
from .pipeline import require_acknowledged, run_pipeline

app = typer.Typer(
    name="unified-login",
    help="Validate the identity stack configuration before it is synthesized.",
    no_args_is_help=True,
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"unified-login {__version__}")
        raise typer.Exit(code=0)


@app.callback()
def app_callback(
    ctx: typer.Context,
    config: str = typer.Option(
        "",
        "--config",
        help=f"JSON config file (env override: {UNIFIED_LOGIN_CONFIG}; default: built-in stack)",
    ),
    plain_json: bool = typer.Option(False, "--plain-json", help="Emit compact JSON output"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True),
) -> None:
    del version
    ctx.obj = {"config": str(config or "").strip(), "pretty": not plain_json}


def _ctx_config(ctx: typer.Context) -> StackConfig:
    obj = ctx.obj if isinstance(ctx.obj, dict) else {}
    env = dict(os.environ)
    if obj.get("config"):
        env[UNIFIED_LOGIN_CONFIG] = obj["config"]
    try:
        return config_from_env(env)
    except ValueError as e:
        raise UsageError(str(e)) from e


def _pretty(ctx: typer.Context) -> bool:
    obj = ctx.obj if isinstance(ctx.obj, dict) else {}
    return bool(obj.get("pretty", True))


@app.command("validate", help="Run the pipeline and print outputs and warnings.")
def cmd_validate(ctx: typer.Context) -> int:
    report = run_pipeline(_ctx_config(ctx))
    _print_json(report.to_dict(), pretty=_pretty(ctx))
    return 0


@app.command("plan", help="Compare against the deployed stack and list disruptive changes.")
def cmd_plan(
    ctx: typer.Context,
    outputs_file: str = typer.Option(
        "",
        "--outputs-file",
        help="Stack outputs JSON (describe-stacks or cdk --outputs-file); default: query CloudFormation",
    ),
    stack: str = typer.Option("", "--stack", help="Deployed stack name (default: CDK_STACK_NAME)"),
) -> int:
    cfg = _ctx_config(ctx)
    stack_name = str(stack or "").strip() or cfg.stack_name
    if str(outputs_file or "").strip():
        previous = load_previous(outputs_file.strip(), stack=stack_name)
    else:
        previous = deployed_state(stack=stack_name)

    report = run_pipeline(cfg, previous=previous)
    acks = acknowledged_changes()
    doc = report.to_dict()
    doc["kind"] = "unified-login.plan.v1"
    doc["stack"] = stack_name
    doc["disruptiveChanges"] = [w.to_dict() for w in report.disruptive_changes]
    blocked = False
    try:
        require_acknowledged(report.warnings, acks)
    except ConfigurationError as e:
        blocked = True
        doc["blockedBy"] = e.to_dict()
    doc["blocked"] = blocked
    _print_json(doc, pretty=_pretty(ctx))
    return 1 if blocked else 0


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        result = app(args=argv, prog_name="unified-login", standalone_mode=False)
        if result is None:
            return 0
        return int(result)
    except typer.Exit as e:
        return int(e.exit_code)
    except click.ClickException as e:
        _rich_error(e.format_message())
        return int(e.exit_code)
    except UsageError as e:
        _rich_error(str(e))
        return 2
    except ConfigurationError as e:
        _rich_error(str(e))
        _eprint(_json_line({"event": "unified-login.error", **e.to_dict()}))
        return 1
    except (OpError, InternalInvariantViolation) as e:
        _rich_error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
