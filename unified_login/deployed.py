"""Read what is currently deployed, to detect disruptive changes before synth."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import boto3

from .cli_shared import _aws_profile_region_from_env, _cf_outputs, _load_json_object, _outputs_map
from .errors import UsageError
from .outputs import domain_prefix_output_key


@dataclass(frozen=True)
class PreviousDeployment:
    outputs: Mapping[str, str] = field(default_factory=dict)

    def domain_prefix(self, domain_logical_id: str) -> str | None:
        v = (self.outputs.get(domain_prefix_output_key(domain_logical_id)) or "").strip()
        return v or None


def _account_session() -> Any:
    profile, region = _aws_profile_region_from_env()
    return boto3.session.Session(profile_name=profile or None, region_name=region)


def deployed_state(session: Any = None, *, stack: str) -> PreviousDeployment:
    """Outputs of the deployed stack via CloudFormation describe-stacks."""
    if session is None:
        session = _account_session()
    return PreviousDeployment(outputs=_outputs_map(_cf_outputs(session, stack=stack)))


def previous_from_outputs(doc: Mapping[str, Any], *, stack: str = "") -> PreviousDeployment:
    """Accept describe-stacks output, a ``cdk deploy --outputs-file`` document, or a flat map."""
    if isinstance(doc.get("Stacks"), list):
        stacks = [s for s in doc["Stacks"] if isinstance(s, dict)]
        if stack:
            stacks = [s for s in stacks if s.get("StackName") == stack]
        if not stacks:
            raise UsageError(f"stack not found in outputs document: {stack or '(any)'}")
        outputs = stacks[0].get("Outputs") or []
        return PreviousDeployment(outputs=_outputs_map([o for o in outputs if isinstance(o, dict)]))
    if isinstance(doc.get("Outputs"), list):
        return PreviousDeployment(outputs=_outputs_map([o for o in doc["Outputs"] if isinstance(o, dict)]))
    if stack and isinstance(doc.get(stack), dict):
        doc = doc[stack]
    elif len(doc) == 1 and isinstance(next(iter(doc.values())), dict):
        doc = next(iter(doc.values()))
    return PreviousDeployment(
        outputs={str(k): str(v).strip() for k, v in doc.items() if not isinstance(v, (dict, list))}
    )


def load_previous(path: str | Path, *, stack: str = "") -> PreviousDeployment:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise UsageError(f"cannot read outputs file {p}: {e}") from e
    return previous_from_outputs(_load_json_object(raw=text, label=f"outputs file {p}"), stack=stack)
