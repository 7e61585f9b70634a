"""
Prompt templates per domain and stage.

Templates live in YAML next to this module (ui_ux.yaml, contract.yaml).
A directory given as PROMPTS_DIR can shadow either file; its stages
replace the built-in ones stage by stage.

Usage:
    from prompts import PromptResolver

    prompt = PromptResolver().resolve("contract", "initial", {"code": source}, context)
    provider.analyze(prompt.system, prompt.user)
"""

import re
import yaml
from pathlib import Path
from typing import Any, Mapping, Optional
from dataclasses import dataclass, field

from .context import CONTEXT_BUILDERS, contract_context, website_context

BUILTIN_DIR = Path(__file__).parent
STAGES = ("initial", "rethink", "synthesis")

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


@dataclass
class PromptTemplate:
    system: str
    user: str


@dataclass
class DomainTemplates:
    name: str
    description: str
    stages: dict[str, PromptTemplate]
    multi_image: str = ""


@dataclass
class ResolvedPrompt:
    """Final text handed to a provider."""
    system: str
    user: str
    variables: dict[str, Any] = field(default_factory=dict)


def build_prompt(template: str, variables: Mapping[str, Any]) -> str:
    """
    Replace {{name}} placeholders.

    Unknown names and None values leave the placeholder as written.
    """
    def _sub(match):
        value = variables.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return _PLACEHOLDER.sub(_sub, template)


def _read_yaml(path: Path) -> dict:
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_templates(domain: str, prompts_dir: Optional[Path] = None) -> DomainTemplates:
    """Load a domain's templates, applying any override file."""
    builtin = BUILTIN_DIR / f"{domain}.yaml"
    if not builtin.exists():
        raise FileNotFoundError(f"Prompt templates not found: {domain}")

    data = _read_yaml(builtin)
    stages = {
        name: PromptTemplate(system=s["system"], user=s["user"])
        for name, s in data["stages"].items()
    }
    multi_image = data.get("multi_image", "")

    if prompts_dir:
        override = Path(prompts_dir) / f"{domain}.yaml"
        if override.exists():
            custom = _read_yaml(override)
            for name, s in (custom.get("stages") or {}).items():
                base = stages.get(name)
                stages[name] = PromptTemplate(
                    system=s.get("system", base.system if base else ""),
                    user=s.get("user", base.user if base else ""),
                )
            multi_image = custom.get("multi_image", multi_image)
            print(f"[prompts] Loaded overrides for {domain} from {override}")

    return DomainTemplates(
        name=data.get("name", domain),
        description=data.get("description", ""),
        stages=stages,
        multi_image=multi_image,
    )


class PromptResolver:
    """Builds system/user prompt pairs; templates are loaded once per domain."""

    def __init__(self, prompts_dir: Optional[Path] = None):
        self.prompts_dir = prompts_dir
        self._cache: dict[str, DomainTemplates] = {}

    def templates(self, domain: str) -> DomainTemplates:
        if domain not in self._cache:
            self._cache[domain] = load_templates(domain, self.prompts_dir)
        return self._cache[domain]

    def resolve(
        self,
        domain: str,
        stage: str,
        variables: Optional[Mapping[str, Any]] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> ResolvedPrompt:
        domain = getattr(domain, "value", domain)
        stage = getattr(stage, "value", stage)
        if stage not in STAGES:
            raise ValueError(f"Unknown stage: {stage}")

        templates = self.templates(domain)
        template = templates.stages[stage]
        variables = dict(variables or {})

        user = template.user
        if templates.multi_image and int(variables.get("imageCount") or 0) > 1:
            user = user.rstrip("\n") + "\n" + templates.multi_image

        system = template.system.rstrip("\n")
        builder = CONTEXT_BUILDERS.get(domain)
        if builder:
            system += builder(context)

        return ResolvedPrompt(
            system=build_prompt(system, variables),
            user=build_prompt(user, variables),
            variables=variables,
        )


__all__ = [
    "PromptResolver",
    "PromptTemplate",
    "ResolvedPrompt",
    "build_prompt",
    "load_templates",
    "website_context",
    "contract_context",
]
