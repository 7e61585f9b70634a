#!/usr/bin/env python3
"""
Analysis CLI - run the pipeline locally against files on disk.

Uses the same service as the HTTP API, with the JSON store under
ANALYSIS_DATA_DIR (default ./data).
"""

import sys
import json
import mimetypes
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

from config import PROVIDERS, Settings
from errors import AnalysisError
from models import AnalysisSubmission, RetryPlan
from pipeline import AnalysisService
from pipeline.artifacts import to_data_url
from repositories import JsonRepository

console = Console()

DEFAULT_USER = "local"

STATUS_STYLES = {
    "completed": "green",
    "partial": "yellow",
    "failed": "red",
    "processing": "cyan",
    "pending": "dim",
}


def build_service(settings: Settings) -> AnalysisService:
    return AnalysisService(settings, repo=JsonRepository(settings.data_dir))


def load_source(domain: str, paths: list[str], github: str = None) -> dict:
    """Read files into an inline source descriptor."""
    if github:
        return {"kind": "github", "source_type": "github", "url": github}

    content = []
    for p in paths:
        path = Path(p)
        if not path.is_file():
            raise FileNotFoundError(f"No such file: {p}")
        if domain == "ui_ux":
            mime, _ = mimetypes.guess_type(path.name)
            content.append(to_data_url(path.read_bytes(), mime or "image/png"))
        else:
            content.append(path.read_text())

    source_type = "upload" if domain == "ui_ux" else "contract_upload"
    return {"kind": "inline", "source_type": source_type, "content": content}


def show_progress(progress: dict):
    """Render a status dict."""
    status = progress["status"]
    style = STATUS_STYLES.get(status, "white")
    score = progress.get("final_score")
    best = progress.get("best_individual_score")

    lines = [
        f"[bold]Status:[/bold] [{style}]{status}[/{style}]",
        f"[bold]Providers:[/bold] {', '.join(progress['providers_used'])}  (master: {progress['master_provider']})",
        f"[bold]Progress:[/bold] {progress['progress']}%  -  {progress['summary']}",
    ]
    if score is not None:
        lines.append(f"[bold]Final score:[/bold] {score}")
    elif best is not None:
        lines.append(f"[bold]Best individual score:[/bold] {best} [dim](no synthesis)[/dim]")

    console.print(Panel.fit("\n".join(lines), title=progress["analysis_id"]))


def show_responses(results: dict):
    table = Table(box=box.SIMPLE)
    table.add_column("Step", style="cyan")
    table.add_column("Provider")
    table.add_column("OK", justify="center")
    table.add_column("Score", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Latency", justify="right", style="dim")
    table.add_column("Error", style="red")

    for r in results["responses"]:
        table.add_row(
            r["step"],
            r["provider"],
            "[green]yes[/green]" if r["success"] else "[red]no[/red]",
            "" if r["score"] is None else str(r["score"]),
            str(r["tokens_used"]),
            f"{r['latency_ms']}ms",
            (r.get("error") or "")[:60],
        )

    console.print(table)


def cmd_analyze(service, args):
    submission = AnalysisSubmission.model_validate({
        "domain": args.domain,
        "source": load_source(args.domain, args.files, args.github),
        "providers": args.providers,
        "masterProvider": args.master,
        "context": json.loads(args.context) if args.context else {},
    })

    console.print(f"[dim]Running {args.domain} analysis with {', '.join(submission.providers)}...[/dim]")
    analysis = service.submit(args.user, submission)

    show_progress(service.status(analysis.id, args.user).to_dict())
    show_responses(service.results(analysis.id, args.user))


def cmd_status(service, args):
    show_progress(service.status(args.analysis_id, args.user).to_dict())
    if args.verbose:
        show_responses(service.results(args.analysis_id, args.user))


def cmd_retry(service, args):
    substitutions = []
    for pair in args.swap or []:
        original, _, substitute = pair.partition(":")
        substitutions.append({"originalProvider": original, "retryProvider": substitute or original})

    plan = RetryPlan.model_validate({
        "analysisId": args.analysis_id,
        "retryStep": args.step,
        "retryProviders": substitutions,
        "newMasterProvider": args.master,
    })

    outcome = service.retry(args.user, plan)
    style = STATUS_STYLES.get(outcome.status.value, "white")
    console.print(f"[{style}]{outcome.message}[/{style}]")
    show_progress(service.status(args.analysis_id, args.user).to_dict())


def cmd_budget(service, args):
    budget = service.budget(args.user).to_dict()

    table = Table(title=f"Daily token budget for {args.user}", box=box.ROUNDED)
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")
    for key in ("allowed", "used_today", "daily_limit", "remaining", "reset_at", "bypassed", "degraded"):
        value = budget[key]
        table.add_row(key, "unlimited" if value is None else str(value))

    console.print(table)


def cli(argv=None):
    """Main CLI entry point"""
    import argparse

    parser = argparse.ArgumentParser(
        description="Multi-provider AI analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  analyze-cli analyze ui_ux shot1.png shot2.png -p openai anthropic gemini
  analyze-cli analyze contract Token.sol -p openai groq --master groq
  analyze-cli analyze contract --github https://github.com/o/r/blob/main/Token.sol -p anthropic
  analyze-cli status <id> -v
  analyze-cli retry <id> initial --swap gemini:groq
  analyze-cli retry <id> synthesis --master anthropic
  analyze-cli budget
        """
    )
    parser.add_argument("--user", default=DEFAULT_USER, help="User id to act as")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("analyze", help="Submit and run an analysis")
    p.add_argument("domain", choices=["ui_ux", "contract"])
    p.add_argument("files", nargs="*", help="Screenshots or contract sources")
    p.add_argument("--github", help="GitHub file URL (contract domain)")
    p.add_argument("--providers", "-p", nargs="+", default=list(PROVIDERS[:3]), help="Providers to run")
    p.add_argument("--master", help="Synthesis provider (default: first)")
    p.add_argument("--context", help="JSON object of website or contract context")
    p.set_defaults(func=cmd_analyze)

    p = sub.add_parser("status", help="Show analysis progress")
    p.add_argument("analysis_id")
    p.add_argument("--verbose", "-v", action="store_true", help="List every response row")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("retry", help="Retry providers or synthesis")
    p.add_argument("analysis_id")
    p.add_argument("step", choices=["initial", "synthesis"])
    p.add_argument("--swap", nargs="+", metavar="ORIG[:SUB]", help="Slots to retry, optionally substituted")
    p.add_argument("--master", help="New master provider")
    p.set_defaults(func=cmd_retry)

    p = sub.add_parser("budget", help="Show today's token budget")
    p.set_defaults(func=cmd_budget)

    args = parser.parse_args(argv)
    service = build_service(Settings.from_env())

    try:
        args.func(service, args)
    except ValidationError as e:
        console.print(f"[red]Invalid input:[/red] {e}")
        return 2
    except (AnalysisError, FileNotFoundError, json.JSONDecodeError) as e:
        console.print(f"[red]{type(e).__name__}:[/red] {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(cli())
