import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from decision_layer.config import settings
from decision_layer.intent.types import ThreadContext
from decision_layer.layers import enabled_layer_names
from decision_layer.stores import StaticEntityStore, StaticMeetingCountStore
from decision_layer.supervisor.orchestrator import DecisionLayer, DecisionLayerResult
from decision_layer.telemetry.recorder import to_jsonable

app = typer.Typer()
console = Console()


_thread_option = typer.Option(
    None,
    "--thread",
    help="Path to a JSON file with a list of {'text', 'is_bot'} messages; the last one is the current question.",
)
_companies_option = typer.Option(
    None, "--companies", help="Known company names. Defaults to FALLBACK_COMPANIES."
)
_meetings_option = typer.Option(
    0, "--meetings", help="Number of meetings on record, used for the time-range check."
)
_json_option = typer.Option(False, "--json", help="Print the raw decision as JSON.")


def _load_thread(path: Optional[Path]) -> Optional[ThreadContext]:
    if path is None:
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[bold red]Could not read thread file {path}: {e}[/bold red]")
        raise typer.Exit(1) from e
    if not isinstance(data, list):
        console.print("[bold red]Thread file must contain a JSON list of messages.[/bold red]")
        raise typer.Exit(1)
    return ThreadContext.from_dicts(data)


def _render(result: DecisionLayerResult) -> Table:
    table = Table(title="Decision")
    table.add_column("Field", style="magenta")
    table.add_column("Value", style="yellow")

    table.add_row("Intent", result.intent.value)
    table.add_row("Method", result.intent_detection_method)
    table.add_row("Confidence", f"{result.confidence:.2f}")
    table.add_row("Reason", result.reason)
    table.add_row("Layers", ", ".join(enabled_layer_names(result.context_layers)))
    table.add_row(
        "Contract", f"{result.answer_contract.value} ({result.contract_selection_method})"
    )
    if result.contract_chain:
        table.add_row("Chain", " -> ".join(c.value for c in result.contract_chain))
    if result.scope is not None:
        table.add_row("Scope", result.scope.scope_type)
    if result.scope_note:
        table.add_row("Scope note", result.scope_note)
    if result.clarify_message:
        table.add_row("Clarify", result.clarify_message)
    if result.needs_split:
        table.add_row("Split", " | ".join(result.split_options))
    table.add_row("Trace", " -> ".join(s.value for s in result.trace))
    return table


@app.command()
def decide(
    question: str = typer.Argument(..., help="The question to route."),
    thread: Optional[Path] = _thread_option,
    companies: Optional[list[str]] = _companies_option,
    meetings: int = _meetings_option,
    as_json: bool = _json_option,
):
    """Routes a single question and prints the decision."""
    layer = DecisionLayer(
        entity_store=StaticEntityStore(companies or settings.FALLBACK_COMPANIES),
        meeting_store=StaticMeetingCountStore(meetings),
    )
    result = asyncio.run(layer.run(question, _load_thread(thread)))

    if as_json:
        console.print_json(json.dumps(to_jsonable(result)))
    else:
        console.print(_render(result))


@app.command()
def serve(
    host: str = typer.Option(settings.API_HOST, "--host"),
    port: int = typer.Option(settings.API_PORT, "--port"),
):
    """Serves the HTTP API with uvicorn."""
    import uvicorn

    from decision_layer.api.app import create_app

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    app()
