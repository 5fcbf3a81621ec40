import argparse
import asyncio

from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from carl.chatbot.config import load_settings, setup_logging
from carl.chatbot.intent_schema import ChatResponse
from carl.chatbot.pipeline import DEFAULT_USER, ChatPipeline, build_pipeline

console = Console()


def _print_table(resp: ChatResponse):
    data = resp.data
    if data is None or not data.items:
        return

    tbl = Table(show_header=True, header_style="bold")
    if data.type == "courses":
        for col in ["Course", "Grade", "Score"]:
            tbl.add_column(col)
        for c in data.items:
            score = f"{c['score']:.1f}" if c.get("score") is not None else ""
            tbl.add_row(c["name"], c.get("grade") or "N/A", score)
    else:
        for col in ["Assignment", "Course", "Due", "Status"]:
            tbl.add_column(col)
        for i in data.items:
            if data.type == "todo":
                status = "submitted" if i.get("submitted") else "pending"
            else:
                status = i.get("status", "missing")
            tbl.add_row(
                i.get("title") or i.get("name", ""),
                i.get("course_name", ""),
                i.get("due_at") or "",
                status,
            )
    console.print(tbl)


def print_response(resp: ChatResponse, show_table: bool = False):
    if resp.lockedOut:
        console.print(f"[bold red]C.A.R.L.:[/bold red] {resp.message}")
    elif resp.error:
        console.print(f"[yellow]C.A.R.L.: {resp.message}[/yellow]")
    else:
        console.print(f"[bold]C.A.R.L.:[/bold] {resp.message}")
    if show_table:
        _print_table(resp)


async def repl(pipeline: ChatPipeline, user_id: str, show_table: bool):
    while True:
        user = Prompt.ask("You")
        if user.strip().lower() in {"exit", "quit"}:
            break
        if not user.strip():
            continue
        resp = await pipeline.handle(user_id, user)
        print_response(resp, show_table)


async def _run(args):
    settings = load_settings()
    pipeline = await build_pipeline(settings)
    mode = "LLM + keyword" if pipeline.llm_available else "keyword only"
    console.print(f"[dim]Intent detection: {mode}[/dim]")
    try:
        await repl(pipeline, args.user, args.table)
    finally:
        await pipeline.lms.close()
        if pipeline.llm is not None:
            await pipeline.llm.close()


def main():
    parser = argparse.ArgumentParser(description="Chat with C.A.R.L. in the terminal")
    parser.add_argument("--user", default=DEFAULT_USER, help="user id for lockout tracking")
    parser.add_argument("--table", action="store_true", help="also print results as a table")
    args = parser.parse_args()

    setup_logging(load_settings().log_level)

    console.print("[bold]C.A.R.L. - Canvas Assignment Reminder Liaison[/bold]")
    console.print(
        "Try: 'what's due this week?', 'do I have any missing assignments?', "
        "'what are my grades?', 'what's due tomorrow?'"
    )
    console.print("Type 'help' for tips. Type 'exit' to quit.\n")

    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
