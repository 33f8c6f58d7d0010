"""
Tycoon Q&A - Ask From The Command Line
=======================================
Sends one question through the pipeline and prints the answer.

Without ``--url`` the engine runs in-process and the retrieved records
are listed (add ``--show-context`` to print the exact prompt context).
With ``--url`` the question goes to a running server via ``ask_question``.

Run:
    python -m tycoon.scripts.ask "What is the speed of the Spitfire?"
    python -m tycoon.scripts.ask "list all planes" --show-context
    python -m tycoon.scripts.ask "tell me about the P-51" --url http://localhost:8000
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ask", description="Ask the War Tycoon knowledge base a question.")
    parser.add_argument("question", help="The question to ask.")
    parser.add_argument("--url", default=None, help="Query a running server instead of the in-process engine.")
    parser.add_argument("--show-context", action="store_true", default=False, help="Print the formatted context sent to the LLM.")
    return parser.parse_args(argv)


async def _ask_remote(question: str, url: str) -> int:
    from tycoon.src.client import AskQuestionError, ask_question

    try:
        answer = await ask_question(question, base_url=url)
    except AskQuestionError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1
    print(answer)
    return 0


async def _ask_local(question: str, show_context: bool) -> int:
    from tycoon.config.settings import settings
    from tycoon.src.main import build_engine

    engine = build_engine(settings)
    result = await engine.answer_with_context(question)

    print("=" * 60)
    print(f"Query: {question}")
    print("=" * 60)
    for i, record in enumerate(result.records, 1):
        score = "N/A" if record.score is None else f"{record.score:.4f}"
        origin = "fetched" if record.fetched else "semantic"
        print(f"  [{i}] {record.id}  score={score}  ({origin})")
    if show_context:
        print("-" * 60)
        print(result.context)
    print("-" * 60)
    print(result.answer)
    return 0


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    if args.url:
        code = asyncio.run(_ask_remote(args.question, args.url))
    else:
        code = asyncio.run(_ask_local(args.question, args.show_context))
    sys.exit(code)


if __name__ == "__main__":
    main()
