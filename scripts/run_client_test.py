#!/usr/bin/env python3
"""API client integration test for the caregiver questionnaire server.

Acts as a pure HTTP client against a live server and walks every published
questionnaire with random valid answers, in two modes:

  - ``user``: answers carry ``X-User-ID``, the server opens a session
  - ``guest``: answers carry the guest buffer blob; when the walk ends the
    blob is synced to a fresh user id with ``POST /guest/sync``

Each run checks that the walk terminates, that scored questionnaires end
with a score in 0-100, and that the session listing agrees with the walk.

Usage::

    # Install deps (first time only)
    uv pip install httpx rich

    # Quick smoke test (1 run per questionnaire and mode)
    uv run python scripts/run_client_test.py -n 1 -v

    # Only WHO-5, guest mode, full JSON output
    uv run python scripts/run_client_test.py -q who-5 --mode guest -vv

    # Reproducible run
    uv run python scripts/run_client_test.py --seed 42
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import random
import sys
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import httpx
from rich.console import Console
from rich.table import Table

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

API_PREFIX = "/api/v1"
MODES = ["user", "guest"]

# Pool of random Spanish free-text answers
FREE_TEXT_POOL = [
    "Ana",
    "Mamá",
    "Papá",
    "Mi abuela Rosa",
    "Luis",
    "Mi pareja",
]


# ---------------------------------------------------------------------------
# RunResult: outcome of one walk
# ---------------------------------------------------------------------------

@dataclass
class RunResult:
    questionnaire_id: str
    mode: str
    run_index: int
    steps: int = 0
    completed: bool = False
    score: float | None = None
    session_id: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.completed and not self.errors


# ---------------------------------------------------------------------------
# APIClient: thin httpx wrapper with X-User-ID header
# ---------------------------------------------------------------------------

class APIClient:
    """Async HTTP client for the caregiver questionnaire API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        proxy_secret: str | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._proxy_secret = proxy_secret
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> APIClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()

    async def health_check(self) -> bool:
        """Check server health. Returns True if server and database are up."""
        try:
            resp = await self._client.get("/health")  # type: ignore[union-attr]
            return resp.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False

    async def list_questionnaires(self) -> list[dict]:
        return await self._get("/questionnaires", user_id=None)

    async def get_step(self, questionnaire_id: str, user_id: str | None) -> dict:
        return await self._get(f"/questionnaires/{questionnaire_id}/step", user_id)

    async def submit_answer(
        self,
        questionnaire_id: str,
        user_id: str | None,
        body: dict[str, Any],
    ) -> dict:
        return await self._post(
            f"/questionnaires/{questionnaire_id}/answers", user_id, body,
        )

    async def sync_guest(self, user_id: str, progress: dict) -> dict:
        return await self._post("/guest/sync", user_id, progress)

    async def list_sessions(self, user_id: str, questionnaire_id: str) -> list[dict]:
        return await self._get(
            f"/sessions?questionnaire_id={questionnaire_id}", user_id,
        )

    def _headers(self, user_id: str | None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if user_id is not None:
            headers["X-User-ID"] = user_id
            if self._proxy_secret:
                headers["X-Proxy-Secret"] = self._proxy_secret
        return headers

    async def _get(self, path: str, user_id: str | None) -> Any:
        resp = await self._client.get(  # type: ignore[union-attr]
            API_PREFIX + path, headers=self._headers(user_id),
        )
        if resp.status_code != 200:
            raise RuntimeError(f"GET {path} -> {resp.status_code}: {resp.text[:200]}")
        return resp.json()

    async def _post(self, path: str, user_id: str | None, json: Any) -> Any:
        resp = await self._client.post(  # type: ignore[union-attr]
            API_PREFIX + path, headers=self._headers(user_id), json=json,
        )
        if resp.status_code != 200:
            raise RuntimeError(f"POST {path} -> {resp.status_code}: {resp.text[:200]}")
        return resp.json()


# ---------------------------------------------------------------------------
# AnswerGenerator: random valid answers per response type
# ---------------------------------------------------------------------------

class AnswerGenerator:

    def __init__(self, rng: random.Random):
        self._rng = rng

    def answer(self, question: dict) -> dict[str, Any]:
        """Build the answer body fields for one question payload."""
        response_type = question["response_type"]
        option_ids = [o["id"] for o in question.get("options", [])]

        if response_type == "free_text":
            return {"free_text": self._rng.choice(FREE_TEXT_POOL)}
        if response_type == "multi_choice":
            k = self._rng.randint(1, len(option_ids))
            return {"option_ids": self._rng.sample(option_ids, k)}
        return {"option_ids": [self._rng.choice(option_ids)]}


# ---------------------------------------------------------------------------
# RichPrinter: verbosity-aware output
# ---------------------------------------------------------------------------

class RichPrinter:

    def __init__(self, verbosity: int = 0):
        self.verbosity = verbosity
        self.console = Console()

    def run_header(self, num: int, total: int, label: str) -> None:
        self.console.print(f"\n[bold][{num}/{total}][/] {label}")

    def question_answer(self, question: dict, answer: dict) -> None:
        if self.verbosity < 1:
            return
        self.console.print(
            f"    [dim]Q:[/] {question['text']} ({question['question_id']}) "
            f"[{question['response_type']}]"
        )
        self.console.print(f"    [dim]A:[/] {answer}")

    def json_payload(self, label: str, data: Any) -> None:
        if self.verbosity < 2:
            return
        formatted = json.dumps(data, ensure_ascii=False, indent=2)
        self.console.print(f"    [dim]{label}:[/]")
        self.console.print(f"    {formatted}")

    def result_line(self, result: RunResult) -> None:
        if result.passed:
            status = "[green]PASS[/]"
        elif result.errors:
            status = "[red]FAIL[/]"
        else:
            status = "[yellow]INCOMPLETE[/]"
        score = f"score={result.score:g}" if result.score is not None else "no score"
        self.console.print(f"  → {result.steps} steps, {score}: {status}")
        for err in result.errors:
            self.console.print(f"    [red]ERROR[/] {err}")


# ---------------------------------------------------------------------------
# WalkRunner: drives one questionnaire to completion
# ---------------------------------------------------------------------------

class WalkRunner:

    def __init__(
        self,
        client: APIClient,
        answers: AnswerGenerator,
        printer: RichPrinter,
        max_steps: int = 50,
    ):
        self._client = client
        self._answers = answers
        self._printer = printer
        self._max_steps = max_steps

    async def run(self, questionnaire: dict, mode: str, run_index: int) -> RunResult:
        result = RunResult(
            questionnaire_id=questionnaire["id"], mode=mode, run_index=run_index,
        )
        user_id = f"client-test-{uuid.uuid4().hex[:12]}"
        walk_user = user_id if mode == "user" else None
        guest_progress: dict | None = None

        try:
            step = await self._client.get_step(questionnaire["id"], walk_user)
            while step["type"] == "question":
                if result.steps >= self._max_steps:
                    result.errors.append(f"No completion after {self._max_steps} steps")
                    return result
                result.steps += 1

                question = step["question"]
                answer = self._answers.answer(question)
                self._printer.question_answer(question, answer)

                body = {"question_id": question["question_id"], **answer}
                if guest_progress is not None:
                    body["guest_progress"] = guest_progress
                resp = await self._client.submit_answer(questionnaire["id"], walk_user, body)
                self._printer.json_payload("Response", resp)

                step = resp["step"]
                guest_progress = resp.get("guest_progress")

            result.completed = True
            if step.get("score") is not None:
                result.score = step["score"]["final_score"]

            if mode == "guest":
                if guest_progress is None:
                    result.errors.append("Guest walk returned no buffer")
                    return result
                synced = await self._client.sync_guest(user_id, guest_progress)
                self._printer.json_payload("Sync", synced)
                if not synced["synced"]:
                    result.errors.append("Sync reported nothing to sync")

            self._check_session(result, await self._client.list_sessions(
                user_id, questionnaire["id"],
            ), questionnaire)
        except (RuntimeError, httpx.HTTPError, KeyError) as exc:
            result.errors.append(str(exc))
        return result

    @staticmethod
    def _check_session(result: RunResult, sessions: list[dict], questionnaire: dict) -> None:
        if len(sessions) != 1:
            result.errors.append(f"Expected 1 session, found {len(sessions)}")
            return
        session = sessions[0]
        result.session_id = session["session_id"]
        if session["status"] != "completed":
            result.errors.append(f"Session status is {session['status']!r}")
        if questionnaire["kind"] == "scored":
            if result.score is None:
                result.errors.append("Scored questionnaire ended without a score")
            elif not 0 <= result.score <= 100:
                result.errors.append(f"Score out of range: {result.score}")
            elif session["score"] != result.score:
                result.errors.append(
                    f"Stored score {session['score']} != step score {result.score}"
                )


# ---------------------------------------------------------------------------
# ResultCollector: summary table
# ---------------------------------------------------------------------------

class ResultCollector:

    def __init__(self) -> None:
        self.results: list[RunResult] = []

    def add(self, result: RunResult) -> None:
        self.results.append(result)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.passed)

    def print_summary(self, console: Console) -> None:
        console.print("\n")
        console.rule("[bold]Run Summary")
        console.print()
        passed = len(self.results) - self.failed
        console.print(f"  Total:   {len(self.results)}")
        console.print(f"  [green]Passed:[/]  {passed}")
        console.print(f"  [red]Failed:[/]  {self.failed}")
        console.print()

        table = Table(title="Results by Questionnaire", show_lines=True)
        table.add_column("Questionnaire")
        table.add_column("Mode")
        table.add_column("Runs", justify="right")
        table.add_column("Passed", justify="right")
        table.add_column("Avg steps", justify="right")
        table.add_column("Scores")

        groups: dict[tuple[str, str], list[RunResult]] = {}
        for r in self.results:
            groups.setdefault((r.questionnaire_id, r.mode), []).append(r)
        for (qid, mode), runs in sorted(groups.items()):
            scores = sorted({r.score for r in runs if r.score is not None})
            table.add_row(
                qid,
                mode,
                str(len(runs)),
                str(sum(1 for r in runs if r.passed)),
                f"{sum(r.steps for r in runs) / len(runs):.1f}",
                ", ".join(f"{s:g}" for s in scores) or "-",
            )
        console.print(table)


# ---------------------------------------------------------------------------
# CLI + async main
# ---------------------------------------------------------------------------

def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="API client integration test for the caregiver questionnaire server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--base-url",
        default="http://localhost:8080",
        help="Server base URL (default: http://localhost:8080)",
    )
    parser.add_argument(
        "-n", "--runs",
        type=int, default=3,
        help="Number of random runs per questionnaire and mode (default: 3)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count", default=0,
        help="Increase verbosity (-v for Q&A pairs, -vv for full JSON)",
    )
    parser.add_argument(
        "--seed",
        type=int, default=None,
        help="RNG seed for reproducibility (default: current timestamp)",
    )
    parser.add_argument(
        "-q", "--questionnaire",
        type=str, default=None,
        help="Filter questionnaires (comma-separated ids)",
    )
    parser.add_argument(
        "--mode",
        choices=MODES,
        default=None,
        help="Walk only as identified user or only as guest (default: both)",
    )
    parser.add_argument(
        "--max-steps",
        type=int, default=50,
        help="Safety limit: max steps per walk (default: 50)",
    )
    parser.add_argument(
        "--timeout",
        type=float, default=30.0,
        help="HTTP request timeout in seconds (default: 30)",
    )
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    console = Console()

    # --- Seed ---
    seed = args.seed if args.seed is not None else int(time.time())
    rng = random.Random(seed)
    console.print(f"[dim]RNG seed: {seed}[/]")

    printer = RichPrinter(verbosity=args.verbose)
    collector = ResultCollector()
    modes = [args.mode] if args.mode else MODES

    async with APIClient(
        args.base_url,
        timeout=args.timeout,
        proxy_secret=os.getenv("TRUSTED_PROXY_SECRET"),
    ) as client:
        if not await client.health_check():
            console.print(
                f"[red]Server at {args.base_url} is not reachable. "
                f"Is the server running?[/]"
            )
            sys.exit(1)
        console.print(f"[green]Server health check passed[/] ({args.base_url})")

        # --- Select questionnaires ---
        questionnaires = await client.list_questionnaires()
        if args.questionnaire:
            wanted = {q.strip() for q in args.questionnaire.split(",")}
            unknown = wanted - {q["id"] for q in questionnaires}
            if unknown:
                console.print(f"[red]Not published:[/] {', '.join(sorted(unknown))}")
                sys.exit(1)
            questionnaires = [q for q in questionnaires if q["id"] in wanted]
        if not questionnaires:
            console.print("[red]No published questionnaires to walk.[/]")
            sys.exit(1)

        # --- Run walks ---
        runner = WalkRunner(client, AnswerGenerator(rng), printer, max_steps=args.max_steps)
        total = len(questionnaires) * len(modes) * args.runs
        num = 0
        for questionnaire in questionnaires:
            for mode in modes:
                for run_idx in range(1, args.runs + 1):
                    num += 1
                    printer.run_header(
                        num, total, f"{questionnaire['id']} ({mode}) #{run_idx}",
                    )
                    result = await runner.run(questionnaire, mode, run_idx)
                    printer.result_line(result)
                    collector.add(result)

    # --- Summary ---
    collector.print_summary(console)

    if collector.failed > 0:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
