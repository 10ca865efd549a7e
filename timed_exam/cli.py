from __future__ import annotations

import argparse
import asyncio
import logging
import shlex
import sys
import threading
from typing import Optional, Protocol, TextIO

from .errors import TimedExamError, ValidationError
from .index import setup_logging
from .services.link_store import LinkStore, get_link_store
from .session.page import SessionState, TestSessionPage
from .session.rendering import DocumentRenderer, default_renderer
from .session.timer import CountdownTimer
from .utils.files import load_upload, validate_answer_file
from .utils.links import extract_test_id

logger = logging.getLogger(__name__)


class LineReader(Protocol):
    async def readline(self) -> Optional[str]:
        ...


class ConsoleReader:
    """
    Feeds stdin lines to the event loop from a background thread.

    A single reader serves every prompt of a session, so a pending read that
    gets cancelled never swallows the next line. Returns None at end of input.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdin
        self._queue: Optional[asyncio.Queue] = None
        self._eof = False

    def _start(self) -> None:
        loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()

        def pump():
            for line in self.stream:
                loop.call_soon_threadsafe(self._queue.put_nowait, line.rstrip("\n"))
            loop.call_soon_threadsafe(self._queue.put_nowait, None)

        threading.Thread(target=pump, name="console-reader", daemon=True).start()

    async def readline(self) -> Optional[str]:
        if self._eof:
            return None
        if self._queue is None:
            self._start()
        line = await self._queue.get()
        if line is None:
            self._eof = True
        return line


def _print_tick(out: TextIO):
    def on_tick(timer: CountdownTimer) -> None:
        warning = "  Time running out!" if timer.is_warning else ""
        out.write(f"\rTime Remaining: {timer.display()}{warning}   ")
        out.flush()

    return on_tick


async def _wait_for_end(page: TestSessionPage, reader: LineReader, out: TextIO) -> None:
    """Run the countdown while listening for an "end" command."""
    run_task = asyncio.ensure_future(page.run(on_tick=_print_tick(out)))
    read_task: Optional[asyncio.Future] = None
    input_open = True

    while not run_task.done():
        if input_open and read_task is None:
            read_task = asyncio.ensure_future(reader.readline())
        waiting = {run_task} | ({read_task} if read_task else set())
        done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
        if read_task is None or read_task not in done:
            continue

        command = read_task.result()
        read_task = None
        if command is None:
            input_open = False
            continue
        if command.strip().lower() != "end":
            print("\nType 'end' to finish the test early.", file=out)
            continue

        print("\nAre you sure you want to end this test? [y/N]", file=out)
        answer = await reader.readline()
        if answer is not None and answer.strip().lower() in {"y", "yes"}:
            page.end_test()
            await run_task

    if read_task is not None:
        read_task.cancel()
    run_task.result()


async def _collect_and_submit(
    page: TestSessionPage, reader: LineReader, out: TextIO, submitted_by: str | None
) -> int:
    while page.state is SessionState.ENDED:
        print(
            "Answer files to submit (space-separated paths; an empty line resubmits "
            "the current selection, 'quit' to leave):",
            file=out,
        )
        line = await reader.readline()
        if line is None or line.strip().lower() == "quit":
            print("No answers were submitted.", file=out)
            return 1

        try:
            paths = shlex.split(line)
        except ValueError as e:
            print(f"Could not read file list: {e}", file=out)
            continue
        if paths:
            accepted = []
            for path in paths:
                try:
                    upload = load_upload(path)
                    validate_answer_file(upload)
                except ValidationError as e:
                    print(f"Skipped: {e.message}", file=out)
                    continue
                accepted.append(upload)
            if not accepted:
                print("None of those files can be submitted.", file=out)
                continue
            # typed paths replace whatever was selected before a failed attempt
            page.uploader.replace_files(accepted)

        print(f"{len(page.uploader.files)} file(s) ready to submit. Submitting...", file=out)
        try:
            receipt = await page.submit(submitted_by=submitted_by)
        except TimedExamError as e:
            print(f"Submission failed: {e.message}", file=out)
            continue
        print(
            f"Thank you! {len(receipt.answers)} answer file(s) submitted "
            f"(submission {receipt.submission.id}).",
            file=out,
        )
    return 0


async def take_test(
    link_store: LinkStore,
    link_or_id: str,
    reader: LineReader,
    renderer: DocumentRenderer | None = None,
    submitted_by: str | None = None,
    out: TextIO | None = None,
) -> int:
    out = out or sys.stdout
    page = TestSessionPage(extract_test_id(link_or_id), link_store, renderer=renderer)

    if await page.load() is SessionState.ERROR:
        print(f"Test Error: {page.error}", file=out)
        return 1

    print(f"{page.test.file_name}", file=out)
    print(f"Time allowed: {page.test.duration_minutes} minutes. Type 'end' to finish early.", file=out)
    await _wait_for_end(page, reader, out)
    print("\nTest ended. Please submit your answers now.", file=out)
    return await _collect_and_submit(page, reader, out, submitted_by)


async def create_test(link_store: LinkStore, pdf_path: str, duration: int, created_by: str | None) -> int:
    try:
        document = load_upload(pdf_path)
        record = await link_store.create_test(document, duration, created_by=created_by)
    except TimedExamError as e:
        print(f"Error: {e.message}")
        return 1
    print(f"Test created: {record.file_name} ({record.duration_minutes} minutes)")
    print(f"Link: {link_store.link_for(record.id)}")
    print(f"Valid until: {record.expires_at.isoformat()}")
    return 0


async def show_test(link_store: LinkStore, link_or_id: str) -> int:
    try:
        record = await link_store.get_test(extract_test_id(link_or_id))
    except TimedExamError as e:
        print(f"Error: {e.message}")
        return 1
    if record is None:
        print("Test not found or has expired")
        return 1
    print(f"{record.file_name}: {record.duration_minutes} minutes")
    print(f"Link: {link_store.link_for(record.id)}")
    print(f"Created: {record.created_at.isoformat()}")
    print(f"Valid until: {record.expires_at.isoformat()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="timed-exam", description="Timed PDF exams behind share links")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="create a test from a PDF and print its link")
    create.add_argument("pdf")
    create.add_argument("--duration", type=int, default=60, help="minutes (5-180)")
    create.add_argument("--created-by")

    show = sub.add_parser("show", help="show a test by link or id")
    show.add_argument("link")

    take = sub.add_parser("take", help="take a test in the terminal")
    take.add_argument("link")
    take.add_argument("--submitted-by")

    serve = sub.add_parser("serve", help="run the web service")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("timed_exam.entrypoint:app", host=args.host, port=args.port)
        return 0

    link_store = get_link_store()
    if args.command == "create":
        return asyncio.run(create_test(link_store, args.pdf, args.duration, args.created_by))
    if args.command == "show":
        return asyncio.run(show_test(link_store, args.link))
    renderer = default_renderer()
    try:
        return asyncio.run(
            take_test(
                link_store,
                args.link,
                ConsoleReader(),
                renderer=renderer,
                submitted_by=args.submitted_by,
            )
        )
    finally:
        renderer.cleanup()


if __name__ == "__main__":
    sys.exit(main())
