"""
Accord command line

Usage:
    accord project create "Payments" --hld design/hld.md
    accord record <project_id> --developer alice --module auth --text "..."
    accord consensus <project_id> [--module auth]
    accord adr generate <project_id> --module auth
    accord adr list <project_id>
    accord conflicts analyze <project_id> --module auth
    accord report generate <project_id>
    accord report list <project_id>
    accord predictions <project_id>
    accord search <project_id> "token refresh"

Structured results are printed as JSON on stdout; errors go to stderr with
exit status 1.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from .common.config import AccordConfig, load_config
from .common.embedding_service import EmbeddingService, EmbeddingServiceError
from .common.llm_client import LLMClient
from .common.store import DocumentStore, RecordNotFoundError, StoreLoadError
from .consensus.analyzer import ConsensusAnalyzer
from .ingest.recorder import UnderstandingRecorder
from .narrator import ADRWriter, ConflictAnalyzer, Forecaster, ReportWriter
from .retriever import Searcher

logger = logging.getLogger("accord.cli")


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _read_text(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    return Path(path).expanduser().read_text()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="accord", description="Measure how well a team agrees on its modules")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--store", type=str, default=None, help="Override the document store path")
    commands = parser.add_subparsers(dest="command", required=True)

    project = commands.add_parser("project", help="Manage projects")
    project_commands = project.add_subparsers(dest="project_command", required=True)
    create = project_commands.add_parser("create", help="Create a project")
    create.add_argument("name")
    create.add_argument("--hld", type=str, default=None, help="File with the high-level design")
    create.add_argument("--lld", type=str, default=None, help="File with the low-level design")
    project_commands.add_parser("list", help="List projects")

    record = commands.add_parser("record", help="Record an understanding")
    record.add_argument("project_id")
    record.add_argument("--developer", required=True)
    record.add_argument("--module", required=True)
    record.add_argument("--text", required=True, help="The developer's understanding")
    record.add_argument("--change", default=None, help="Description of the related change")
    record.add_argument("--confidence", type=int, default=None, help="Self-assessed confidence, 1-5")

    consensus = commands.add_parser("consensus", help="Compute consensus for one module or all modules")
    consensus.add_argument("project_id")
    consensus.add_argument("--module", default=None)

    adr = commands.add_parser("adr", help="Generate or list Architecture Decision Records")
    adr_commands = adr.add_subparsers(dest="adr_command", required=True)
    adr_generate = adr_commands.add_parser("generate", help="Generate an ADR for a module")
    adr_generate.add_argument("project_id")
    adr_generate.add_argument("--module", required=True)
    adr_list = adr_commands.add_parser("list", help="List a project's ADRs")
    adr_list.add_argument("project_id")

    conflicts = commands.add_parser("conflicts", help="Analyze or resolve module conflicts")
    conflict_commands = conflicts.add_subparsers(dest="conflicts_command", required=True)
    analyze = conflict_commands.add_parser("analyze", help="Analyze a module's diverging clusters")
    analyze.add_argument("project_id")
    analyze.add_argument("--module", required=True)
    resolve = conflict_commands.add_parser("resolve", help="Mark a conflict analysis resolved")
    resolve.add_argument("analysis_id")
    open_ = conflict_commands.add_parser("list", help="List open conflict analyses")
    open_.add_argument("project_id")

    report = commands.add_parser("report", help="Generate or list Development Intelligence Reports")
    report_commands = report.add_subparsers(dest="report_command", required=True)
    report_generate = report_commands.add_parser("generate", help="Generate a report")
    report_generate.add_argument("project_id")
    report_list = report_commands.add_parser("list", help="List a project's reports, newest first")
    report_list.add_argument("project_id")

    predictions = commands.add_parser("predictions", help="Early warnings on developer drift")
    predictions.add_argument("project_id")

    search = commands.add_parser("search", help="Search understandings and design documents")
    search.add_argument("project_id")
    search.add_argument("query")

    return parser


def _project(args, config: AccordConfig, store: DocumentStore) -> None:
    if args.project_command == "create":
        project = store.create_project(args.name, hld_text=_read_text(args.hld), lld_text=_read_text(args.lld))
        _print_json(project.model_dump(mode="json"))
    else:
        _print_json([p.model_dump(mode="json") for p in store.list_projects()])


def _record(args, config: AccordConfig, store: DocumentStore) -> None:
    recorder = UnderstandingRecorder(store, EmbeddingService.from_config(config.embedding))
    understanding = recorder.record(
        args.project_id,
        developer_name=args.developer,
        module_name=args.module,
        understanding_text=args.text,
        change_description=args.change,
        confidence_score=args.confidence,
    )
    _print_json(understanding.model_dump(mode="json", exclude={"embedding"}))


def _consensus(args, config: AccordConfig, store: DocumentStore) -> None:
    analyzer = ConsensusAnalyzer(store)
    if args.module:
        _print_json(analyzer.analyze_module(args.project_id, args.module).to_dict())
    else:
        _print_json([m.to_dict() for m in analyzer.analyze_project(args.project_id)])


def _adr(args, config: AccordConfig, store: DocumentStore) -> None:
    if args.adr_command == "list":
        store.get_project(args.project_id)
        _print_json([a.model_dump(mode="json") for a in store.list_adrs(args.project_id)])
        return
    writer = ADRWriter(store, LLMClient.from_config(config.llm))
    result = writer.generate(args.project_id, args.module)
    _print_json({
        "adr_id": result.adr_id,
        "adr_number": result.adr_number,
        "title": result.title,
        "status": result.status,
        "consensus_percentage": round(result.consensus_percentage, 1),
        "used_llm": result.used_llm,
        "content": result.content,
    })


def _conflicts(args, config: AccordConfig, store: DocumentStore) -> None:
    analyzer = ConflictAnalyzer(store, LLMClient.from_config(config.llm), context_chars=config.analysis.context_chars)
    if args.conflicts_command == "analyze":
        record = analyzer.analyze(args.project_id, args.module)
    elif args.conflicts_command == "resolve":
        record = analyzer.resolve(args.analysis_id)
    else:
        _print_json([r.model_dump(mode="json") for r in analyzer.open_conflicts(args.project_id)])
        return
    _print_json(record.model_dump(mode="json"))


def _report(args, config: AccordConfig, store: DocumentStore) -> None:
    if args.report_command == "list":
        store.get_project(args.project_id)
        _print_json([r.model_dump(mode="json", exclude={"content"}) for r in store.list_reports(args.project_id)])
        return
    writer = ReportWriter(store, LLMClient.from_config(config.llm), recent_days=config.analysis.recent_days)
    result = writer.generate(args.project_id)
    _print_json({
        "report_id": result.report_id,
        "report_number": result.report_number,
        "summary": result.summary,
        "metadata": result.metadata,
        "used_llm": result.used_llm,
        "content": result.content,
    })


def _predictions(args, config: AccordConfig, store: DocumentStore) -> None:
    forecaster = Forecaster(store, LLMClient.from_config(config.llm), recent_days=config.analysis.recent_days)
    result = forecaster.generate(args.project_id)
    output = result.report.to_dict()
    output["used_llm"] = result.used_llm
    output["narrative"] = result.narrative
    _print_json(output)


def _search(args, config: AccordConfig, store: DocumentStore) -> None:
    searcher = Searcher(
        store,
        EmbeddingService.from_config(config.embedding),
        threshold=config.analysis.search_threshold,
        limit=config.analysis.search_limit,
    )
    _print_json([r.to_dict() for r in searcher.search(args.project_id, args.query)])


HANDLERS = {
    "project": _project,
    "record": _record,
    "consensus": _consensus,
    "adr": _adr,
    "conflicts": _conflicts,
    "report": _report,
    "predictions": _predictions,
    "search": _search,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    if args.store:
        config.store.path = args.store
    try:
        store = DocumentStore(Path(config.store.path))
        HANDLERS[args.command](args, config, store)
    except RecordNotFoundError as e:
        print(f"ERROR: {e.args[0] if e.args else e}", file=sys.stderr)
        return 1
    except (StoreLoadError, ValueError, RuntimeError, EmbeddingServiceError, OSError) as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
