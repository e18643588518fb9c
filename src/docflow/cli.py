"""CLI entry point for docflow."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import cast

from docflow import __version__
from docflow.config import DEFAULT_CONFIG_FILE, DocflowConfig, load_config
from docflow.errors import DocflowError
from docflow.storage.database import WorkflowDatabase
from docflow.validation.engine import ValidationEngine
from docflow.validation.report import rule_statistics, summarize_history
from docflow.workflow.agents import AgentRegistry, load_agents
from docflow.workflow.models import Gate, Project
from docflow.workflow.orchestrator import Orchestrator
from docflow.workflow.phases import PHASE_CONFIG, phase_progress


def _load(args: argparse.Namespace) -> DocflowConfig:
    config = load_config(cast(Path, args.config))
    if args.db:
        config.db_path = args.db
    return config


def _open_db(config: DocflowConfig) -> WorkflowDatabase:
    path = Path(config.resolved_db_path())
    path.parent.mkdir(parents=True, exist_ok=True)
    return WorkflowDatabase(str(path))


def _print_project(project: Project) -> None:
    config = PHASE_CONFIG[project.current_phase]
    completed = ", ".join(p.value for p in project.phases_completed) or "none"
    print(f"Project:   {project.name} [{project.id}]")
    print(f"Phase:     {config.name} ({project.current_phase.value})")
    print(f"Progress:  {phase_progress(project.current_phase)}%")
    print(f"Completed: {completed}")
    print(f"Gates:     stack_approved={project.stack_approved}"
          f" dependencies_approved={project.dependencies_approved}")


def _cmd_serve(args: argparse.Namespace) -> None:
    from docflow.server.runner import run_server

    run_server(_load(args))


def _advance(db: WorkflowDatabase, config: DocflowConfig, project_id: str) -> None:
    engine = (
        ValidationEngine(db, disabled_rules=config.disabled_rules)
        if config.validation_enabled
        else None
    )
    orchestrator = Orchestrator(
        db,
        AgentRegistry(load_agents(config.agents)),
        engine,
        agent_timeout=config.agent_timeout_seconds,
    )
    outcome = asyncio.run(orchestrator.advance_phase(project_id))
    if outcome.transition is None:
        print(f"{outcome.project.name} is already complete.")
        return
    t = outcome.transition
    print(f"Advanced {outcome.project.name}: {t.from_phase.value} -> {t.to_phase.value}"
          f" ({len(t.artifacts_generated)} artifacts)")
    if not t.validation_passed:
        print("  Some agents reported failures; see the *-error.md artifacts.")
    if outcome.report_id:
        print(f"  Validation report: {outcome.report_id}")


def _cmd_project(args: argparse.Namespace) -> None:
    config = _load(args)
    db = _open_db(config)
    try:
        if args.project_action == "create":
            project = db.create_project(Project(name=args.name, description=args.description))
            _print_project(project)
        elif args.project_action == "show":
            project = db.get_project(args.project_id)
            if project is None:
                print(f"Error: project not found: {args.project_id}", file=sys.stderr)
                sys.exit(1)
            _print_project(project)
        elif args.project_action == "approve":
            project = db.approve_gate(args.project_id, Gate(args.gate), approved=not args.revoke)
            if project is None:
                print(f"Error: project not found: {args.project_id}", file=sys.stderr)
                sys.exit(1)
            verb = "Revoked" if args.revoke else "Approved"
            print(f"{verb} {args.gate} for {project.name}")
        elif args.project_action == "advance":
            _advance(db, config, args.project_id)
        else:
            print("Usage: docflow project {create,show,approve,advance}", file=sys.stderr)
            sys.exit(1)
    finally:
        db.close()


def _cmd_history(args: argparse.Namespace) -> None:
    db = _open_db(_load(args))
    try:
        transitions = Orchestrator(db, AgentRegistry()).get_history(args.project_id)
    finally:
        db.close()
    if not transitions:
        print("No phase transitions.")
        return
    for t in transitions:
        tokens = f" tokens={t.tokens_used}" if t.tokens_used is not None else ""
        print(f"  {t.transitioned_at}  {t.from_phase.value} -> {t.to_phase.value}"
              f"  ({len(t.artifacts_generated)} artifacts){tokens}")


def _cmd_validate(args: argparse.Namespace) -> None:
    config = _load(args)
    db = _open_db(config)
    try:
        engine = ValidationEngine(db, disabled_rules=config.disabled_rules)
        report = Orchestrator(db, AgentRegistry(), engine).validate_project(args.project_id)
    finally:
        db.close()
    if report is None:
        print("Not enough artifacts to validate (need at least 2).")
        return
    print(f"{report.report_name}: {report.overall_status.value.upper()}"
          f" ({report.passed_rules}/{report.total_rules} passed)")
    for result in report.validation_results:
        mark = "PASS" if result.passed else result.severity.value.upper()
        print(f"  [{mark:7}] {result.rule_id}: {result.message}")
    if report.failed_rules:
        sys.exit(2)


def _cmd_reports(args: argparse.Namespace) -> None:
    config = _load(args)
    db = _open_db(config)
    try:
        limit = args.limit or config.history_limit
        reports = db.list_validation_reports(args.project_id, limit=limit)
    finally:
        db.close()
    if not reports:
        print("No validation reports.")
        return
    summary = summarize_history(reports)
    print(f"Validations: {summary['total_validations']} (trend: {summary['trend']})")
    for r in reports:
        print(f"  [{r.id[:8]}] {r.created_at}  {r.phase:16} {r.overall_status.value:5}"
              f"  {r.passed_rules}/{r.total_rules}")


def _cmd_rules(args: argparse.Namespace) -> None:
    config = _load(args)
    db = _open_db(config)
    try:
        rules = ValidationEngine(db, disabled_rules=config.disabled_rules).get_rules()
    finally:
        db.close()
    stats = rule_statistics(rules)
    print(f"Rules: {stats['enabled']}/{stats['total']} enabled")
    for rule in rules:
        state = "on " if rule.enabled else "off"
        print(f"  [{state}] {rule.id:20} {rule.type.value:18} {rule.severity.value:8} {rule.name}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="docflow",
        description="Phase-gated document generation pipeline with cross-artifact validation",
    )
    _ = parser.add_argument(
        "-V", "--version", action="version", version=f"docflow {__version__}"
    )
    _ = parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    _ = parser.add_argument(
        "--config",
        type=Path,
        default=Path.cwd() / DEFAULT_CONFIG_FILE,
        help=f"Path to config file (default: ./{DEFAULT_CONFIG_FILE})",
    )
    _ = parser.add_argument("--db", default=None, help="Override the database path")
    subparsers = parser.add_subparsers(dest="command")

    # serve subcommand
    _ = subparsers.add_parser("serve", help="Start the HTTP API server")

    # project subcommand
    project_p = subparsers.add_parser("project", help="Project operations")
    project_sub = project_p.add_subparsers(dest="project_action")
    cp = project_sub.add_parser("create", help="Create a project")
    _ = cp.add_argument("name", help="Project name")
    _ = cp.add_argument("--description", default="", help="Project description")
    sp = project_sub.add_parser("show", help="Show project state")
    _ = sp.add_argument("project_id", help="Project ID")
    ap = project_sub.add_parser("approve", help="Approve a phase gate")
    _ = ap.add_argument("project_id", help="Project ID")
    _ = ap.add_argument("gate", choices=[g.value for g in Gate])
    _ = ap.add_argument("--revoke", action="store_true", help="Clear the gate instead")
    adv = project_sub.add_parser("advance", help="Run the current phase's agents and advance")
    _ = adv.add_argument("project_id", help="Project ID")

    # history subcommand
    hp = subparsers.add_parser("history", help="Show phase transitions for a project")
    _ = hp.add_argument("project_id", help="Project ID")

    # validate subcommand
    vp = subparsers.add_parser("validate", help="Run cross-artifact validation for a project")
    _ = vp.add_argument("project_id", help="Project ID")

    # reports subcommand
    rp = subparsers.add_parser("reports", help="List recent validation reports")
    _ = rp.add_argument("project_id", help="Project ID")
    _ = rp.add_argument("--limit", type=int, default=None)

    # rules subcommand
    _ = subparsers.add_parser("rules", help="List validation rules")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    dispatch = {
        "serve": _cmd_serve,
        "project": _cmd_project,
        "history": _cmd_history,
        "validate": _cmd_validate,
        "reports": _cmd_reports,
        "rules": _cmd_rules,
    }
    command = cast(str | None, args.command)
    handler = dispatch.get(command) if command is not None else None
    if handler is None:
        parser.print_help()
        sys.exit(1)
    try:
        handler(args)
    except DocflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
