from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path


def _ensure_backend_on_path() -> None:
    backend_dir = Path(__file__).resolve().parents[1]
    if str(backend_dir) not in sys.path:
        sys.path.insert(0, str(backend_dir))


def _write_markdown(summary, findings, rules, score, out_path: Path) -> None:
    rules_by_id = {r.id: r for r in rules}
    score_text = f"{score.compliance_score:.2f}%" if score.compliance_score is not None else "n/a"
    lines = [
        f"# Compliance Review {summary.account_id}",
        "",
        f"Evaluated at: {summary.evaluated_at.isoformat()}",
        f"Compliance score: {score_text}",
        "",
        "## Totals",
        f"- compliant: {summary.compliant}",
        f"- non_compliant: {summary.non_compliant}",
        f"- not_applicable: {summary.not_applicable}",
        f"- acknowledged: {summary.acknowledged}",
        "",
        "## Rules",
    ]
    by_rule: dict[str, list] = {}
    for finding in findings:
        by_rule.setdefault(finding.rule_id, []).append(finding)

    for entry in score.rule_breakdown:
        rule = rules_by_id.get(entry.rule_id)
        lines.append("")
        lines.append(f"### {entry.rule_name} ({entry.severity.value})")
        if rule is not None and rule.description:
            lines.append(rule.description)
        lines.append(
            f"- compliant={entry.compliant} non_compliant={entry.non_compliant} "
            f"not_applicable={entry.not_applicable}"
        )
        for finding in by_rule.get(entry.rule_id, []):
            target = finding.resource_id or "account"
            lines.append(f"  - [{finding.status.value}] {target}: {finding.detail}")
    out_path.write_text("\n".join(lines) + "\n")


def run_compliance_evaluation_from_fixtures(
    fixtures_dir: Path,
    *,
    account_id: str,
    profile: str | None = None,
):
    """Evaluate one fixture account against the built-in catalog in a throwaway store."""
    _ensure_backend_on_path()
    from common.compliance_engine.builtins import builtin_profiles, builtin_rules
    from pipelines.data_source import FixturesInventorySource
    from pipelines.evaluation import ComplianceEvaluationPipeline
    from pipelines.rule_catalog import apply_account_profile, register_account_rules
    from pipelines.store import InMemoryComplianceStore

    store = InMemoryComplianceStore(rules=builtin_rules(), profiles=builtin_profiles())
    inventory = FixturesInventorySource(fixtures_root=fixtures_dir)
    register_account_rules(store, account_id, inventory.load_inputs(account_id=account_id).extra_rules)
    if profile:
        matches = [p for p in store.list_profiles() if p.slug == profile or p.id == profile]
        if not matches:
            raise SystemExit(f"Unknown profile '{profile}'.")
        apply_account_profile(store, account_id, matches[0].id)

    pipeline = ComplianceEvaluationPipeline(store, inventory)
    summary = pipeline.evaluate(account_id)
    return summary, store


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Run a compliance evaluation against a fixture inventory and write a report."
    )
    parser.add_argument(
        "--fixtures-dir",
        required=True,
        help="Directory holding one sub-directory per account (each with resources.json).",
    )
    parser.add_argument("--account-id", required=True, help="Account sub-directory to evaluate.")
    parser.add_argument(
        "--out-dir",
        default=None,
        help="Output directory for the report (defaults to the current directory).",
    )
    parser.add_argument(
        "--format",
        choices=("markdown", "json"),
        default="markdown",
        help="Report format (default: markdown).",
    )
    parser.add_argument(
        "--profile",
        default=None,
        help="Apply a built-in profile (slug, e.g. cis-l1) before evaluating.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    _ensure_backend_on_path()
    from common.compliance_engine.overrides import effective_rules
    from pipelines.evaluation import EvaluationError

    fixtures_dir = Path(args.fixtures_dir).resolve()
    output_dir = Path(args.out_dir).resolve() if args.out_dir else Path(".").resolve()
    output_dir.mkdir(parents=True, exist_ok=True)

    try:
        summary, store = run_compliance_evaluation_from_fixtures(
            fixtures_dir, account_id=args.account_id, profile=args.profile
        )
    except EvaluationError as exc:
        raise SystemExit(str(exc)) from exc

    findings = store.list_findings(args.account_id)
    score = store.list_score_history(args.account_id, limit=1)[-1]

    base_name = f"compliance_{args.account_id}_{summary.evaluated_at.strftime('%Y%m%dT%H%M%SZ')}"
    if args.format == "json":
        out_path = output_dir / f"{base_name}.json"
        payload = {
            "summary": summary.model_dump(mode="json"),
            "score": score.model_dump(mode="json"),
            "findings": [f.model_dump(mode="json") for f in findings],
        }
        out_path.write_text(json.dumps(payload, indent=2))
    else:
        out_path = output_dir / f"{base_name}.md"
        rules = effective_rules(store.list_rules(), store.list_overrides(args.account_id), args.account_id)
        _write_markdown(summary, findings, rules, score, out_path)

    print(f"Wrote {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
