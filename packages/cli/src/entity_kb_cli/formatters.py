"""Output formatters for CLI results.

Provides two output formats for ranked candidates:
- table: Aligned columns for operators
- json: Machine-parseable JSON

Plus plain-text renderers for clusters, promotion results and audit history.
"""

import json
from typing import Optional

from entity_kb_contracts import (
    Cluster,
    ClusterInfo,
    PromotionResult,
    SchemaPromotion,
    TypeCandidate,
)


def format_candidates_table(
    candidates: list[TypeCandidate],
    clusters: Optional[list[ClusterInfo]] = None,
) -> str:
    """Format ranked candidates as an aligned table.

    Args:
        candidates: Ranked candidates, best first
        clusters: Optional cluster summaries; adds a clusters column

    Returns:
        Table string
    """
    if not candidates:
        return "No type candidates meet the thresholds."

    by_type = {info.type_name: info for info in clusters or []}

    header = f"{'#':>3}  {'Type':24} {'Score':>8} {'Freq':>6} {'Density':>8} {'Consist':>8}"
    if clusters is not None:
        header += f" {'Clusters':>9}"

    lines = [header, "-" * len(header)]
    for rank, c in enumerate(candidates, 1):
        line = (
            f"{rank:>3}  {c.type_name[:24]:24} {c.score:>8.2f} {c.frequency:>6} "
            f"{c.density:>8.2f} {c.consistency:>8.2f}"
        )
        if clusters is not None:
            info = by_type.get(c.type_name)
            line += f" {info.cluster_count if info else 0:>9}"
        lines.append(line)

    return "\n".join(lines)


def format_candidate_json(candidate: TypeCandidate) -> dict:
    """Format a single candidate as JSON-serializable dict."""
    return {
        "type": candidate.type_name,
        "score": candidate.score,
        "frequency": candidate.frequency,
        "density": candidate.density,
        "consistency": candidate.consistency,
    }


def format_candidates_json(
    candidates: list[TypeCandidate],
    clusters: Optional[list[ClusterInfo]] = None,
) -> str:
    """Format ranked candidates as a JSON string."""
    output: dict = {
        "candidate_count": len(candidates),
        "candidates": [format_candidate_json(c) for c in candidates],
    }
    if clusters is not None:
        output["clusters"] = [
            {"type": info.type_name, "size": info.size, "cluster_count": info.cluster_count}
            for info in clusters
        ]
    return json.dumps(output, indent=2)


def format_clusters(clusters: list[Cluster], min_size: int) -> str:
    """Summarize clusters and the type labels they corroborate."""
    if not clusters:
        return "No entities with embeddings found."

    lines = [f"Found {len(clusters)} clusters:\n"]
    for cluster in clusters:
        marker = "*" if cluster.size >= min_size else " "
        names = ", ".join(m.name for m in cluster.members[:3])
        if cluster.size > 3:
            names += ", ..."
        lines.append(f" {marker} {cluster.type_name[:24]:24} {cluster.size:>5}  ({names})")

    corroborated = sorted({c.type_name for c in clusters if c.size >= min_size})
    lines.append("")
    if corroborated:
        lines.append(f"Types with clusters of at least {min_size}: {', '.join(corroborated)}")
    else:
        lines.append(f"No cluster reaches {min_size} members.")

    return "\n".join(lines)


def format_promotion_result(result: PromotionResult) -> str:
    """Human-readable summary of one promotion attempt."""
    status = "succeeded" if result.success else "FAILED"
    lines = [
        f"Promotion of '{result.type_name}' {status}",
        f"  Stage:              {result.stage.value}",
    ]

    if result.schema_file_path:
        lines.append(f"  Model file:         {result.schema_file_path}")
    if result.table_name:
        lines.append(f"  Table:              {result.table_name}")

    lines.append(f"  Validation errors:  {result.validation_errors}")
    if result.manual_migration_pending:
        lines.append(f"  Ready to migrate:   {result.entities_migrated} (copy skipped)")
    else:
        lines.append(f"  Entities migrated:  {result.entities_migrated}")

    if result.error:
        lines.append(f"  Error:              {result.error}")

    return "\n".join(lines)


def format_history(records: list[SchemaPromotion]) -> str:
    """Format audit records, one line each."""
    if not records:
        return "No promotions recorded."

    lines = []
    for record in records:
        status = "ok" if record.succeeded else "failed"
        line = (
            f"{record.promoted_at:%Y-%m-%d %H:%M:%S}  {record.type_name[:24]:24} "
            f"{status:6} entities={record.entities_affected} "
            f"validation_failures={record.validation_failures}"
        )
        if record.error_message:
            line += f"\n    {record.error_message}"
        lines.append(line)

    return "\n".join(lines)
