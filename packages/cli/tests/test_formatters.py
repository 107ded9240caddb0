"""Tests for CLI output formatters."""

import json

from entity_kb_contracts import Cluster, ClusterMember

from entity_kb_cli.formatters import (
    format_candidate_json,
    format_candidates_json,
    format_candidates_table,
    format_clusters,
    format_history,
    format_promotion_result,
)


class TestCandidateFormatters:
    def test_table_rows_in_rank_order(self, ranked_candidates):
        output = format_candidates_table(ranked_candidates)
        lines = output.splitlines()

        assert lines[0].split()[:2] == ["#", "Type"]
        assert lines[2].split()[:2] == ["1", "person"]
        assert lines[3].split()[:2] == ["2", "company"]

    def test_table_cluster_column(self, ranked_candidates, cluster_summaries):
        output = format_candidates_table(ranked_candidates, cluster_summaries)
        lines = output.splitlines()

        assert "Clusters" in lines[0]
        assert lines[2].split()[-1] == "3"
        assert lines[3].split()[-1] == "0"

    def test_empty_table(self):
        assert format_candidates_table([]) == "No type candidates meet the thresholds."

    def test_candidate_json(self, ranked_candidates):
        assert format_candidate_json(ranked_candidates[0]) == {
            "type": "person",
            "score": 48.02,
            "frequency": 120,
            "density": 2.5,
            "consistency": 0.9,
        }

    def test_json_omits_clusters_unless_requested(self, ranked_candidates):
        payload = json.loads(format_candidates_json(ranked_candidates))

        assert payload["candidate_count"] == 2
        assert "clusters" not in payload


class TestClusterFormatter:
    def test_marks_corroborating_clusters(self):
        small = Cluster(
            type_name="company",
            members=[ClusterMember(id=1, type_name="company", name="Enron", embedding=[1.0])],
        )

        output = format_clusters([small], min_size=2)

        assert "Found 1 clusters" in output
        assert " * " not in output
        assert "No cluster reaches 2 members." in output

    def test_no_clusters(self):
        assert format_clusters([], min_size=3) == "No entities with embeddings found."


class TestPromotionFormatters:
    def test_success_summary(self, successful_result):
        output = format_promotion_result(successful_result)

        assert output.startswith("Promotion of 'person' succeeded")
        assert "audited" in output
        assert "persons" in output
        assert "Error" not in output

    def test_failure_summary(self, failed_result):
        output = format_promotion_result(failed_result)

        assert "FAILED" in output
        assert "validated" in output
        assert "Error:              data copy failed" in output

    def test_history(self, audit_records):
        lines = format_history(audit_records).splitlines()

        assert lines[0].startswith("2026-03-02 09:30:00  person")
        assert "failed" in lines[0]
        assert lines[1].strip() == "migration failed: alembic exited with code 1"
        assert "ok" in lines[2]

    def test_empty_history(self):
        assert format_history([]) == "No promotions recorded."
