"""Tests for the YAML badge catalog."""

from __future__ import annotations

import pytest
from conftest import make_entry

from jvala.domains.flares.domain_logic.badges import (
    BadgeCatalogError,
    BadgeContext,
    count_detail_fields,
    default_catalog,
    evaluate_badges,
    load_badge_catalog,
)


class TestPackagedCatalog:
    def test_loads(self):
        catalog = default_catalog()
        assert len(catalog) == 27
        assert catalog[0].id == "first_log"

    def test_ids_unique(self):
        ids = [b.id for b in default_catalog()]
        assert len(ids) == len(set(ids))

    def test_every_metric_is_known(self):
        context = BadgeContext(current_streak=0, longest_streak=0, total_logs=0)
        for badge in default_catalog():
            assert context.metric(badge.metric) == 0

    def test_streak_thresholds(self):
        thresholds = [b.threshold for b in default_catalog() if b.metric == "current_streak"]
        assert thresholds == [3, 7, 14, 21, 30, 60, 90, 180, 365]


class TestLoadErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(BadgeCatalogError, match="Cannot read"):
            load_badge_catalog(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("badges: [unclosed")
        with pytest.raises(BadgeCatalogError, match="Invalid YAML"):
            load_badge_catalog(path)

    def test_missing_threshold(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("badges:\n  - {id: a, metric: total_logs}\n")
        with pytest.raises(BadgeCatalogError, match="Malformed"):
            load_badge_catalog(path)

    def test_duplicate_id(self, tmp_path):
        path = tmp_path / "dup.yaml"
        path.write_text(
            "badges:\n"
            "  - {id: a, metric: total_logs, threshold: 1}\n"
            "  - {id: a, metric: total_logs, threshold: 2}\n"
        )
        with pytest.raises(BadgeCatalogError, match="Duplicate"):
            load_badge_catalog(path)


class TestEvaluate:
    def test_catalog_order_and_earned_skipped(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text(
            "badges:\n"
            "  - {id: one, metric: total_logs, threshold: 1}\n"
            "  - {id: two, metric: total_logs, threshold: 2}\n"
            "  - {id: many, metric: total_logs, threshold: 100}\n"
        )
        catalog = load_badge_catalog(path)
        context = BadgeContext(current_streak=1, longest_streak=1, total_logs=2)
        assert evaluate_badges(context, catalog=catalog) == ["one", "two"]
        assert evaluate_badges(context, ["one"], catalog) == ["two"]

    def test_unknown_metric_raises(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("badges:\n  - {id: x, metric: moon_phase, threshold: 1}\n")
        context = BadgeContext(current_streak=1, longest_streak=1, total_logs=1)
        with pytest.raises(BadgeCatalogError, match="Unknown badge metric"):
            evaluate_badges(context, catalog=load_badge_catalog(path))

    def test_count_detail_fields(self):
        assert count_detail_fields(None) == 0
        assert count_detail_fields(make_entry()) == 0
        entry = make_entry(severity="moderate", triggers=["stress"], medications=["ibuprofen"])
        assert count_detail_fields(entry) == 3
