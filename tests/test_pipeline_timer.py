# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for PipelineTimer."""

from __future__ import annotations

import pytest

from postmedia.pipeline_timer import PipelineTimer


class TestPipelineTimer:
    def test_stage_tracking(self):
        timer = PipelineTimer()
        timer.stage("fetch")
        timer.stage("extract")
        timer.stage("browser")
        timer.finalize()

        stages = timer.elapsed_per_stage()
        assert list(stages.keys()) == ["fetch", "extract", "browser"]
        assert all(isinstance(v, float) for v in stages.values())

    def test_current_stage(self):
        timer = PipelineTimer()
        assert timer.current_stage is None
        timer.stage("fetch")
        assert timer.current_stage == "fetch"
        timer.finalize()
        assert timer.current_stage is None

    def test_repeated_stage_accumulates(self):
        timer = PipelineTimer()
        timer.stage("extract")
        timer.stage("browser")
        timer.stage("extract")
        timer.finalize()
        assert list(timer.elapsed_per_stage()) == ["extract", "browser"]

    def test_timeout_report(self):
        timer = PipelineTimer()
        timer.stage("fetch")
        timer.stage("browser")
        report = timer.timeout_report()
        assert report["timed_out_at"] == "browser"
        assert set(report["stages"]) == {"fetch", "browser"}
        assert isinstance(report["total_ms"], float)
        assert "settle" in report["hint"]

    @pytest.mark.parametrize("stage", ["fetch", "extract", "browser"])
    def test_resolver_stages_have_specific_hints(self, stage):
        timer = PipelineTimer()
        timer.stage(stage)
        assert not timer.timeout_report()["hint"].startswith("Timed out during")

    def test_unknown_stage_gets_generic_hint(self):
        timer = PipelineTimer()
        timer.stage("mux")
        assert timer.timeout_report()["hint"] == "Timed out during 'mux' stage."

    def test_timeout_report_no_stages(self):
        report = PipelineTimer().timeout_report()
        assert report["timed_out_at"] == "unknown"
        assert report["stages"] == {}
        assert "unknown" in report["hint"]
