"""Tests for panel assembly, configuration loading and the CLI runner."""

import json
from unittest.mock import patch

import pytest

from insights import marketing_analyzer as ma
from insights.lib.errors import ConfigError, DataFetchError, InvalidRangeTokenError
from models.analytics_models import EventName


def _events_by_name(events):
    def fetch(window, names):
        return {name: [e for e in events if e.event_name == name] for name in names}
    return fetch


@pytest.fixture
def no_data():
    """Every fetch succeeds with no rows."""
    with patch.object(ma, "fetch_sessions", return_value=[]), \
            patch.object(ma, "fetch_leads", return_value=[]), \
            patch.object(ma, "fetch_posts", return_value=[]), \
            patch.object(ma, "fetch_events_by_name", side_effect=_events_by_name([])):
        yield


class TestOverviewPanel:
    def test_ok(self, make_session, make_event, make_lead, now):
        sessions = [make_session(device_type="mobile", utm_source="google")]
        events = [
            make_event(EventName.WHATSAPP_REDIRECT, props={"utm_source": "google"}),
            make_event(EventName.PRICING_VIEW),
        ]
        with patch.object(ma, "fetch_sessions", return_value=sessions), \
                patch.object(ma, "fetch_leads", return_value=[make_lead(status="won", deal_value=50)]), \
                patch.object(ma, "fetch_events_by_name", side_effect=_events_by_name(events)) as fetch:
            panel = ma.build_overview_panel("30d", now)

        assert panel["panel"] == "overview"
        assert panel["status"] == "ok"
        assert panel["error"] is None
        data = panel["data"]
        assert data["range"] == "30d"
        assert data["kpis"]["whatsapp_leads"] == 1
        assert data["kpis"]["pricing_wa_conversion"] == 100.0
        assert data["kpis"]["revenue"] == 50
        assert data["traffic"]["total_sessions"] == 1
        assert data["acquisition"]["top_sources"][0]["conversions"] == 1

        window = fetch.call_args[0][0]
        assert window.end == now

    def test_fetch_failure_degrades_to_zero_state(self, now):
        error = DataFetchError("timeout", source="analytics_sessions")
        with patch.object(ma, "fetch_sessions", side_effect=error), \
                patch.object(ma, "fetch_leads", return_value=[]), \
                patch.object(ma, "fetch_events_by_name", side_effect=_events_by_name([])):
            panel = ma.build_overview_panel("7d", now)

        assert panel["status"] == "degraded"
        assert "timeout" in panel["error"]
        assert panel["data"]["kpis"]["sessions"] == 0
        assert panel["data"]["traffic"]["total_sessions"] == 0

    def test_missing_credentials_degrade(self, now):
        with patch.object(ma, "fetch_sessions", side_effect=ConfigError("SUPABASE_URL missing")), \
                patch.object(ma, "fetch_leads", return_value=[]), \
                patch.object(ma, "fetch_events_by_name", side_effect=_events_by_name([])):
            panel = ma.build_overview_panel("7d", now)
        assert panel["status"] == "degraded"

    def test_failed_leads_keep_traffic_and_acquisition(self, make_session, now):
        sessions = [make_session(device_type="mobile", utm_source="google") for _ in range(3)]
        with patch.object(ma, "fetch_sessions", return_value=sessions), \
                patch.object(ma, "fetch_leads", side_effect=DataFetchError("timeout", source="leads")), \
                patch.object(ma, "fetch_events_by_name", side_effect=_events_by_name([])):
            panel = ma.build_overview_panel("7d", now)

        assert panel["status"] == "degraded"
        assert panel["failed_inputs"] == ["leads"]
        assert panel["degraded_sections"] == ["kpis"]
        assert panel["error"].startswith("leads: ")
        data = panel["data"]
        assert data["traffic"]["total_sessions"] == 3
        assert data["acquisition"]["top_sources"][0]["sessions"] == 3
        assert data["kpis"]["sessions"] == 3
        assert data["kpis"]["close_rate"] == 0

    def test_ok_panel_reports_no_failed_inputs(self, no_data, now):
        panel = ma.build_overview_panel("7d", now)
        assert panel["failed_inputs"] == []
        assert panel["degraded_sections"] == []

    def test_invalid_range(self, now):
        with pytest.raises(InvalidRangeTokenError):
            ma.build_overview_panel("2w", now)


class TestOtherPanels:
    def test_funnel_uses_fixed_window(self, no_data, now):
        panel = ma.build_funnel_panel(now)
        assert panel["status"] == "ok"
        assert panel["data"]["window"]["end"] == now.isoformat()
        assert len(panel["data"]["steps"]) == 3

    def test_blog_passes_post_titles(self, make_event, now):
        from models.analytics_models import Post

        events = [make_event(EventName.BLOG_READ, props={"post_slug": "launch"})]
        posts = [Post(id="p1", slug="launch", title="We Launched")]
        with patch.object(ma, "fetch_events_by_name", side_effect=_events_by_name(events)), \
                patch.object(ma, "fetch_posts", return_value=posts):
            panel = ma.build_blog_panel(now)
        assert panel["data"]["top_posts"][0]["title"] == "We Launched"

    def test_pipeline_timeframe(self, no_data, now):
        panel = ma.build_pipeline_panel("90d", now)
        assert panel["data"]["timeframe"] == "90d"
        assert panel["data"]["stages"]["won"] == 0

    def test_pipeline_rejects_dashboard_token(self, no_data, now):
        with pytest.raises(InvalidRangeTokenError):
            ma.build_pipeline_panel("7d", now)

    def test_whatsapp_includes_reply_times(self, make_lead, now):
        leads = [make_lead(reply_time_minutes=12)]
        with patch.object(ma, "fetch_leads", return_value=leads), \
                patch.object(ma, "fetch_events_by_name", side_effect=_events_by_name([])):
            panel = ma.build_whatsapp_panel(now)
        assert panel["data"]["reply_times"]["under_15_min"] == 1
        assert panel["data"]["total_leads"] == 0

    def test_whatsapp_failed_redirects_keep_reply_times(self, make_lead, now):
        leads = [make_lead(reply_time_minutes=12), make_lead(reply_time_minutes=40)]
        with patch.object(ma, "fetch_leads", return_value=leads), \
                patch.object(ma, "fetch_events_by_name", side_effect=DataFetchError("down", source="analytics_events")):
            panel = ma.build_whatsapp_panel(now)

        assert panel["status"] == "degraded"
        assert panel["failed_inputs"] == ["events"]
        assert "reply_times" not in panel["degraded_sections"]
        assert "leads_by_source" in panel["degraded_sections"]
        assert panel["data"]["reply_times"]["sample_size"] == 2
        assert panel["data"]["total_leads"] == 0

    def test_config_changes_window(self, no_data, now):
        config = dict(ma.DEFAULT_CONFIG, funnel_window_days=14)
        panel = ma.build_funnel_panel(now, config)
        start = panel["data"]["window"]["start"]
        assert start.startswith("2024-06-01")


class TestBuildDashboard:
    def test_panels_fail_independently(self, make_lead, now):
        with patch.object(ma, "fetch_sessions", return_value=[]), \
                patch.object(ma, "fetch_leads", return_value=[make_lead(status="won", deal_value=10)]), \
                patch.object(ma, "fetch_posts", return_value=[]), \
                patch.object(ma, "fetch_events_by_name", side_effect=DataFetchError("down")):
            panels = ma.build_dashboard("7d", "30d", now)

        assert list(panels) == ["overview", "funnel", "blog", "pipeline", "whatsapp"]
        assert panels["pipeline"]["status"] == "ok"
        assert panels["pipeline"]["data"]["stages"]["won"] == 1
        for name in ("overview", "funnel", "blog", "whatsapp"):
            assert panels[name]["status"] == "degraded"

    def test_tokens_validated_before_fetching(self, now):
        with patch.object(ma, "fetch_sessions") as fetch:
            with pytest.raises(InvalidRangeTokenError):
                ma.build_dashboard("7d", "today", now)
        fetch.assert_not_called()


class TestLoadConfig:
    def test_defaults(self):
        config = ma.load_config()
        assert config == ma.DEFAULT_CONFIG
        assert config is not ma.DEFAULT_CONFIG

    def test_overrides(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"top_sources_limit": 10}))
        config = ma.load_config(str(path))
        assert config["top_sources_limit"] == 10
        assert config["blog_window_days"] == 30

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError) as exc:
            ma.load_config(str(tmp_path / "nope.json"))
        assert exc.value.code == "CONFIG_ERROR"

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigError):
            ma.load_config(str(path))

    def test_unknown_keys(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"top_sources": 3}))
        with pytest.raises(ConfigError, match="top_sources"):
            ma.load_config(str(path))

    @pytest.mark.parametrize("value", ["7", 0, -3, 2.5, True, None])
    def test_rejects_non_positive_int_values(self, tmp_path, value):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"funnel_window_days": value}))
        with pytest.raises(ConfigError, match="funnel_window_days") as exc:
            ma.load_config(str(path))
        assert exc.value.code == "CONFIG_ERROR"


class TestRunner:
    def test_writes_output(self, no_data, tmp_path):
        output = tmp_path / "out" / "metrics.json"
        results = ma.run_marketing_analysis("today", "all", output_path=output)

        saved = json.loads(output.read_text(encoding="utf-8"))
        assert saved["range"] == "today"
        assert saved["timeframe"] == "all"
        assert set(saved["panels"]) == {"overview", "funnel", "blog", "pipeline", "whatsapp"}
        assert saved["degraded_panels"] == []
        assert results["config_used"] == ma.DEFAULT_CONFIG

    def test_sync_inserts_snapshot(self, no_data, tmp_path):
        with patch("insights.lib.supabase_client.store_snapshot", return_value=True) as store:
            ma.run_marketing_analysis(output_path=tmp_path / "m.json", sync=True)
        source, payload = store.call_args[0]
        assert source == "marketing"
        assert "panels" in payload

    def test_main_success(self, no_data, tmp_path, capsys):
        output = tmp_path / "m.json"
        assert ma.main(["--range", "30d", "--output", str(output)]) == 0
        assert output.exists()
        assert "5 panels built, 0 degraded" in capsys.readouterr().out

    def test_main_bad_config(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"bogus": 1}))
        assert ma.main(["--config", str(path), "--output", str(tmp_path / "m.json")]) == 2

    def test_main_string_config_value(self, no_data, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"funnel_window_days": "7"}))
        output = tmp_path / "m.json"
        assert ma.main(["--config", str(path), "--output", str(output)]) == 2
        assert not output.exists()

    def test_main_all_degraded(self, tmp_path):
        error = DataFetchError("down")
        with patch.object(ma, "fetch_sessions", side_effect=error), \
                patch.object(ma, "fetch_leads", side_effect=error), \
                patch.object(ma, "fetch_posts", return_value=[]), \
                patch.object(ma, "fetch_events_by_name", side_effect=error):
            assert ma.main(["--output", str(tmp_path / "m.json")]) == 1

    def test_main_rejects_unknown_range(self):
        with pytest.raises(SystemExit):
            ma.main(["--range", "2w"])
