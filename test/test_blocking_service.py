"""
Tests for the blocking rule registry, decisions and replay queue.
"""

import pytest

from consent_engine.plugins.hooks import HOOK_BLOCKING_RULES_LOADED
from consent_engine.schemas.policy import BlockingRule, build_consent_config
from consent_engine.services.blocking_service import BlockingEngine, category_label, extract_resource_url

GA_URL = "https://www.googletagmanager.com/gtag/js?id=G-TEST123"
FB_URL = "https://connect.facebook.net/en_US/fbevents.js"
GA_TAG = f'<script async src="{GA_URL}"></script>'
FB_TAG = f"<script src='{FB_URL}'></script>"


def make_rule(**overrides) -> dict:
    rule = {
        "id": "example",
        "resource_kind": "external_script",
        "pattern": "cdn.example.com",
        "required_category": "analytics",
        "action": "block_until_consent",
    }
    rule.update(overrides)
    return rule


@pytest.fixture
def engine(consent_config, registry):
    return BlockingEngine(consent_config, registry=registry)


@pytest.fixture
def eu_engine(consent_config, registry):
    engine = BlockingEngine(consent_config, registry=registry)
    engine.load_rules_for_region("EU")
    return engine


class TestRuleRegistration:
    def test_register_valid_rule(self, engine):
        assert engine.register_rule(make_rule()) is True
        assert [rule.id for rule in engine.rules] == ["example"]

    def test_duplicate_id_is_rejected_not_overwritten(self, engine):
        engine.register_rule(make_rule(pattern="first.example.com"))

        assert engine.register_rule(make_rule(pattern="second.example.com")) is False
        assert engine.rules[0].pattern == "first.example.com"

    @pytest.mark.parametrize("missing", ["id", "resource_kind", "pattern", "required_category", "action"])
    def test_missing_field_is_rejected(self, engine, missing):
        rule = make_rule()
        del rule[missing]

        assert engine.register_rule(rule) is False
        assert engine.rules == ()

    def test_empty_pattern_is_rejected(self, engine):
        assert engine.register_rule(make_rule(pattern="")) is False

    def test_invalid_kind_or_action_is_rejected(self, engine):
        assert engine.register_rule(make_rule(resource_kind="stylesheet")) is False
        assert engine.register_rule(make_rule(action="delete")) is False

    def test_invalid_regex_is_rejected(self, engine):
        assert engine.register_rule(make_rule(pattern="/tracker(/")) is False

    def test_rules_accessor_is_read_only(self, engine):
        engine.register_rule(make_rule())

        with pytest.raises(AttributeError):
            engine.rules.append(BlockingRule(**make_rule(id="other")))


class TestRegionRules:
    def test_eu_loads_full_catalogue_in_policy_order(self, eu_engine, consent_config):
        assert [rule.id for rule in eu_engine.rules] == list(consent_config.policy_for("EU").blocking_rule_ids)

    def test_ccpa_region_loads_no_rules(self, engine):
        assert engine.load_rules_for_region("US-CA") == 0
        assert engine.rules == ()

    def test_unknown_region_uses_default_policy(self, engine):
        assert engine.load_rules_for_region("ATLANTIS") == 0

    def test_unknown_rule_ids_are_skipped(self, registry):
        config = build_consent_config(
            presets={
                "DEFAULT": {"mode": "default"},
                "EU": {"mode": "gdpr", "countries": ["DE"], "blocking_rule_ids": ["hotjar", "no-such-rule"]},
            }
        )
        engine = BlockingEngine(config, registry=registry)

        assert engine.load_rules_for_region("EU") == 1
        assert [rule.id for rule in engine.rules] == ["hotjar"]

    def test_rules_loaded_action_fires(self, engine, registry):
        events = []
        registry.add_action(HOOK_BLOCKING_RULES_LOADED, events.append)

        engine.load_rules_for_region("BR")

        assert events[0]["region"] == "BR"
        assert "google-analytics-4" in events[0]["rule_ids"]


class TestShouldBlock:
    def test_tracker_blocked_without_consent(self, eu_engine):
        rule = eu_engine.should_block(GA_URL, {"necessary": True, "analytics": False})

        assert rule is not None
        assert rule.id == "google-analytics-4"
        assert rule.required_category == "analytics"

    def test_absent_category_counts_as_denied(self, eu_engine):
        assert eu_engine.should_block(GA_URL, {}).id == "google-analytics-4"
        assert eu_engine.should_block(GA_URL, None).id == "google-analytics-4"

    def test_tracker_allowed_with_consent(self, eu_engine):
        assert eu_engine.should_block(GA_URL, {"analytics": True}) is None

    def test_unmatched_url_is_allowed(self, eu_engine):
        assert eu_engine.should_block("https://example.org/app.js", {}) is None

    def test_empty_url_or_registry_is_allowed(self, engine, eu_engine):
        assert eu_engine.should_block("", {}) is None
        assert engine.should_block(GA_URL, {}) is None

    def test_granted_match_continues_scanning(self, engine):
        engine.register_rule(make_rule(id="stats", pattern="cdn.example.com", required_category="analytics"))
        engine.register_rule(make_rule(id="ads", pattern="cdn.example.com/ads", required_category="marketing"))

        rule = engine.should_block("https://cdn.example.com/ads/pixel.js", {"analytics": True})

        assert rule.id == "ads"

    def test_first_unconsented_match_in_registration_order(self, engine):
        engine.register_rule(make_rule(id="first", pattern="example.com", required_category="analytics"))
        engine.register_rule(make_rule(id="second", pattern="example.com", required_category="marketing"))

        assert engine.should_block("https://example.com/x.js", {}).id == "first"

    def test_necessary_category_is_always_granted(self, engine):
        engine.register_rule(make_rule(required_category="necessary"))

        assert engine.should_block("https://cdn.example.com/core.js", {"necessary": False}) is None

    def test_unknown_category_gates_only_its_rules(self, engine):
        engine.register_rule(make_rule(required_category="social"))

        assert engine.should_block("https://cdn.example.com/share.js", {"analytics": True}).id == "example"
        assert engine.should_block("https://cdn.example.com/share.js", {"social": True}) is None

    def test_delimited_regex_with_flags(self, engine):
        engine.register_rule(make_rule(pattern=r"/facebook\.com\/tr/i", required_category="marketing"))

        assert engine.should_block("https://WWW.FACEBOOK.COM/tr?id=1", {}) is not None
        assert engine.should_block("https://facebook.community/", {}) is None

    def test_plain_pattern_is_literal_substring(self, engine):
        engine.register_rule(make_rule(pattern="cdn.example.com"))

        assert engine.should_block("https://cdnXexample.com/a.js", {}) is None


class TestQueueAndReplay:
    def test_blocked_tag_is_queued(self, eu_engine):
        assert eu_engine.queue_blocked(GA_TAG, {"analytics": False}) is True

        entry = eu_engine.queued[0]
        assert entry.resource_tag == GA_TAG
        assert entry.url == GA_URL
        assert entry.rule_id == "google-analytics-4"
        assert entry.required_category == "analytics"
        assert entry.queued_at is not None

    def test_allowed_tag_is_not_queued(self, eu_engine):
        assert eu_engine.queue_blocked(GA_TAG, {"analytics": True}) is False
        assert eu_engine.queued_count == 0

    def test_tag_without_url_is_not_queued(self, eu_engine):
        assert eu_engine.queue_blocked("<script>console.log('hi')</script>", {}) is False
        assert eu_engine.queue_blocked("", {}) is False

    def test_replay_drains_only_granted_entries(self, eu_engine):
        eu_engine.queue_blocked(GA_TAG, {})
        eu_engine.queue_blocked(FB_TAG, {})

        released = eu_engine.replay({"analytics": True, "marketing": False})

        assert released == [GA_TAG]
        assert [entry.rule_id for entry in eu_engine.queued] == ["facebook-pixel"]

        assert eu_engine.replay({"analytics": True, "marketing": True}) == [FB_TAG]
        assert eu_engine.queued_count == 0

    def test_replay_without_consent_releases_nothing(self, eu_engine):
        eu_engine.queue_blocked(GA_TAG, {})

        assert eu_engine.replay({}) == []
        assert eu_engine.queued_count == 1

    def test_clear_queue(self, eu_engine):
        eu_engine.queue_blocked(GA_TAG, {})
        eu_engine.clear_queue()

        assert eu_engine.queued == ()

    def test_engines_do_not_share_queues(self, consent_config, registry):
        first = BlockingEngine(consent_config, registry=registry)
        second = BlockingEngine(consent_config, registry=registry)
        first.load_rules_for_region("EU")
        second.load_rules_for_region("EU")

        first.queue_blocked(GA_TAG, {})

        assert second.queued_count == 0


class TestResourceUrl:
    def test_src_is_preferred_over_data_src_and_href(self):
        tag = '<iframe data-src="https://lazy.example/" src="https://real.example/" href="https://x/"></iframe>'

        assert extract_resource_url(tag) == "https://real.example/"

    def test_data_src_and_href(self):
        assert extract_resource_url('<iframe data-src="https://www.youtube.com/embed/abc"></iframe>') == (
            "https://www.youtube.com/embed/abc"
        )
        assert extract_resource_url('<link rel="preload" href="https://cdn.segment.com/a.js">') == (
            "https://cdn.segment.com/a.js"
        )

    def test_html_entities_are_decoded(self):
        assert extract_resource_url('<img src="https://px.example/?a=1&amp;b=2">') == "https://px.example/?a=1&b=2"


class TestIframePlaceholder:
    def test_placeholder_markup(self, consent_config, engine):
        rule = consent_config.rule_catalogue["youtube-embed"]

        markup = engine.iframe_placeholder(rule, {})

        assert 'data-rule="youtube-embed"' in markup
        assert 'data-category="marketing"' in markup
        assert "This content requires Marketing consent." in markup
        assert "Enable Marketing" in markup

    def test_placeholder_is_deterministic(self, consent_config, engine):
        rule = consent_config.rule_catalogue["youtube-embed"]

        assert engine.iframe_placeholder(rule, {}) == engine.iframe_placeholder(rule, {"marketing": False})

    def test_placeholder_escapes_values(self, engine):
        rule = BlockingRule(**make_rule(id='x"><script>', required_category="social_media"))

        markup = engine.iframe_placeholder(rule)

        assert "<script>" not in markup
        assert "&quot;&gt;&lt;script&gt;" in markup
        assert "Social Media" in markup

    def test_category_label(self):
        assert category_label("social_media") == "Social Media"
        assert category_label("analytics") == "Analytics"
