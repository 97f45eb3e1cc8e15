"""
Blocking Service

Per-request registry of blocking rules. Decides whether a resource URL must
be held back until a consent category is granted, queues blocked resource
tags, and replays them once consent arrives.
"""

import html
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from consent_engine.plugins.hooks import HOOK_BLOCKING_RULES_LOADED
from consent_engine.plugins.registry import HookRegistry, hook_registry
from consent_engine.schemas.consent import is_granted
from consent_engine.schemas.policy import BlockingRule, ConsentConfig
from consent_engine.utils.metrics import record_resource_blocked

logger = logging.getLogger(__name__)

# src wins over data-src, which wins over href
_URL_ATTRIBUTES = ("src", "data-src", "href")
_ATTRIBUTE_PATTERNS = {
    name: re.compile(rf"""(?<![\w-]){re.escape(name)}\s*=\s*["']([^"']+)["']""", re.IGNORECASE)
    for name in _URL_ATTRIBUTES
}

PLACEHOLDER_TEMPLATE = (
    '<div class="consent-iframe-placeholder" data-rule="{rule_id}" data-category="{category}">'
    '<h3 class="consent-iframe-placeholder__title">Content Blocked</h3>'
    '<p class="consent-iframe-placeholder__text">This content requires {label} consent.</p>'
    '<button type="button" class="consent-enable-btn" data-category="{category}">Enable {label}</button>'
    "</div>"
)


@dataclass
class QueuedResource:
    """A resource tag held back until its category is granted."""

    resource_tag: str
    url: str
    rule_id: str
    required_category: str
    queued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def extract_resource_url(resource_tag: str) -> str | None:
    """Return the URL referenced by a script, iframe, img or link tag."""
    for name in _URL_ATTRIBUTES:
        match = _ATTRIBUTE_PATTERNS[name].search(resource_tag)
        if match:
            return html.unescape(match.group(1))
    return None


def category_label(category: str) -> str:
    """'social_media' -> 'Social Media'"""
    return " ".join(word[:1].upper() + word[1:] for word in category.replace("_", " ").split(" "))


class BlockingEngine:
    """
    Blocking rule registry and replay queue.

    One instance serves one request; nothing here is shared between
    requests. Rules are evaluated in registration order.
    """

    def __init__(self, config: ConsentConfig, registry: HookRegistry | None = None):
        self.config = config
        self.registry = registry or hook_registry
        self._rules: dict[str, BlockingRule] = {}
        self._queue: list[QueuedResource] = []

    # ── Rules ─────────────────────────────────────────────────────────────────

    @property
    def rules(self) -> tuple[BlockingRule, ...]:
        """Registered rules in evaluation order."""
        return tuple(self._rules.values())

    def register_rule(self, rule: BlockingRule | dict[str, Any]) -> bool:
        """
        Register a blocking rule.

        Returns False (and registers nothing) when the id is already taken,
        a required field is missing, or the kind/action/pattern is invalid.
        """
        if not isinstance(rule, BlockingRule):
            try:
                rule = BlockingRule(**rule)
            except (PydanticValidationError, TypeError, re.error) as exc:
                logger.debug("Rejected blocking rule %r: %s", rule, exc)
                return False

        if rule.id in self._rules:
            logger.debug("Blocking rule %s already registered", rule.id)
            return False

        self._rules[rule.id] = rule
        return True

    def load_rules_for_region(self, region: str) -> int:
        """
        Register the catalogue rules named by a region's policy.

        Unknown rule ids are skipped.

        Returns:
            Number of rules registered
        """
        policy = self.config.policy_for(region)
        loaded = 0
        for rule_id in policy.blocking_rule_ids:
            rule = self.config.rule_catalogue.get(rule_id)
            if rule is None:
                logger.warning("Region %s references unknown blocking rule %s", policy.region, rule_id)
                continue
            if self.register_rule(rule):
                loaded += 1

        self.registry.do_action(
            HOOK_BLOCKING_RULES_LOADED,
            {"region": policy.region, "rule_ids": [rule.id for rule in self.rules]},
        )
        return loaded

    # ── Decisions ─────────────────────────────────────────────────────────────

    def should_block(self, url: str, consents: dict[str, Any] | None) -> BlockingRule | None:
        """
        Return the first matching rule whose category is not granted.

        Matching rules whose category is granted do not stop the scan.
        """
        if not url or not self._rules:
            return None

        for rule in self._rules.values():
            if rule.matches(url) and not is_granted(consents, rule.required_category):
                return rule
        return None

    # ── Queue ─────────────────────────────────────────────────────────────────

    @property
    def queued(self) -> tuple[QueuedResource, ...]:
        return tuple(self._queue)

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    def clear_queue(self) -> None:
        self._queue.clear()

    def queue_blocked(self, resource_tag: str, consents: dict[str, Any] | None) -> bool:
        """Queue a resource tag if its URL is blocked under the given consents."""
        if not resource_tag:
            return False

        url = extract_resource_url(resource_tag)
        if not url:
            return False

        rule = self.should_block(url, consents)
        if rule is None:
            return False

        self._queue.append(
            QueuedResource(
                resource_tag=resource_tag,
                url=url,
                rule_id=rule.id,
                required_category=rule.required_category,
            )
        )
        record_resource_blocked(rule.id)
        return True

    def replay(self, consents: dict[str, Any] | None) -> list[str]:
        """
        Release queued resources whose category is now granted.

        Returns:
            The released resource tags in queue order; the rest stay queued.
        """
        released: list[str] = []
        remaining: list[QueuedResource] = []
        for entry in self._queue:
            if is_granted(consents, entry.required_category):
                released.append(entry.resource_tag)
            else:
                remaining.append(entry)

        self._queue = remaining
        return released

    # ── Presentation ──────────────────────────────────────────────────────────

    def iframe_placeholder(self, rule: BlockingRule, consents: dict[str, Any] | None = None) -> str:
        """Markup that stands in for an iframe blocked by the given rule."""
        category = rule.required_category
        return PLACEHOLDER_TEMPLATE.format(
            rule_id=html.escape(rule.id, quote=True),
            category=html.escape(category, quote=True),
            label=html.escape(category_label(category)),
        )
