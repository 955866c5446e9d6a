"""Load topics from the config file, an ad-hoc file or a CLI list; filter and validate them."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import yaml
from pydantic import ValidationError

from blogbatch.errors import TopicLoadError
from blogbatch.topics.models import InvalidTopic, Topic, TopicValidation

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/high-value-topics.json"
CLI_PRIORITY = 999
CLI_CATEGORY = "Custom"


def parse_priority_range(value: int | str | Iterable[int]) -> set[int]:
    """Resolve ``3``, ``"3"``, ``"1,2,5"`` or ``"2-4"`` (inclusive) to a set of priorities."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid priority filter: {value!r}")
    if isinstance(value, int):
        return {value}
    if not isinstance(value, str):
        return {int(p) for p in value}

    text = value.strip()
    try:
        if "-" in text.lstrip("-"):
            start, _, end = text.partition("-")
            return set(range(int(start), int(end) + 1))
        if "," in text:
            return {int(p) for p in text.split(",") if p.strip()}
        return {int(text)}
    except ValueError:
        raise ValueError(f"Invalid priority filter: {value!r}") from None


class TopicManager:
    def __init__(self, config_path: str | Path = DEFAULT_CONFIG_PATH):
        self.default_config_path = Path(config_path)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_from_config(self, file_path: str | Path | None = None) -> list[Topic]:
        """Load the ``highValueTopics`` (or ``topics``) array from the JSON config."""
        path = Path(file_path) if file_path else self.default_config_path
        doc = self._read_document(path)
        if not isinstance(doc, dict):
            raise TopicLoadError(f"Failed to load topics from config {path}: expected a JSON object")
        entries = doc.get("highValueTopics") or doc.get("topics") or []
        return self._build(entries, source=str(path))

    def load_from_file(self, file_path: str | Path) -> list[Topic]:
        """Load topics from a JSON or YAML file (object with highValueTopics/topics, or a bare list)."""
        path = Path(file_path)
        doc = self._read_document(path)
        if isinstance(doc, list):
            entries = doc
        elif isinstance(doc, dict):
            entries = doc.get("highValueTopics") or doc.get("topics") or []
        else:
            entries = []
        return self._build(entries, source=str(path))

    def load_from_cli(self, topic_list: str) -> list[Topic]:
        """Build topics from a comma-separated list of titles."""
        titles = [t.strip() for t in topic_list.split(",") if t.strip()]
        return [
            Topic(
                id=f"cli-{index}",
                topic=title,
                primary_keyword=self._extract_keyword(title),
                secondary_keywords=[],
                search_volume="N/A",
                priority=CLI_PRIORITY,
                category=CLI_CATEGORY,
            )
            for index, title in enumerate(titles)
        ]

    def _read_document(self, path: Path) -> Any:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise TopicLoadError(f"Failed to load topics from {path}: {e}") from e
        try:
            if path.suffix.lower() in (".yaml", ".yml"):
                return yaml.safe_load(text)
            return json.loads(text)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise TopicLoadError(f"Failed to parse topics file {path}: {e}") from e

    def _build(self, entries: Any, source: str) -> list[Topic]:
        if not isinstance(entries, list):
            raise TopicLoadError(f"Topics in {source} must be a list")
        report = self.validate(self._add_ids(entries))
        for bad in report.invalid:
            logger.warning(
                "Skipping invalid topic %r from %s: %s",
                bad.topic.get("id") or bad.topic.get("topic"),
                source,
                ", ".join(bad.errors),
            )
        logger.info("Loaded %d topics from %s", len(report.valid), source)
        return report.valid

    @staticmethod
    def _add_ids(entries: list[Any]) -> list[Any]:
        out: list[Any] = []
        for index, entry in enumerate(entries):
            if isinstance(entry, Mapping):
                entry = dict(entry)
                entry["id"] = str(entry.get("id") or f"topic-{index}")
            out.append(entry)
        return out

    @staticmethod
    def _extract_keyword(topic: str) -> str:
        return " ".join(topic.split()[:5])

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def filter_topics(
        self,
        topics: Sequence[Topic],
        priority: int | str | Sequence[int] | None = None,
        category: str | Sequence[str] | None = None,
        max_count: int | None = None,
    ) -> list[Topic]:
        """Keep topics matching priority and category, sort ascending by priority, then truncate."""
        filtered = list(topics)

        if priority is not None and priority != "":
            allowed = parse_priority_range(priority)
            filtered = [t for t in filtered if t.priority in allowed]

        if category:
            wanted = [category] if isinstance(category, str) else list(category)
            wanted = [c.lower() for c in wanted]
            filtered = [
                t for t in filtered
                if t.category and any(c in t.category.lower() for c in wanted)
            ]

        filtered.sort(key=lambda t: t.priority)

        # 0 or None means no limit
        if max_count and max_count > 0:
            filtered = filtered[:max_count]
        return filtered

    @staticmethod
    def get_topics_by_ids(topics: Sequence[Topic], ids: Iterable[str]) -> list[Topic]:
        wanted = set(ids)
        return [t for t in topics if t.id in wanted]

    @staticmethod
    def get_categories(topics: Sequence[Topic]) -> list[str]:
        return sorted({t.category for t in topics if t.category})

    @staticmethod
    def get_priority_range(topics: Sequence[Topic]) -> tuple[int, int]:
        if not topics:
            return (0, 0)
        priorities = [t.priority for t in topics]
        return (min(priorities), max(priorities))

    # ------------------------------------------------------------------
    # Validation / persistence
    # ------------------------------------------------------------------

    def validate(self, entries: Sequence[Topic | Mapping[str, Any]]) -> TopicValidation:
        """Partition entries into valid Topics and invalid entries with reasons. Inputs are not modified."""
        report = TopicValidation()
        for entry in entries:
            if isinstance(entry, Topic):
                raw = entry.model_dump(by_alias=True)
            elif isinstance(entry, Mapping):
                raw = dict(entry)
            else:
                report.invalid.append(InvalidTopic(topic={"value": repr(entry)}, errors=["Not an object"]))
                continue

            errors = self._field_errors(raw)
            if not errors:
                try:
                    report.valid.append(Topic.model_validate(raw))
                    continue
                except ValidationError as e:
                    errors = [
                        f"Invalid {'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                        for err in e.errors()
                    ]
            report.invalid.append(InvalidTopic(topic=raw, errors=errors))
        return report

    @staticmethod
    def _field_errors(raw: Mapping[str, Any]) -> list[str]:
        errors: list[str] = []
        title = raw.get("topic")
        if not isinstance(title, str) or not title.strip():
            errors.append("Missing or invalid topic")
        keyword = raw.get("primaryKeyword", raw.get("primary_keyword"))
        if not isinstance(keyword, str) or not keyword.strip():
            errors.append("Missing or invalid primaryKeyword")
        priority = raw.get("priority")
        numeric = isinstance(priority, int) or (isinstance(priority, float) and priority.is_integer())
        if isinstance(priority, bool) or not numeric:
            errors.append("Missing or invalid priority")
        return errors

    def save_to_file(self, topics: Sequence[Topic], file_path: str | Path) -> None:
        path = Path(file_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"topics": [t.to_json_dict() for t in topics]}, f, indent=2)
        except OSError as e:
            raise TopicLoadError(f"Failed to save topics to {path}: {e}") from e

    @staticmethod
    def create_sample_topic() -> Topic:
        return Topic(
            id="sample",
            topic="Sample Article Topic",
            primary_keyword="sample keyword",
            secondary_keywords=["secondary 1", "secondary 2"],
            search_volume="1,000+",
            priority=10,
            category="Compliance",
            competitor_urls=[],
            expectedTraffic="100-500/month",
        )
