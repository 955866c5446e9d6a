"""Topic loading, validation and filtering."""

from blogbatch.topics.manager import DEFAULT_CONFIG_PATH, TopicManager, parse_priority_range
from blogbatch.topics.models import InvalidTopic, Topic, TopicValidation

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "InvalidTopic",
    "Topic",
    "TopicManager",
    "TopicValidation",
    "parse_priority_range",
]
