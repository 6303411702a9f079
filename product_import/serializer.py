"""Serializers for the metadata column of url_rewrite."""
import json
import logging
import re
from typing import Dict, Optional, Tuple

import phpserialize
from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import UrlRewrite

logger = logging.getLogger(__name__)

# Magento versions before this one store metadata in PHP's serialize format
JSON_METADATA_SINCE = (2, 2)


class ValueSerializer:
    """Turns a flat dict of strings into the stored text, and reads single keys back."""

    def serialize(self, values: Dict[str, str]) -> str:
        raise NotImplementedError

    def deserialize(self, serialized: str) -> Dict[str, str]:
        raise NotImplementedError

    def extract(self, serialized: Optional[str], key: str) -> Optional[str]:
        """Value of key in serialized, None when absent or unreadable."""
        if not serialized:
            return None
        try:
            values = self.deserialize(serialized)
        except ValueError:
            logger.warning(f"Unreadable url_rewrite metadata: {serialized!r}")
            return None
        if not isinstance(values, dict):
            return None
        value = values.get(key)
        return None if value is None else str(value)


class JsonValueSerializer(ValueSerializer):
    def serialize(self, values: Dict[str, str]) -> str:
        return json.dumps(values, separators=(',', ':'))

    def deserialize(self, serialized: str) -> Dict[str, str]:
        return json.loads(serialized)


class SerializeValueSerializer(ValueSerializer):
    """PHP serialize() format used by Magento 2.0 and 2.1."""

    def serialize(self, values: Dict[str, str]) -> str:
        return phpserialize.dumps(values).decode('utf-8')

    def deserialize(self, serialized: str) -> Dict[str, str]:
        values = phpserialize.loads(serialized.encode('utf-8'), decode_strings=True)
        if isinstance(values, dict):
            return {str(key): value for key, value in values.items()}
        return values


def parse_version(version: str) -> Tuple[int, ...]:
    parts = []
    for part in version.split('.'):
        # '6-p3' -> 6
        match = re.match(r'\d+', part)
        if not match:
            break
        parts.append(int(match.group()))
    return tuple(parts)


def detect_serializer(session: Session) -> ValueSerializer:
    """Pick the format of the metadata already stored; JSON when there is none."""
    sample = session.execute(
        select(UrlRewrite.metadata_)
        .where(UrlRewrite.metadata_.isnot(None), UrlRewrite.metadata_ != '')
        .limit(1)
    ).scalar()
    if sample is not None and sample.startswith('a:'):
        return SerializeValueSerializer()
    return JsonValueSerializer()


def create_serializer(session: Session, magento_version: Optional[str] = None) -> ValueSerializer:
    if magento_version:
        if parse_version(magento_version) < JSON_METADATA_SINCE:
            return SerializeValueSerializer()
        return JsonValueSerializer()
    return detect_serializer(session)
