from dataclasses import dataclass, field
from typing import List, Sequence, TypeVar, Union

from scraper.fetcher import ContentItem
from scraper.parser import normalize_text

T = TypeVar("T", ContentItem, str)


def item_text(item: Union[ContentItem, str]) -> str:
    return item.text if isinstance(item, ContentItem) else item


def filter_items(items: Sequence[T], min_length: int = 10) -> List[T]:
    """Drop items whose normalized text is not longer than min_length; order is kept."""
    return [item for item in items if len(normalize_text(item_text(item))) > min_length]


@dataclass
class OrganizedBatch:
    count: int
    texts: List[str] = field(default_factory=list)


def organize(items: Sequence[Union[ContentItem, str]]) -> OrganizedBatch:
    texts = [item_text(item) for item in items]
    return OrganizedBatch(count=len(texts), texts=texts)
