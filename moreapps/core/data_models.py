"""Data models used throughout moreapps.

:class:`CatalogRecord` is the common representation of one published app
returned by the lookup service.  :class:`CatalogConfig` describes how a
developer's catalog should be fetched and partitioned.  Both are immutable:
a new configuration replaces the old one wholesale.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Protocol, Tuple

DEFAULT_PRICE_LABEL = "Free"
DEFAULT_CACHE_TTL = 86400  # 24 hours
APP_URL_TEMPLATE = "https://apps.apple.com/app/id{track_id}"


def is_integer(value: Any) -> bool:
    """True for ints, excluding bools."""
    return isinstance(value, int) and not isinstance(value, bool)


def is_number(value: Any) -> bool:
    """True for ints and floats, excluding bools."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_string_list(value: Any) -> bool:
    """True for a list (or tuple) whose items are all strings."""
    return isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value)


class Platform(Enum):
    """The platform an app runs on, keyed by the lookup ``kind`` code."""

    PRIMARY = "software"
    SECONDARY = "mac-software"
    UNKNOWN = "unknown"

    @classmethod
    def from_kind(cls, kind: Optional[str]) -> "Platform":
        """Map a raw ``kind`` value to a platform, defaulting to UNKNOWN."""
        for platform in (cls.PRIMARY, cls.SECONDARY):
            if kind == platform.value:
                return platform
        return cls.UNKNOWN


class PlatformFilter(Enum):
    """Which platforms a catalog view should include."""

    ALL = "all"
    PRIMARY = "primary"
    SECONDARY = "secondary"

    def matches(self, platform: Platform) -> bool:
        if self is PlatformFilter.ALL:
            return True
        if self is PlatformFilter.PRIMARY:
            return platform is Platform.PRIMARY
        return platform is Platform.SECONDARY


@dataclass(frozen=True)
class CatalogRecord:
    """A single app retrieved from the lookup service.

    Attributes
    ----------
    track_id: int
        Numeric identifier assigned by the store.  Unique per app.
    name: str
        Display name of the app.
    icon_url: str
        Icon reference, preferring the highest resolution artwork.
    store_url: str
        Canonical listing URL.
    bundle_id: str
        Bundle identifier, used to recognise the currently running app.
    description: str
        Store description text.
    price: str
        Formatted price label (``"Free"`` when the store omits it).
    genres: tuple of str
        Ordered category tags.
    average_rating: float, optional
        Average user rating, when the store reports one.
    rating_count: int, optional
        Number of user ratings, when the store reports one.
    platform: Platform
        Platform derived from the lookup ``kind`` code.
    """

    track_id: int
    name: str
    icon_url: str
    store_url: str
    bundle_id: str
    description: str = ""
    price: str = DEFAULT_PRICE_LABEL
    genres: Tuple[str, ...] = ()
    average_rating: Optional[float] = None
    rating_count: Optional[int] = None
    platform: Platform = Platform.UNKNOWN

    def __post_init__(self) -> None:
        if not self.bundle_id:
            raise ValueError("bundle_id cannot be empty")
        if self.rating_count is not None and self.rating_count < 0:
            raise ValueError("rating_count must be non-negative")
        # Accept any iterable for genres but always store a tuple
        if not isinstance(self.genres, tuple):
            object.__setattr__(self, "genres", tuple(self.genres))

    @property
    def share_url(self) -> str:
        """A shareable listing URL without tracking parameters."""
        return APP_URL_TEMPLATE.format(track_id=self.track_id)

    @property
    def review_url(self) -> str:
        """The listing URL that opens the write-review sheet."""
        return f"{self.share_url}?action=write-review"

    def is_current(self, bundle_id: Optional[str]) -> bool:
        """Return True if this record is the app with ``bundle_id``."""
        return bundle_id is not None and self.bundle_id == bundle_id

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the record to a JSON-serialisable dictionary."""
        return {
            "id": self.track_id,
            "name": self.name,
            "description": self.description,
            "iconURL": self.icon_url,
            "storeURL": self.store_url,
            "bundleId": self.bundle_id,
            "price": self.price,
            "genres": list(self.genres),
            "averageRating": self.average_rating,
            "ratingCount": self.rating_count,
            "platform": self.platform.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogRecord":
        """Create a record from the dictionary produced by :meth:`to_dict`.

        Raises
        ------
        ValueError
            If required fields are missing or a field has the wrong type.
        """
        try:
            track_id = data["id"]
            name = data["name"]
            icon_url = data["iconURL"]
            store_url = data["storeURL"]
            bundle_id = data["bundleId"]
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Invalid catalog record: missing {exc}") from exc

        description = data.get("description", "")
        price = data.get("price", DEFAULT_PRICE_LABEL)
        genres = data.get("genres", [])
        average_rating = data.get("averageRating")
        rating_count = data.get("ratingCount")

        if not is_integer(track_id):
            raise ValueError(f"Invalid catalog record: id must be an integer, got {track_id!r}")
        for key, value in (
            ("name", name),
            ("iconURL", icon_url),
            ("storeURL", store_url),
            ("bundleId", bundle_id),
            ("description", description),
            ("price", price),
        ):
            if not isinstance(value, str):
                raise ValueError(f"Invalid catalog record: {key} must be a string, got {value!r}")
        if not is_string_list(genres):
            raise ValueError(f"Invalid catalog record: genres must be a list of strings, got {genres!r}")
        if average_rating is not None and not is_number(average_rating):
            raise ValueError(
                f"Invalid catalog record: averageRating must be a number, got {average_rating!r}"
            )
        if rating_count is not None and not is_integer(rating_count):
            raise ValueError(
                f"Invalid catalog record: ratingCount must be an integer, got {rating_count!r}"
            )

        return cls(
            track_id=track_id,
            name=name,
            icon_url=icon_url,
            store_url=store_url,
            bundle_id=bundle_id,
            description=description,
            price=price,
            genres=tuple(genres),
            average_rating=float(average_rating) if average_rating is not None else None,
            rating_count=rating_count,
            platform=Platform(data.get("platform", Platform.UNKNOWN.value)),
        )

    def __repr__(self) -> str:
        return (
            f"CatalogRecord(track_id={self.track_id!r}, name={self.name!r}, "
            f"bundle_id={self.bundle_id!r}, platform={self.platform.name})"
        )


class TapHandler(Protocol):
    """Receives the record a user selected in a catalog view."""

    def notify(self, record: CatalogRecord) -> None: ...


@dataclass(frozen=True)
class DisplayOptions:
    """Controls which elements are visible in catalog views.

    Presentation collaborators read these; the data pipeline only uses
    ``max_count`` to trim the visible list.
    """

    show_rating: bool = True
    show_price: bool = True
    show_description: bool = True
    max_count: Optional[int] = None

    def __post_init__(self) -> None:
        if self.max_count is not None and self.max_count < 0:
            raise ValueError("max_count must be non-negative")


DisplayOptions.ALL = DisplayOptions()  # type: ignore[attr-defined]
DisplayOptions.MINIMAL = DisplayOptions(  # type: ignore[attr-defined]
    show_rating=False, show_price=False, show_description=False
)


@dataclass(frozen=True)
class CatalogConfig:
    """Configuration for fetching and partitioning a developer's catalog."""

    developer_id: str
    exclude_bundle_ids: FrozenSet[str] = field(default_factory=frozenset)
    platform_filter: PlatformFilter = PlatformFilter.ALL
    cache_ttl: float = DEFAULT_CACHE_TTL
    region_fallback: bool = True
    show_current_app: bool = False
    display_options: DisplayOptions = field(default_factory=DisplayOptions)
    tap_handler: Optional[TapHandler] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.developer_id or not str(self.developer_id).strip():
            raise ValueError("developer_id cannot be empty")
        object.__setattr__(self, "developer_id", str(self.developer_id).strip())
        if not isinstance(self.exclude_bundle_ids, frozenset):
            object.__setattr__(self, "exclude_bundle_ids", frozenset(self.exclude_bundle_ids))
        if self.cache_ttl < 0:
            raise ValueError("cache_ttl must be non-negative")

    @classmethod
    def for_developer(cls, developer_id: str, **overrides: Any) -> "CatalogConfig":
        """Build a config with default options for ``developer_id``."""
        return cls(developer_id=developer_id, **overrides)

