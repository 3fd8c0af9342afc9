"""Map marker synchronization.

``MarkerSynchronizer`` keeps the markers on a map in one-to-one
correspondence with a list of places and tracks which place is selected.
The map itself is reached through the small ``MapView`` protocol;
``FoliumMapView`` implements it over a ``folium.Map`` for the Streamlit UI.
"""

import html
import logging
from collections.abc import Callable, Sequence
from typing import Any, Protocol

import folium

from danang_lover.models import Place

logger = logging.getLogger(__name__)

DEFAULT_MARKER_COLOR = "blue"
SELECTED_MARKER_COLOR = "red"


class MapView(Protocol):
    """The live map the synchronizer draws on."""

    def is_mounted(self) -> bool: ...

    def add_marker(self, lat: float, lng: float, label: str) -> Any: ...

    def remove_marker(self, handle: Any) -> None: ...

    def set_marker_highlight(self, handle: Any, highlighted: bool) -> None: ...

    def set_view(self, lat: float, lng: float, zoom: float) -> None: ...

    def get_zoom(self) -> float: ...


class MarkerSynchronizer:
    """Reconciles a map's markers with a list of places.

    The synchronizer only ever removes markers it created itself, which are
    tracked as a ``{place_id: marker handle}`` mapping. While no map view is
    attached, or the view is not mounted yet, every operation does nothing.

    Attributes:
        view: The map view markers are drawn on.
        on_select: Called with the place whenever one of its markers is clicked.
        selected_id: Id of the currently selected place, if any.
    """

    def __init__(
        self,
        view: MapView | None = None,
        on_select: Callable[[Place], Any] | None = None,
    ) -> None:
        self.view = view
        self.on_select = on_select
        self.selected_id: str | None = None
        self._markers: dict[str, Any] = {}
        self._places: dict[str, Place] = {}

    @property
    def ready(self) -> bool:
        """Return True if a mounted map view is attached."""
        return self.view is not None and self.view.is_mounted()

    @property
    def markers(self) -> dict[str, Any]:
        """Return a copy of the owned markers keyed by place id."""
        return dict(self._markers)

    @property
    def selected_place(self) -> Place | None:
        """Return the selected place if it is currently on the map."""
        if self.selected_id is None:
            return None
        return self._places.get(self.selected_id)

    def attach(self, view: MapView) -> None:
        """Bind a new map view.

        Markers owned on a previous view are forgotten, not removed, since
        that view has been discarded. Call ``sync`` afterwards to populate
        the new view.

        Args:
            view: The map view to draw on from now on.
        """
        self.view = view
        self._markers = {}
        self._places = {}

    def sync(self, places: Sequence[Place]) -> None:
        """Replace the owned markers with one marker per place.

        Args:
            places: Places to show, in display order. Ids must be unique.

        Raises:
            ValueError: If two places share an id.
        """
        if not self.ready:
            return

        ids = [place.id for place in places]
        if len(set(ids)) != len(ids):
            raise ValueError("Place ids must be unique within one synchronization.")

        for handle in self._markers.values():
            self.view.remove_marker(handle)
        self._markers = {}
        self._places = {}

        for place in places:
            handle = self.view.add_marker(place.location.lat, place.location.lng, place.name)
            self._markers[place.id] = handle
            self._places[place.id] = place

        if self.selected_id in self._markers:
            self.view.set_marker_highlight(self._markers[self.selected_id], True)

        logger.debug("Synchronized %d markers", len(self._markers))

    def click(self, place_id: str) -> Place | None:
        """Handle a click on the marker of ``place_id``.

        Selects the place, moves the highlight to its marker and calls
        ``on_select`` once.

        Args:
            place_id: Id of the clicked place.

        Returns:
            The selected place, or None if no marker belongs to the id.
        """
        if not self.ready:
            return None
        place = self._places.get(place_id)
        if place is None:
            logger.debug("Ignoring click for unknown place %s", place_id)
            return None

        previous = self.selected_id
        if previous != place_id and previous in self._markers:
            self.view.set_marker_highlight(self._markers[previous], False)
        self.selected_id = place_id
        self.view.set_marker_highlight(self._markers[place_id], True)

        if self.on_select is not None:
            self.on_select(place)
        return place

    def click_at(self, lat: float, lng: float, tolerance: float = 1e-7) -> Place | None:
        """Handle a click reported as a map position.

        Args:
            lat: Latitude of the clicked marker.
            lng: Longitude of the clicked marker.
            tolerance: Largest coordinate difference still treated as equal.

        Returns:
            The selected place, or None if no owned marker sits there.
        """
        if not self.ready:
            return None
        for place_id, place in self._places.items():
            if (
                abs(place.location.lat - lat) <= tolerance
                and abs(place.location.lng - lng) <= tolerance
            ):
                return self.click(place_id)
        return None

    def center_on(self, place: Place) -> None:
        """Center the map on ``place`` keeping the current zoom level."""
        if not self.ready:
            return
        self.view.set_view(place.location.lat, place.location.lng, self.view.get_zoom())


class FoliumMapView:
    """``MapView`` backed by a ``folium.Map``.

    Attributes:
        map: The folium map, or None until it is created.
        center: Current (lat, lng) of the view.
    """

    def __init__(self, folium_map: folium.Map | None, zoom: float) -> None:
        self.map = folium_map
        self._zoom = zoom
        self.center: tuple[float, float] | None = (
            tuple(folium_map.location) if folium_map is not None and folium_map.location else None
        )

    def is_mounted(self) -> bool:
        return self.map is not None

    def add_marker(self, lat: float, lng: float, label: str) -> folium.Marker:
        # Leaflet renders tooltip and popup content as HTML.
        text = html.escape(label)
        marker = folium.Marker(
            location=[lat, lng],
            tooltip=text,
            popup=folium.Popup(text),
            icon=folium.Icon(color=DEFAULT_MARKER_COLOR),
        )
        marker.add_to(self.map)
        return marker

    def remove_marker(self, handle: folium.Marker) -> None:
        # Only the marker's own entry is dropped; tile layers stay.
        self.map._children.pop(handle.get_name(), None)

    def set_marker_highlight(self, handle: folium.Marker, highlighted: bool) -> None:
        current = getattr(handle, "icon", None)
        if current is not None:
            handle._children.pop(current.get_name(), None)
        icon = folium.Icon(
            color=SELECTED_MARKER_COLOR if highlighted else DEFAULT_MARKER_COLOR,
            icon="star" if highlighted else "info-sign",
        )
        handle.add_child(icon)
        handle.icon = icon

    def set_view(self, lat: float, lng: float, zoom: float) -> None:
        self.center = (lat, lng)
        self._zoom = zoom
        self.map.location = [lat, lng]
        self.map.options["zoom"] = zoom

    def get_zoom(self) -> float:
        return self._zoom
