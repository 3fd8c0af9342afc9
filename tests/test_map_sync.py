"""Tests for the map marker synchronizer."""

from typing import Any

import folium
import pytest

from danang_lover.frontend.map_sync import (
    SELECTED_MARKER_COLOR,
    FoliumMapView,
    MarkerSynchronizer,
)
from danang_lover.models import Location, Place


class FakeMarker:
    """Marker recorded by FakeMapView."""

    def __init__(self, lat: float, lng: float, label: str) -> None:
        self.lat = lat
        self.lng = lng
        self.label = label
        self.highlighted = False


class FakeMapView:
    """In-memory MapView recording every call."""

    def __init__(self, mounted: bool = True, zoom: float = 12) -> None:
        self.mounted = mounted
        self.zoom = zoom
        self.center: tuple[float, float] | None = None
        self.markers: list[FakeMarker] = []
        self.calls: list[str] = []

    def is_mounted(self) -> bool:
        return self.mounted

    def add_marker(self, lat: float, lng: float, label: str) -> FakeMarker:
        self.calls.append("add")
        marker = FakeMarker(lat, lng, label)
        self.markers.append(marker)
        return marker

    def remove_marker(self, handle: FakeMarker) -> None:
        self.calls.append("remove")
        self.markers.remove(handle)

    def set_marker_highlight(self, handle: FakeMarker, highlighted: bool) -> None:
        handle.highlighted = highlighted

    def set_view(self, lat: float, lng: float, zoom: float) -> None:
        self.calls.append("set_view")
        self.center = (lat, lng)
        self.zoom = zoom

    def get_zoom(self) -> float:
        return self.zoom


def make_place(place_id: str, lat: float, lng: float, name: str | None = None) -> Place:
    return Place(
        id=place_id,
        name=name or f"Place {place_id}",
        location=Location(address=f"{place_id} Bach Dang", lat=lat, lng=lng),
    )


@pytest.fixture
def place_a() -> Place:
    """Fixture for the Dragon Bridge."""
    return make_place("1", 16.0610, 108.2278, "Dragon Bridge")


@pytest.fixture
def place_b() -> Place:
    """Fixture for My Khe Beach."""
    return make_place("2", 16.0544, 108.2480, "My Khe Beach")


@pytest.fixture
def view() -> FakeMapView:
    """Fixture for a mounted fake map view."""
    return FakeMapView()


@pytest.fixture
def selections() -> list[Place]:
    """Fixture collecting selection callback arguments."""
    return []


@pytest.fixture
def synchronizer(view: FakeMapView, selections: list[Place]) -> MarkerSynchronizer:
    """Fixture for a synchronizer attached to the fake view."""
    return MarkerSynchronizer(view, on_select=selections.append)


class TestSync:
    """Tests for marker reconciliation."""

    def test_one_marker_per_place(
        self, synchronizer: MarkerSynchronizer, view: FakeMapView, place_a: Place, place_b: Place
    ) -> None:
        synchronizer.sync([place_a, place_b])

        assert len(view.markers) == 2
        assert set(synchronizer.markers) == {"1", "2"}
        for place in (place_a, place_b):
            marker = synchronizer.markers[place.id]
            assert (marker.lat, marker.lng) == (place.location.lat, place.location.lng)
            assert marker.label == place.name

    def test_markers_created_in_input_order(
        self, synchronizer: MarkerSynchronizer, view: FakeMapView, place_a: Place, place_b: Place
    ) -> None:
        synchronizer.sync([place_b, place_a])
        assert [m.label for m in view.markers] == ["My Khe Beach", "Dragon Bridge"]

    def test_stale_markers_removed(
        self, synchronizer: MarkerSynchronizer, view: FakeMapView, place_a: Place, place_b: Place
    ) -> None:
        synchronizer.sync([place_a, place_b])
        synchronizer.sync([place_b])

        assert len(view.markers) == 1
        assert view.markers[0].label == "My Khe Beach"
        assert list(synchronizer.markers) == ["2"]

    def test_empty_sequence_clears_markers(
        self, synchronizer: MarkerSynchronizer, view: FakeMapView, place_a: Place, place_b: Place
    ) -> None:
        synchronizer.sync([place_a, place_b])
        synchronizer.sync([])

        assert view.markers == []
        assert synchronizer.markers == {}

    def test_foreign_markers_untouched(
        self, synchronizer: MarkerSynchronizer, view: FakeMapView, place_a: Place
    ) -> None:
        foreign = view.add_marker(0.0, 0.0, "other layer")
        synchronizer.sync([place_a])
        synchronizer.sync([])

        assert view.markers == [foreign]

    def test_duplicate_ids_rejected(
        self, synchronizer: MarkerSynchronizer, view: FakeMapView, place_a: Place
    ) -> None:
        with pytest.raises(ValueError):
            synchronizer.sync([place_a, place_a])
        assert view.markers == []


class TestSelection:
    """Tests for marker clicks and highlighting."""

    def test_click_selects_and_notifies_once(
        self,
        synchronizer: MarkerSynchronizer,
        selections: list[Place],
        place_a: Place,
        place_b: Place,
    ) -> None:
        synchronizer.sync([place_a, place_b])
        result = synchronizer.click("1")

        assert result == place_a
        assert selections == [place_a]
        assert synchronizer.selected_id == "1"
        assert synchronizer.markers["1"].highlighted
        assert not synchronizer.markers["2"].highlighted

    def test_second_click_moves_highlight(
        self,
        synchronizer: MarkerSynchronizer,
        selections: list[Place],
        place_a: Place,
        place_b: Place,
    ) -> None:
        synchronizer.sync([place_a, place_b])
        synchronizer.click("1")
        synchronizer.click("2")

        assert selections == [place_a, place_b]
        assert synchronizer.selected_place == place_b
        assert not synchronizer.markers["1"].highlighted
        assert synchronizer.markers["2"].highlighted

    def test_selection_survives_resync(
        self, synchronizer: MarkerSynchronizer, place_a: Place, place_b: Place
    ) -> None:
        synchronizer.sync([place_a, place_b])
        synchronizer.click("2")
        synchronizer.sync([place_a, place_b])

        assert synchronizer.selected_id == "2"
        assert synchronizer.markers["2"].highlighted
        assert not synchronizer.markers["1"].highlighted

    def test_selection_kept_when_place_leaves(
        self, synchronizer: MarkerSynchronizer, place_a: Place, place_b: Place
    ) -> None:
        synchronizer.sync([place_a, place_b])
        synchronizer.click("2")
        synchronizer.sync([place_a])

        assert synchronizer.selected_id == "2"
        assert synchronizer.selected_place is None
        assert not synchronizer.markers["1"].highlighted

    def test_click_unknown_place_ignored(
        self, synchronizer: MarkerSynchronizer, selections: list[Place], place_a: Place
    ) -> None:
        synchronizer.sync([place_a])
        assert synchronizer.click("missing") is None
        assert selections == []

    def test_click_at_resolves_coordinates(
        self,
        synchronizer: MarkerSynchronizer,
        selections: list[Place],
        place_a: Place,
        place_b: Place,
    ) -> None:
        synchronizer.sync([place_a, place_b])

        assert synchronizer.click_at(16.0544, 108.2480) == place_b
        assert synchronizer.click_at(10.0, 10.0) is None
        assert selections == [place_b]


class TestCentering:
    """Tests for centering the map on a place."""

    def test_center_keeps_zoom_and_markers(
        self, synchronizer: MarkerSynchronizer, view: FakeMapView, place_a: Place, place_b: Place
    ) -> None:
        synchronizer.sync([place_a, place_b])
        view.zoom = 15
        view.calls.clear()

        synchronizer.center_on(place_b)

        assert view.center == (16.0544, 108.2480)
        assert view.zoom == 15
        assert view.calls == ["set_view"]


class TestUnmountedMap:
    """Tests for operations before the map exists."""

    def test_no_view_is_noop(self, place_a: Place) -> None:
        synchronizer = MarkerSynchronizer()
        synchronizer.sync([place_a])
        assert synchronizer.click("1") is None
        synchronizer.center_on(place_a)
        assert synchronizer.markers == {}

    def test_unmounted_view_is_noop(self, place_a: Place, selections: list[Place]) -> None:
        view = FakeMapView(mounted=False)
        synchronizer = MarkerSynchronizer(view, on_select=selections.append)

        synchronizer.sync([place_a])
        synchronizer.click("1")
        synchronizer.center_on(place_a)

        assert view.calls == []
        assert selections == []

    def test_attach_starts_fresh(self, place_a: Place, place_b: Place) -> None:
        old_view = FakeMapView()
        synchronizer = MarkerSynchronizer(old_view)
        synchronizer.sync([place_a])
        synchronizer.click("1")

        new_view = FakeMapView()
        synchronizer.attach(new_view)
        synchronizer.sync([place_a, place_b])

        assert old_view.calls == ["add"]
        assert len(new_view.markers) == 2
        assert new_view.markers[0].highlighted


class TestFoliumMapView:
    """Tests for the folium-backed map view."""

    @pytest.fixture
    def folium_view(self) -> FoliumMapView:
        return FoliumMapView(folium.Map(location=[16.05, 108.2], zoom_start=12), zoom=12)

    def _marker_names(self, view: FoliumMapView) -> list[str]:
        return [
            name for name, child in view.map._children.items() if isinstance(child, folium.Marker)
        ]

    def test_add_and_remove_marker(self, folium_view: FoliumMapView) -> None:
        children_before = set(folium_view.map._children)
        marker = folium_view.add_marker(16.06, 108.22, "Dragon Bridge")

        assert self._marker_names(folium_view) == [marker.get_name()]

        folium_view.remove_marker(marker)
        assert self._marker_names(folium_view) == []
        assert set(folium_view.map._children) == children_before

    def test_label_is_escaped(self, folium_view: FoliumMapView) -> None:
        label = "<img src=x onerror=alert(1)><script>alert(2)</script>"
        folium_view.add_marker(16.06, 108.22, label)

        rendered = folium_view.map.get_root().render()
        assert "<img src=x onerror=alert(1)>" not in rendered
        assert "<script>alert(2)</script>" not in rendered

    def test_highlight_swaps_icon(self, folium_view: FoliumMapView) -> None:
        marker = folium_view.add_marker(16.06, 108.22, "Dragon Bridge")
        folium_view.set_marker_highlight(marker, True)

        icons: list[Any] = [c for c in marker._children.values() if isinstance(c, folium.Icon)]
        assert len(icons) == 1
        assert icons[0] is marker.icon
        assert SELECTED_MARKER_COLOR in icons[0].options.values()

    def test_set_view(self, folium_view: FoliumMapView) -> None:
        folium_view.set_view(16.0, 108.0, 14)

        assert folium_view.center == (16.0, 108.0)
        assert folium_view.get_zoom() == 14
        assert list(folium_view.map.location) == [16.0, 108.0]

    def test_unmounted_without_map(self) -> None:
        assert not FoliumMapView(None, zoom=12).is_mounted()
