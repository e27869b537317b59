"""Unit tests for the folium map builder."""

import folium
import pytest

from civic_client.map_view import build_issue_map, padded_bounds, popup_html


def markers(fmap):
    found = []

    def walk(element):
        for child in element._children.values():
            if isinstance(child, folium.Marker):
                found.append(child)
            walk(child)

    walk(fmap)
    return found


def test_one_marker_per_located_issue(sample_issues):
    issues = sample_issues + [{"_id": "x", "title": "no location"}]

    fmap = build_issue_map(issues, (12.97, 77.59))

    assert isinstance(fmap, folium.Map)
    assert len(markers(fmap)) == 3


def test_admin_and_selected_markers_added(sample_issues):
    fmap = build_issue_map(sample_issues[:1], (12.97, 77.59), admin_location=(12.9, 77.5), selected=(12.95, 77.55))

    assert len(markers(fmap)) == 3


def test_route_drawn_as_polyline(sample_issues):
    route = {"coordinates": [[12.9, 77.5], [12.95, 77.55], [12.97, 77.59]], "isFallback": True}

    fmap = build_issue_map(sample_issues[:1], (12.97, 77.59), admin_location=(12.9, 77.5), route=route)
    html = fmap.get_root().render()

    assert "L.polyline" in html
    assert "10, 10" in html


def test_popup_escapes_and_shows_distance(sample_issues):
    issue = dict(sample_issues[0], title="<script>alert(1)</script>")

    html = popup_html(issue, origin=(12.98, 77.61))

    assert "<script>" not in html
    assert "Distance:" in html
    assert "Waze" in html


def test_padded_bounds():
    bounds = padded_bounds([[10.0, 20.0], [12.0, 24.0]], pad=0.1)

    assert bounds[0] == pytest.approx([9.8, 19.6])
    assert bounds[1] == pytest.approx([12.2, 24.4])
