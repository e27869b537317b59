"""Folium map of issues, the admin's position and an optional route."""

from html import escape

import folium

from .catalog import category_label, status_color, status_label
from .issues import coordinates_of, issue_distance
from .routing import format_distance_km, routing_options


def popup_html(issue, origin=None):
    links = " | ".join(
        f'<a href="{escape(o["url"])}" target="_blank">{escape(o["name"])}</a>'
        for o in routing_options(issue, origin) if o.get("url")
    )
    address = (issue.get("address") or {}).get("formatted") or ""
    distance = issue_distance(issue, origin)
    html = f"""
    <b>{escape(issue.get('title', '(no title)'))}</b><br/>
    {escape(issue.get('description', ''))}<br/>
    Category: {escape(category_label(issue.get('category')))}<br/>
    Status: {escape(status_label(issue.get('status')))}<br/>
    Priority: {escape((issue.get('priority') or 'medium').title())}<br/>
    {escape(address)}
    """
    if distance is not None:
        html += f"<br/>Distance: {format_distance_km(distance)}"
    if links:
        html += f"<br/>{links}"
    return html


def add_issue_markers(fmap, issues, origin=None):
    points = []
    group = folium.FeatureGroup(name="Issues", show=True)
    for it in issues:
        coords = coordinates_of(it)
        if coords is None:
            continue
        folium.Marker(
            location=list(coords),
            popup=folium.Popup(popup_html(it, origin), max_width=300),
            tooltip=it.get("title", ""),
            icon=folium.Icon(color=status_color(it.get("status")), icon="exclamation-sign"),
        ).add_to(group)
        points.append(list(coords))
    group.add_to(fmap)
    return points


def add_route(fmap, route):
    coords = route.get("coordinates") or []
    if len(coords) < 2:
        return []
    folium.PolyLine(
        coords,
        color="#3B82F6",
        weight=5,
        opacity=0.8,
        dash_array="10, 10" if route.get("isFallback") else None,
    ).add_to(fmap)
    return coords


def padded_bounds(points, pad=0.1):
    lats = [p[0] for p in points]
    lngs = [p[1] for p in points]
    south, north, west, east = min(lats), max(lats), min(lngs), max(lngs)
    d_lat = (north - south) * pad
    d_lng = (east - west) * pad
    return [[south - d_lat, west - d_lng], [north + d_lat, east + d_lng]]


def build_issue_map(issues, center, admin_location=None, selected=None, route=None, zoom=13):
    """One map for every view: reporting, issue detail and admin routing.

    ``admin_location`` and ``selected`` are (lat, lng); ``route`` is a
    ``RoutingService.get_route`` result.
    """
    fmap = folium.Map(location=list(center), zoom_start=zoom, control_scale=True, tiles="OpenStreetMap")
    points = add_issue_markers(fmap, issues, origin=admin_location)

    if admin_location:
        folium.Marker(
            location=list(admin_location),
            popup="Your Current Location",
            tooltip="You are here",
            icon=folium.Icon(color="green", icon="user"),
        ).add_to(fmap)
        points.append(list(admin_location))

    if selected:
        folium.Marker(
            location=list(selected),
            popup=f"Selected Location<br/>{selected[0]:.6f}, {selected[1]:.6f}",
            icon=folium.Icon(color="blue", icon="map-marker"),
        ).add_to(fmap)
        points.append(list(selected))

    if route:
        points.extend(add_route(fmap, route))

    if len(points) > 1:
        fmap.fit_bounds(padded_bounds(points, pad=0.2 if route else 0.1))
    return fmap
