# app.py
# Civic Issues — Streamlit client for the Civic Issues REST API
# Features:
# - Report issues with category, description, photos and a pin on the map
# - Simulated AI detection that outlines problems on uploaded photos
# - Track your own reports, vote, read public admin notes and scheduled visits
# - Admin triage: filter/sort/export, status/priority updates, notes, visit scheduling
# - Admin map with distances and driving routes (OSRM) plus Google Maps / OSM / Waze links
# - Admin dashboard: headline stats, quick status changes, user management, AI weekly report
# - Profile, password and notification preferences; API and AI service status

from datetime import datetime, time as dtime

import pandas as pd
import streamlit as st
from streamlit_folium import st_folium

from civic_client.ai import report_range, weekly_report_filename, weekly_report_markdown
from civic_client.catalog import (
    CATEGORIES, NOTIFICATION_PREFERENCES, PRIORITIES, SORT_OPTIONS, STATUS, VOTE_TYPES,
    category_label, status_label,
)
from civic_client.config import get_settings
from civic_client.errors import CivicClientError, GeocodingError, user_message
from civic_client.image_analysis import analyze_image
from civic_client.issues import (
    coordinates_of, dashboard_stats, export_csv, export_filename, filter_issues, issue_distance,
    issues_frame, recent_issues, sort_by_distance, sort_issues, status_counts, urgent_open_issues, visible_notes,
)
from civic_client.location import ip_location
from civic_client.logging_config import configure_logging, get_logger
from civic_client.map_view import build_issue_map
from civic_client.routing import format_distance, format_distance_km, format_duration, routing_options
from civic_client.session import (
    browser_gps, current_position, ensure_user_id, get_ai, get_api,
    get_location_service, get_routing_service, notify_error, safe_rerun,
)

settings = get_settings()
configure_logging(settings.log_level, settings.json_logs)
logger = get_logger("civic_app")

CATEGORY_LABELS = {c["id"]: c["label"] for c in CATEGORIES}

# ----------------- shared bits -----------------

def pick_location(key):
    """Map click, IP lookup or browser GPS; stores the point in session_state."""
    center = current_position() or settings.default_center
    fmap = build_issue_map([], center, selected=current_position())
    map_data = st_folium(fmap, height=420, width=None, returned_objects=["last_clicked"], key=f"{key}_map")
    if map_data and map_data.get("last_clicked"):
        st.session_state.clicked_latlng = [map_data["last_clicked"]["lat"], map_data["last_clicked"]["lng"]]

    cols = st.columns(2)
    with cols[0]:
        if st.button("Use my current location (approx)", key=f"{key}_ip"):
            loc = ip_location()
            if loc:
                st.session_state.clicked_latlng = loc
                safe_rerun()
            else:
                st.warning("Could not determine location via IP. Please click on the map to choose a spot.")
    with cols[1]:
        if st.button("Get GPS from browser (high accuracy)", key=f"{key}_gps"):
            res = browser_gps(key=f"{key}_gps_js")
            if res.get("lat") is not None:
                st.session_state.clicked_latlng = [float(res["lat"]), float(res["lon"])]
                safe_rerun()
            else:
                st.warning(f"Could not obtain browser GPS: {res.get('error')}. Try IP lookup or pick on the map.")

    pos = current_position()
    if pos:
        st.info(f"Selected position: {pos[0]:.6f}, {pos[1]:.6f}")
    return pos


def render_notes(issue, is_admin):
    notes = visible_notes(issue, is_admin)
    if not notes:
        return
    with st.expander(f"Notes ({len(notes)})"):
        for note in notes:
            who = note.get("addedBy") or {}
            name = f"{who.get('firstName', '')} {who.get('lastName', '')}".strip() if isinstance(who, dict) else ""
            badge = "" if note.get("isPublic") else " (internal)"
            st.write(f"- [{(note.get('addedAt') or '')[:16]}] {note.get('note', '')} — {name or 'Admin'}{badge}")


def render_schedule(issue):
    if not issue.get("scheduledVisitAt"):
        return
    state = "confirmed" if issue.get("scheduleConfirmed") else "tentative"
    st.caption(f"🗓️ Scheduled visit: {issue['scheduledVisitAt'][:16].replace('T', ' ')} ({state})")
    if issue.get("scheduleMessage"):
        st.caption(issue["scheduleMessage"])


def render_routing_links(issue, origin=None):
    options = routing_options(issue, origin)
    if not options:
        st.caption("Issue location not available")
        return
    cols = st.columns(len(options))
    for col, opt in zip(cols, options):
        with col:
            if opt.get("url"):
                st.link_button(opt["name"], opt["url"])
            else:
                st.code(opt["text"], language=None)


def load_issues(**params):
    try:
        return get_api().issues.list_issues(**params)
    except CivicClientError as e:
        notify_error(e, "Failed to load issues: ")
        return []

# ----------------- sidebar: auth + navigation -----------------

def sidebar():
    api = get_api()
    tokens = api.tokens
    with st.sidebar:
        st.header("Account")
        if tokens.is_authenticated:
            user = tokens.user or {}
            st.write(f"Signed in as **{user.get('firstName', '')} {user.get('lastName', '')}**")
            st.caption(f"Role: {user.get('role', 'user')}")
            if st.button("Log out"):
                try:
                    api.auth.logout()
                except CivicClientError as e:
                    logger.warning("logout_failed", error=str(e))
                safe_rerun()
        else:
            mode = st.radio("Sign in as", ["Citizen", "Admin"], horizontal=True, key="login_mode")
            with st.form("login_form"):
                email = st.text_input("Email", key="login_email")
                password = st.text_input("Password", type="password", key="login_password")
                if st.form_submit_button("Sign in"):
                    try:
                        if mode == "Admin":
                            api.auth.login_admin(email, password)
                        else:
                            api.auth.login_user(email, password)
                        st.success("Login successful")
                        safe_rerun()
                    except CivicClientError as e:
                        notify_error(e)
            with st.expander("Create an account"):
                with st.form("register_form"):
                    first = st.text_input("First name")
                    last = st.text_input("Last name")
                    reg_email = st.text_input("Email", key="reg_email")
                    reg_password = st.text_input("Password", type="password", key="reg_password")
                    phone = st.text_input("Phone (optional)")
                    if st.form_submit_button("Sign up"):
                        try:
                            api.auth.register_user({
                                "firstName": first, "lastName": last, "email": reg_email,
                                "password": reg_password, "phone": phone or None,
                            })
                            st.success("Registration successful. Please check your email to verify your account.")
                        except CivicClientError as e:
                            notify_error(e)

        st.markdown("---")
        pages = [
            "Dashboard", "Report Issue", "My Issues", "Issue Details", "Profile",
            "AI Detection Demo", "Service Status",
        ]
        if tokens.is_admin:
            pages = ["Admin Dashboard", "Admin Issues", "Map"] + pages
        return st.radio("Go to", pages, key="page")

# ----------------- pages -----------------

def page_report():
    st.subheader("Report a New Issue")
    if not get_api().tokens.is_authenticated:
        st.info("Sign in to report an issue.")
        return

    pos = pick_location("report")
    address = None
    if pos:
        address = get_location_service().reverse_geocode(pos[0], pos[1])
        note = " (estimated)" if address.get("isEstimated") else ""
        st.caption(f"📍 {address['formatted']}{note}")

    with st.form("report_form", clear_on_submit=True):
        cols = st.columns(2)
        with cols[0]:
            title = st.text_input("Title *", key="report_title")
            description = st.text_area("Description *", height=120, key="report_description")
            category = st.selectbox("Category *", [c["id"] for c in CATEGORIES], format_func=CATEGORY_LABELS.get)
            priority = st.selectbox("Priority", PRIORITIES, index=1, format_func=str.title)
            typed_address = st.text_input("Address (optional, overrides the map pin)")
        with cols[1]:
            camera = st.camera_input("Take a photo (optional)")
            photos = st.file_uploader("Attach photos (optional)", type=["png", "jpg", "jpeg", "webp"],
                                      accept_multiple_files=True)
            suggest = st.checkbox("Let AI suggest the category", value=False)

        submitted = st.form_submit_button("Submit Issue")

    if not submitted:
        return
    if not title.strip() or not description.strip():
        st.error("Please fill Title and Description.")
        return

    chosen = pos
    if typed_address.strip():
        try:
            geo = get_location_service().geocode(typed_address)
            chosen = (geo["lat"], geo["lng"])
            address = get_location_service().reverse_geocode(chosen[0], chosen[1])
        except GeocodingError:
            st.warning("Address could not be geocoded; using selected coordinates.")
    if not chosen:
        st.error("Pick a spot on the map or enter an address.")
        return

    files = list(photos or [])
    if camera is not None:
        files.insert(0, camera)
    images = [(f.name, f.getvalue(), f.type) for f in files]

    if suggest:
        ai = get_ai()
        try:
            analyses = ai.analyze_images(images) if images else None
            result = ai.categorize_issue(description, [analyses] if analyses else [])
            if result.get("suggestedCategory") and result["suggestedCategory"] != category:
                st.info(f"AI suggests **{category_label(result['suggestedCategory'])}** "
                        f"({round(result.get('confidence', 0) * 100)}%). Using it.")
                category = result["suggestedCategory"]
        except CivicClientError as e:
            notify_error(e)
            return

    for name, content, _ in images:
        result = analyze_image(content, description)
        if result["success"]:
            st.image(result["annotated_image"], caption=f"{name}: {len(result['detected_issues'])} areas flagged")

    payload = {
        "title": title.strip(),
        "description": description.strip(),
        "category": category,
        "priority": priority,
        "location": {"type": "Point", "coordinates": [chosen[1], chosen[0]]},
        "address": address,
        "images": images,
    }
    try:
        issue = get_api().issues.create_issue(payload)
    except CivicClientError as e:
        notify_error(e, "Failed to submit issue: ")
        return
    logger.info("issue_submitted", issue_id=issue.get("_id") if isinstance(issue, dict) else None)
    st.success("Issue submitted!")


def issue_card(it, is_admin=False, origin=None):
    with st.container():
        top = st.columns([6, 2, 2])
        with top[0]:
            st.markdown(f"**{it.get('title', '(no title)')}**  \n{it.get('description', '')}")
            st.caption(f"Category: {category_label(it.get('category'))} • Status: {status_label(it.get('status'))} • "
                       f"Priority: {(it.get('priority') or 'medium').title()} • Votes: {it.get('totalVotes', 0)}")
            if (it.get("address") or {}).get("formatted"):
                st.caption(f"📍 {it['address']['formatted']}")
            distance = issue_distance(it, origin)
            if distance is not None:
                st.caption(f"🚗 {format_distance_km(distance)} away")
            st.caption(f"🕒 Created: {(it.get('createdAt') or '')[:16].replace('T', ' ')}")
            render_schedule(it)
            render_notes(it, is_admin)
        with top[1]:
            images = it.get("images") or []
            if images and images[0].get("url"):
                st.image(images[0]["url"], use_container_width=True, caption="Photo")
            else:
                st.write("No photo")
        with top[2]:
            for vote_type in VOTE_TYPES:
                icon = "👍" if vote_type == "upvote" else "👎"
                if st.button(f"{icon} {vote_type.title()}", key=f"{vote_type}_{it['_id']}"):
                    try:
                        get_api().issues.vote(it["_id"], vote_type)
                        safe_rerun()
                    except CivicClientError as e:
                        notify_error(e)
            if st.button("Details", key=f"details_{it['_id']}"):
                st.session_state.selected_issue_id = it["_id"]
                st.info("Open 'Issue Details' in the sidebar.")


def page_my_issues():
    api = get_api()
    st.subheader("My Issues")
    if not api.tokens.is_authenticated:
        st.info("Sign in to see your reports.")
        return
    try:
        issues = api.issues.get_by_user(api.tokens.user_id)
    except CivicClientError as e:
        notify_error(e, "Failed to load issues: ")
        issues = []
    counts = status_counts(issues)
    cols = st.columns(4)
    for col, key in zip(cols, ["total", "pending", "in_progress", "resolved"]):
        col.metric(status_label(key) if key != "total" else "Total", counts.get(key, 0))
    if not issues:
        st.write("You have not reported any issues yet.")
    for it in sort_issues(issues, "createdAt", "desc"):
        issue_card(it)


def page_issue_details():
    api = get_api()
    st.subheader("Issue Details")
    issue_id = st.text_input("Issue ID", value=st.session_state.get("selected_issue_id", ""))
    if not issue_id:
        return
    try:
        issue = api.issues.get_issue(issue_id)
    except CivicClientError as e:
        notify_error(e)
        return
    if not isinstance(issue, dict):
        st.warning("Issue not found.")
        return

    is_admin = api.tokens.is_admin
    origin = current_position()
    issue_card(issue, is_admin=is_admin, origin=origin)

    coords = coordinates_of(issue)
    if coords:
        st_folium(build_issue_map([issue], coords, admin_location=origin, zoom=15),
                  height=360, width=None, returned_objects=[], key="detail_map")
    st.markdown("**Directions**")
    render_routing_links(issue, origin)

    if st.button("Suggest resolution steps"):
        suggestions = get_ai().generate_resolution_suggestions(issue)
        st.write(f"Department: {suggestions.get('department', 'n/a')} • "
                 f"Estimated time: {suggestions.get('estimatedTime', 'n/a')}")
        for step in suggestions.get("steps") or []:
            st.write(f"- {step}")

    if is_admin:
        admin_update_form(issue, key="detail")
        if st.button("Delete issue", key=f"delete_{issue['_id']}"):
            try:
                api.issues.delete_issue(issue["_id"])
                st.session_state.pop("selected_issue_id", None)
                st.success("Issue deleted")
            except CivicClientError as e:
                notify_error(e, "Failed to delete issue: ")


def admin_update_form(issue, key):
    form_key = f"update_{key}_{issue['_id']}"
    with st.form(form_key):
        cols = st.columns(2)
        with cols[0]:
            status = st.selectbox("Status", STATUS, index=STATUS.index(issue.get("status") or "pending"),
                                  format_func=status_label, key=f"{form_key}_status")
            priority = st.selectbox("Priority", PRIORITIES,
                                    index=PRIORITIES.index(issue.get("priority") or "medium"), format_func=str.title,
                                    key=f"{form_key}_priority")
            note = st.text_area("Admin note", key=f"{form_key}_note")
            note_public = st.checkbox("Visible to reporter", value=False, key=f"{form_key}_public")
        with cols[1]:
            visit_date = st.date_input("Scheduled visit date", value=None, key=f"{form_key}_date")
            visit_time = st.time_input("Visit time", value=dtime(10, 0), key=f"{form_key}_time")
            confirmed = st.checkbox("Visit confirmed", value=bool(issue.get("scheduleConfirmed")),
                                    key=f"{form_key}_confirmed")
            message = st.text_input("Message to reporter", max_chars=200, key=f"{form_key}_message")
        if st.form_submit_button("Update issue"):
            scheduled = datetime.combine(visit_date, visit_time) if visit_date else None
            try:
                updated = get_api().issues.update_issue_admin(
                    issue, status=status, priority=priority, note=note, note_public=note_public,
                    scheduled_visit_at=scheduled, schedule_confirmed=confirmed, schedule_message=message,
                )
                if updated is None:
                    st.info("Nothing changed.")
                    return
                st.success("Issue updated successfully")
                safe_rerun()
            except CivicClientError as e:
                notify_error(e, "Failed to update issue: ")


def page_admin_issues():
    st.subheader("Manage Issues")
    issues = load_issues(limit=100, sortBy="createdAt", sortOrder="desc")

    with st.sidebar:
        st.header("Filters")
        search = st.text_input("Search")
        stt = st.selectbox("Status", ["all"] + STATUS, format_func=lambda x: "All" if x == "all" else status_label(x))
        prio = st.selectbox("Priority", ["all"] + PRIORITIES, format_func=str.title)
        cat = st.selectbox("Category", ["all"] + [c["id"] for c in CATEGORIES],
                           format_func=lambda x: "All" if x == "all" else CATEGORY_LABELS[x])
        sort_by = st.selectbox("Sort by", [o["id"] for o in SORT_OPTIONS],
                               format_func=lambda x: {o["id"]: o["label"] for o in SORT_OPTIONS}[x])
        order = st.radio("Order", ["desc", "asc"], horizontal=True)

    filtered = sort_issues(filter_issues(issues, search, stt, prio, cat), sort_by, order)
    counts = status_counts(issues)
    cols = st.columns(len(STATUS) + 1)
    cols[0].metric("Total", counts["total"])
    for col, s in zip(cols[1:], STATUS):
        col.metric(status_label(s), counts[s])

    st.caption(f"Showing {len(filtered)} of {len(issues)} issues")
    st.dataframe(issues_frame(filtered), use_container_width=True, hide_index=True)
    st.download_button("Export CSV", export_csv(filtered), file_name=export_filename(), mime="text/csv")

    for it in filtered:
        with st.expander(f"{it.get('title', '(no title)')} — {status_label(it.get('status'))}"):
            issue_card(it, is_admin=True, origin=current_position())
            render_routing_links(it, current_position())
            admin_update_form(it, key="list")


def page_map():
    st.subheader("Issue Map")
    issues = [it for it in load_issues(limit=100) if it.get("status") not in ("resolved", "rejected")]

    if st.button("Use my GPS position"):
        res = browser_gps(key="admin_gps_js")
        if res.get("lat") is not None:
            st.session_state.clicked_latlng = [float(res["lat"]), float(res["lon"])]
        else:
            st.warning(f"Could not obtain browser GPS: {res.get('error')}.")
    origin = current_position()

    route = None
    target = None
    if origin and issues:
        nearest_first = sort_by_distance(issues, origin)
        target = st.selectbox(
            "Route to", nearest_first,
            format_func=lambda it: f"{it.get('title')} ({format_distance_km(issue_distance(it, origin) or 0)})",
        )
        coords = coordinates_of(target) if target else None
        if coords:
            route = get_routing_service().get_route(
                {"lat": origin[0], "lng": origin[1]}, {"lat": coords[0], "lng": coords[1]})
            label = "straight-line estimate" if route.get("isFallback") else "driving"
            st.info(f"{format_distance(route['distance'])} • {format_duration(route['duration'])} ({label})")

    center = origin or settings.default_center
    fmap = build_issue_map(issues, center, admin_location=origin, route=route)
    st_folium(fmap, height=520, width=None, returned_objects=[], key="admin_map")
    if target:
        render_routing_links(target, origin)


def page_ai_demo():
    st.subheader("AI Detection Demo")
    st.caption("Upload a photo and describe the problem; detected areas are outlined in red.")
    photo = st.file_uploader("Photo", type=["png", "jpg", "jpeg", "webp"])
    description = st.text_input("Description", placeholder="e.g. deep pothole on the main road")
    if photo is None or not st.button("Analyze"):
        return
    result = analyze_image(photo, description)
    if not result["success"]:
        st.error(f"Image analysis failed: {result['error']}")
        return
    cols = st.columns(2)
    cols[0].image(photo, caption="Original", use_container_width=True)
    cols[1].image(result["annotated_image"], caption="Annotated", use_container_width=True)
    st.write(f"Average confidence: {round(result['confidence'] * 100)}%")
    for det in result["detected_issues"]:
        st.write(f"- {det['label']} ({round(det['confidence'] * 100)}%)")


def page_dashboard():
    api = get_api()
    st.subheader("My Dashboard")
    if not api.tokens.is_authenticated:
        st.info("Sign in to see your dashboard.")
        return
    try:
        mine = api.issues.get_by_user(api.tokens.user_id, limit=10)
    except CivicClientError as e:
        notify_error(e, "Failed to load your issues: ")
        mine = []
    counts = status_counts(mine)
    cols = st.columns(3)
    cols[0].metric("Reported", counts["total"])
    cols[1].metric("Pending", counts["pending"])
    cols[2].metric("Resolved", counts["resolved"])

    st.markdown("**Recent reports**")
    if not mine:
        st.write("Nothing reported yet.")
    for it in recent_issues(mine, 5):
        st.write(f"- {it.get('title', '(no title)')} ({status_label(it.get('status'))})")

    origin = current_position() or settings.default_center
    st.markdown("**Issues near you**")
    try:
        nearby = api.issues.get_by_location(origin[0], origin[1])
    except CivicClientError as e:
        notify_error(e, "Failed to load nearby issues: ")
        nearby = []
    if not nearby:
        st.write("No open issues within 5 km.")
    for it in sort_by_distance(nearby, origin):
        distance = issue_distance(it, origin)
        away = f" • {format_distance_km(distance)}" if distance is not None else ""
        st.write(f"- {it.get('title', '(no title)')} • {category_label(it.get('category'))}{away}")


def page_profile():
    api = get_api()
    st.subheader("Profile")
    if not api.tokens.is_authenticated:
        st.info("Sign in to manage your profile.")
        return
    if not st.session_state.get("profile_loaded"):
        try:
            api.auth.get_profile()
            st.session_state.profile_loaded = True
        except CivicClientError as e:
            notify_error(e)
    user = api.tokens.user or {}
    st.caption(f"Email: {user.get('email', '')}")

    with st.form("profile_form"):
        first = st.text_input("First name", value=user.get("firstName", ""), key="profile_first")
        last = st.text_input("Last name", value=user.get("lastName", ""), key="profile_last")
        phone = st.text_input("Phone", value=user.get("phone") or "", key="profile_phone")
        address = st.text_input("Address", value=user.get("address") or "", key="profile_address")
        if st.form_submit_button("Save profile"):
            try:
                api.auth.update_profile({"firstName": first, "lastName": last, "phone": phone, "address": address})
                st.success("Profile updated successfully")
            except CivicClientError as e:
                notify_error(e)

    with st.expander("Change password"):
        with st.form("password_form", clear_on_submit=True):
            current = st.text_input("Current password", type="password", key="pw_current")
            new = st.text_input("New password", type="password", key="pw_new")
            confirm = st.text_input("Confirm new password", type="password", key="pw_confirm")
            if st.form_submit_button("Change password"):
                if new != confirm:
                    st.error("New passwords do not match")
                else:
                    try:
                        api.auth.change_password(current, new)
                        st.success("Password changed successfully")
                    except CivicClientError as e:
                        notify_error(e)

    st.markdown("**Notifications**")
    saved = (user.get("preferences") or {}).get("notifications") or {}
    with st.form("preferences_form"):
        chosen = {
            p["id"]: st.checkbox(p["label"], value=saved.get(p["id"], p["default"]), key=f"pref_{p['id']}")
            for p in NOTIFICATION_PREFERENCES
        }
        if st.form_submit_button("Save preferences"):
            changed = {k: v for k, v in chosen.items() if saved.get(k) != v}
            try:
                api.users.update_preferences(changed)
                user.setdefault("preferences", {})["notifications"] = {**saved, **changed}
                st.success("Preferences updated successfully")
            except CivicClientError as e:
                notify_error(e)

    if st.button("Sign out of all devices"):
        try:
            api.auth.logout_all()
        except CivicClientError as e:
            logger.warning("logout_all_failed", error=str(e))
        safe_rerun()


def render_overview(api, issues):
    stats = dashboard_stats(issues)
    try:
        stats["totalUsers"] = (api.users.get_admin_stats() or {}).get("overall", {}).get("totalUsers", 0)
    except CivicClientError as e:
        logger.info("user_stats_unavailable", status=getattr(e, "status", None))
        stats["totalUsers"] = None

    cols = st.columns(5)
    cols[0].metric("Total Issues", stats["totalIssues"], f"+{stats['todayIssues']} today")
    cols[1].metric("Pending", stats["pendingIssues"])
    cols[2].metric("In Progress", stats["inProgressIssues"])
    cols[3].metric("Resolved", stats["resolvedIssues"])
    cols[4].metric("Users", stats["totalUsers"] if stats["totalUsers"] is not None else "n/a")
    if stats["avgResolutionTime"] is not None:
        st.caption(f"Average resolution time: {stats['avgResolutionTime']} h")

    try:
        by_category = (api.issues.get_stats() or {}).get("byCategory") or []
    except CivicClientError as e:
        notify_error(e, "Failed to load statistics: ")
        by_category = []
    if by_category:
        frame = pd.DataFrame(
            {"Category": [category_label(c.get("_id")) for c in by_category],
             "Issues": [c.get("count", 0) for c in by_category]}
        ).set_index("Category")
        st.bar_chart(frame)

    urgent = urgent_open_issues(issues)
    if urgent:
        st.markdown(f"**🚨 Urgent issues ({len(urgent)})**")
        for it in urgent:
            st.write(f"- {it.get('title', '(no title)')} ({status_label(it.get('status'))})")

    st.markdown("**Recent issues**")
    for it in recent_issues(issues):
        cols = st.columns([6, 3])
        cols[0].write(f"{it.get('title', '(no title)')} • {category_label(it.get('category'))}")
        current = it.get("status") or "pending"
        new_status = cols[1].selectbox("Status", STATUS, index=STATUS.index(current), format_func=status_label,
                                       key=f"quick_status_{it['_id']}", label_visibility="collapsed")
        if new_status != current:
            try:
                api.issues.update_status(it["_id"], new_status)
                st.success("Issue status updated successfully")
                safe_rerun()
            except CivicClientError as e:
                notify_error(e, "Failed to update issue status: ")


def render_users(api):
    try:
        users = (api.users.get_users({"limit": 50}) or {}).get("users", [])
    except CivicClientError as e:
        notify_error(e, "Failed to load users: ")
        return
    if not users:
        st.write("No users found.")
        return
    for u in users:
        name = f"{u.get('firstName', '')} {u.get('lastName', '')}".strip() or u.get("email", "")
        active = "active" if u.get("isActive", True) else "inactive"
        with st.expander(f"{name} • {u.get('role', 'user')} • {active}"):
            if st.button("Show details", key=f"user_details_{u['_id']}"):
                try:
                    detail = api.users.get_user(u["_id"])
                    issue_stats = detail.get("issueStats") or {}
                    st.write(f"Email: {detail.get('email', '')} • Reported: {issue_stats.get('totalReported', 0)} "
                             f"• Pending: {issue_stats.get('pendingIssues', 0)} "
                             f"• Resolved: {issue_stats.get('resolvedIssues', 0)}")
                    for it in api.users.get_user_issues(u["_id"], {"limit": 5}):
                        st.write(f"- {it.get('title', '(no title)')} ({status_label(it.get('status'))})")
                except CivicClientError as e:
                    notify_error(e)
            cols = st.columns(2)
            with cols[0]:
                role = st.selectbox("Role", ["user", "admin"], index=1 if u.get("role") == "admin" else 0,
                                    key=f"user_role_{u['_id']}")
                if role != u.get("role", "user") and st.button("Save role", key=f"user_role_save_{u['_id']}"):
                    try:
                        api.users.update_user(u["_id"], {"role": role})
                        st.success("User updated")
                        safe_rerun()
                    except CivicClientError as e:
                        notify_error(e)
            with cols[1]:
                label = "Deactivate" if u.get("isActive", True) else "Activate"
                if st.button(label, key=f"user_toggle_{u['_id']}"):
                    try:
                        api.users.toggle_user_status(u["_id"])
                        safe_rerun()
                    except CivicClientError as e:
                        notify_error(e)


def render_weekly_report():
    default_start, default_end = report_range()
    cols = st.columns(2)
    start = cols[0].date_input("From", value=default_start, key="report_start")
    end = cols[1].date_input("To", value=default_end, key="report_end")
    if st.button("Generate report"):
        try:
            st.session_state.weekly_report = (get_ai().get_weekly_report(start, end), start, end)
            st.success("Weekly report generated successfully")
        except CivicClientError as e:
            notify_error(e, "Failed to generate report: ")
    if "weekly_report" not in st.session_state:
        return
    report, start, end = st.session_state.weekly_report
    report = report or {}
    st.metric("Issues in period", report.get("issueCount", 0))
    st.write(report.get("summary") or "")
    for title, key in (("Key insights", "insights"), ("Recommendations", "recommendations")):
        if report.get(key):
            st.markdown(f"**{title}**")
            for line in report[key]:
                st.write(f"- {line}")
    st.download_button("Download report", weekly_report_markdown(report, start, end),
                       file_name=weekly_report_filename(start, end), mime="text/markdown")


def page_admin_dashboard():
    api = get_api()
    st.subheader("Admin Dashboard")
    tabs = st.tabs(["Overview", "Users", "Weekly report"])
    with tabs[0]:
        render_overview(api, load_issues(limit=100))
    with tabs[1]:
        render_users(api)
    with tabs[2]:
        render_weekly_report()


def page_status():
    api = get_api()
    ai = get_ai()
    st.subheader("Service Status")
    cols = st.columns(2)
    try:
        health = api.utils.health_check() or {}
        cols[0].success(f"API: {health.get('status', 'OK')} • {health.get('message', '')}")
    except CivicClientError as e:
        cols[0].error(f"API: unavailable ({user_message(e)})")
    if ai.check_service_health():
        cols[1].success("AI service: healthy")
    else:
        cols[1].warning("AI service: degraded (local fallbacks in use)")

    config = ai.config()
    st.caption(f"AI enabled: {config['enabled']} • formats: {', '.join(config['supportedFormats'])} • "
               f"max {config['maxFileSize'] // (1024 * 1024)}MB, {config['maxBatchSize']} images per batch")
    if api.tokens.is_admin:
        stats = ai.get_service_stats() or {}
        cols = st.columns(3)
        cols[0].metric("Analyses", stats.get("analysisCount", 0))
        cols[1].metric("Accuracy", f"{round((stats.get('accuracy') or 0) * 100)}%")
        cols[2].metric("Avg response", f"{stats.get('averageResponseTime') or 0} ms")

# ----------------- UI -----------------

st.set_page_config(page_title="Civic Issues", layout="wide")
st.title("🗺️ Civic Issues — Report & Resolve")

ensure_user_id()
page = sidebar()

PAGES = {
    "Dashboard": page_dashboard,
    "Admin Dashboard": page_admin_dashboard,
    "Report Issue": page_report,
    "My Issues": page_my_issues,
    "Issue Details": page_issue_details,
    "Admin Issues": page_admin_issues,
    "Map": page_map,
    "Profile": page_profile,
    "AI Detection Demo": page_ai_demo,
    "Service Status": page_status,
}
PAGES[page]()

st.markdown("---")
st.write("Civic Issues — Built with Streamlit")
