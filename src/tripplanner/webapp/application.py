"""FastAPI frontend for the trip planner.

Server-rendered pages for the calendar, meals and flights tabs.  Every
logged-in browser owns a :class:`~tripplanner.sessions.TripSession` with its
own data mirror and reload timer; the forms post intents that the session's
store applies locally before writing them to the shared database.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from html import escape as html_escape
from typing import List, Optional, Sequence, Tuple

from fastapi import FastAPI, Form, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from starlette.middleware.sessions import SessionMiddleware

from ..admin import AuditLog
from ..api import TripExporter
from ..costs import expected_cost, is_full, rsvp_breakdown
from ..exceptions import AdminLockedError, NotManagedError, UnknownPersonError
from ..family import FamilyResolver
from ..formatting import (
    format_day_label,
    format_eur,
    format_time_range,
    new_event_id,
    parse_capacity,
    parse_price,
)
from ..i18n import Translator
from ..models import FLIGHT_LEGS, MealSlot, RsvpStatus, TripEvent
from ..ops import StructuredLogger
from ..sessions import SessionRegistry, TripSession
from .config import (
    LOG_FILE,
    REMEMBER_COOKIE_MAX_AGE,
    REMEMBER_NAME_COOKIE,
    SESSION_ID_KEY,
    SESSION_IDLE_TIMEOUT,
    SESSION_SECRET,
    TRIP_CONFIG,
    UI_LOCALE,
)
from .persistence import backend

logger = StructuredLogger(path=LOG_FILE)
audit_log = AuditLog()
resolver = FamilyResolver.from_config(TRIP_CONFIG)
registry = SessionRegistry(
    backend,
    TRIP_CONFIG,
    resolver=resolver,
    logger=logger,
    audit=audit_log,
    idle_timeout=SESSION_IDLE_TIMEOUT,
)
translator = Translator(UI_LOCALE)
exporter = TripExporter()

TABS: Tuple[str, ...] = ("calendar", "meals", "flights")
NAME_LIST_LIMIT = 10


def t(key: str) -> str:
    return translator.translate(key)


# ---------------------------------------------------------------------------
# FastAPI application setup
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.log("app_started", participants=len(TRIP_CONFIG.participants), days=len(TRIP_CONFIG.days))
    yield
    await registry.shutdown()
    logger.log("app_stopped")


app = FastAPI(title="Trip Planner", lifespan=lifespan)
app.add_middleware(
    SessionMiddleware,
    secret_key=SESSION_SECRET,
    same_site="lax",
    max_age=REMEMBER_COOKIE_MAX_AGE,
)


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------
def current_session(request: Request) -> Optional[TripSession]:
    registry.expire_idle()
    session = registry.find(request.session.get(SESSION_ID_KEY))
    if session is not None:
        session.touch()
    return session


def to_login(request: Request) -> RedirectResponse:
    request.session.pop(SESSION_ID_KEY, None)
    return RedirectResponse("/", status_code=302)


def back_to(tab: str) -> RedirectResponse:
    return RedirectResponse(f"/trip?tab={tab if tab in TABS else 'calendar'}", status_code=302)


def set_notice(request: Request, message: str, kind: str = "info") -> None:
    request.session["trip_notice"] = message
    request.session["trip_notice_kind"] = kind


def pop_notice(request: Request) -> Tuple[Optional[str], str]:
    message = request.session.pop("trip_notice", None)
    kind = request.session.pop("trip_notice_kind", "info")
    return message, kind


def scope_people(session: TripSession, scope: str) -> List[str]:
    if scope == "me":
        return [session.acting_person]
    if scope == "family":
        return list(session.managed)
    if scope == "kids":
        return session.kids
    raise ValueError(f"Unknown scope {scope!r}.")


async def start_session(request: Request, name: str) -> RedirectResponse:
    session = await registry.login(name)
    previous_id = request.session.get(SESSION_ID_KEY)
    if previous_id:
        # one session and one poll timer per browser
        registry.logout(previous_id)
    request.session[SESSION_ID_KEY] = session.id
    response = RedirectResponse("/trip", status_code=302)
    response.set_cookie(
        REMEMBER_NAME_COOKIE,
        session.user,
        max_age=REMEMBER_COOKIE_MAX_AGE,
        httponly=True,
    )
    return response


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------
def base_styles() -> str:
    return """
    <style>
      :root{ --bg:#f5f3ff; --card:#ffffff; --muted:#64748b; --accent:#4f46e5; --good:#059669; --bad:#e11d48; --text:#0f172a; }
      body{ font-family:system-ui,-apple-system,Segoe UI,Roboto,sans-serif; background:var(--bg); color:var(--text); margin:0; }
      .wrap{ max-width:960px; margin:0 auto; padding:16px; }
      .card{ background:var(--card); border:1px solid #e2e8f0; border-radius:16px; padding:14px; margin-bottom:12px; }
      .topbar{ display:flex; flex-wrap:wrap; justify-content:space-between; align-items:center; gap:8px; }
      .row{ display:flex; flex-wrap:wrap; gap:6px; align-items:center; }
      .muted{ color:var(--muted); font-size:13px; }
      .pill{ display:inline-block; border-radius:999px; padding:2px 10px; font-size:12px; border:1px solid #cbd5e1; }
      .pill.yes{ background:#d1fae5; border-color:#6ee7b7; }
      .pill.no{ background:#ffe4e6; border-color:#fda4af; }
      .pill.full{ background:#fee2e2; border-color:#f87171; }
      .notice{ border-left:4px solid var(--accent); }
      .notice.error{ border-left-color:var(--bad); }
      .tabs a{ margin-right:12px; font-weight:600; text-decoration:none; color:var(--muted); }
      .tabs a.active{ color:var(--accent); }
      button{ border-radius:10px; border:1px solid #cbd5e1; background:#fff; padding:5px 10px; cursor:pointer; }
      button.good{ background:var(--good); color:#fff; border-color:var(--good); }
      button.bad{ background:var(--bad); color:#fff; border-color:var(--bad); }
      input, select, textarea{ border-radius:8px; border:1px solid #cbd5e1; padding:5px 8px; }
      form.inline{ display:inline; }
    </style>
    """


def frame(title: str, inner: str) -> str:
    return (
        "<html><head><meta charset='utf-8'><meta name='viewport' "
        f"content='width=device-width,initial-scale=1'><title>{html_escape(title)}</title>"
        f"{base_styles()}</head><body><div class='wrap'>{inner}</div></body></html>"
    )


def render_page(request: Optional[Request], title: str, inner: str, *, status_code: int = 200) -> HTMLResponse:
    notice_html = ""
    if request is not None:
        message, kind = pop_notice(request)
        if message:
            notice_html = f"<div class='card notice {html_escape(kind)}'>{html_escape(message)}</div>"
    return HTMLResponse(frame(title, notice_html + inner), status_code=status_code)


def _names(title: str, names: Sequence[str]) -> str:
    if not names:
        return ""
    shown = ", ".join(html_escape(name) for name in names[:NAME_LIST_LIMIT])
    extra = len(names) - NAME_LIST_LIMIT
    more = f" <span class='muted'>+{extra}</span>" if extra > 0 else ""
    return f"<div class='muted'>{html_escape(title)} ({len(names)}): {shown}{more}</div>"


def _post_button(action: str, label: str, fields: Sequence[Tuple[str, str]], css: str = "") -> str:
    hidden = "".join(
        f"<input type='hidden' name='{html_escape(name)}' value='{html_escape(value)}'>" for name, value in fields
    )
    css_attr = f" class='{css}'" if css else ""
    return f"<form class='inline' method='post' action='{action}'>{hidden}<button{css_attr}>{html_escape(label)}</button></form>"


def header_html(session: TripSession, tab: str) -> str:
    store = session.store
    family = resolver.family_group_for_costs(session.user)
    cost = expected_cost(store.events, family.people)
    acting_picker = ""
    if len(session.managed) > 1:
        options = "".join(
            f"<option value='{html_escape(person)}'{' selected' if person == session.acting_person else ''}>"
            f"{html_escape(person)}</option>"
            for person in session.managed
        )
        acting_picker = (
            "<form class='inline' method='post' action='/acting'>"
            f"<input type='hidden' name='tab' value='{tab}'>"
            f"<label class='muted'>Ändern für </label><select name='person'>{options}</select> "
            "<button>OK</button></form>"
        )
    admin_controls = ""
    if session.user == TRIP_CONFIG.admin_name:
        if session.admin_unlocked:
            admin_controls = _post_button("/admin/lock", "Admin: an", [("tab", tab)])
        else:
            admin_controls = (
                "<form class='inline' method='post' action='/admin/unlock'>"
                f"<input type='hidden' name='tab' value='{tab}'>"
                "<input name='pin' placeholder='PIN' inputmode='numeric' size='5'> <button>Admin</button></form>"
            )
    badges = ""
    if store.is_loading:
        badges += f" <span class='pill'>{t('status.loading')}</span>"
    if store.is_stale:
        badges += f" <span class='pill no'>{t('status.stale')}: {html_escape(store.load_error)}</span>"
    tabs = "".join(
        f"<a class='{'active' if name == tab else ''}' href='/trip?tab={name}'>{t('tab.' + name)}</a>" for name in TABS
    )
    return f"""
    <div class='card'>
      <div class='topbar'>
        <h2 style='margin:0;'>{t('app.title')}</h2>
        <div class='row'>
          {_post_button('/refresh', 'Refresh', [('tab', tab)])}
          {_post_button('/logout', 'Logout', [])}
          {admin_controls}
        </div>
      </div>
      <p>Angemeldet als <strong>{html_escape(session.user)}</strong> {acting_picker}</p>
      <p>{t('family.cost.' + family.label)}: <strong>{format_eur(cost)}</strong> <span class='muted'>(nur Zusagen)</span>{badges}</p>
      <div class='tabs'>{tabs}</div>
    </div>
    """


def event_form_html(event: Optional[TripEvent] = None) -> str:
    draft_id = event.id if event else new_event_id()
    days = "".join(
        f"<option value='{day}'{' selected' if event and event.date == day else ''}>{format_day_label(day)}</option>"
        for day in TRIP_CONFIG.days
    )

    def value(attr: str) -> str:
        if event is None:
            return ""
        raw = getattr(event, attr)
        return "" if raw is None else html_escape(str(raw))

    return f"""
    <form method='post' action='/admin/events' class='row'>
      <input type='hidden' name='event_id' value='{html_escape(draft_id)}'>
      <input name='title' placeholder='Titel' value='{value('title')}' required>
      <select name='date'>{days}</select>
      <input name='start_time' placeholder='HH:MM' size='5' value='{value('start_time')}'>
      <input name='end_time' placeholder='HH:MM' size='5' value='{value('end_time')}'>
      <input name='price' placeholder='Preis (€)' size='7' inputmode='decimal' value='{value('price')}'>
      <input name='capacity' placeholder='Kapazität' size='6' inputmode='numeric' value='{value('capacity')}'>
      <input name='location' placeholder='Ort' value='{value('location')}'>
      <textarea name='description' placeholder='Beschreibung' rows='1'>{value('description')}</textarea>
      <button class='good'>{'Speichern' if event else 'Event anlegen'}</button>
    </form>
    """


def event_card_html(session: TripSession, event: TripEvent) -> str:
    breakdown = rsvp_breakdown(event, TRIP_CONFIG.participants)
    mine = event.status_for(session.acting_person)
    full = is_full(event)
    count = (
        f"<span class='pill{' full' if full else ''}'>{len(breakdown.yes)}/{event.capacity}</span>"
        if event.capacity
        else f"<span class='pill'>{len(breakdown.yes)} dabei</span>"
    )
    meta = " · ".join(
        part
        for part in (
            format_time_range(event.start_time, event.end_time),
            format_eur(event.price) if event.price is not None else "",
            html_escape(event.location),
        )
        if part
    )
    rsvp_buttons = ""
    if not (full and mine is not RsvpStatus.YES):
        rsvp_buttons += _post_button("/rsvp", "Zusagen", [("event_id", event.id), ("status", "yes")], "good")
    rsvp_buttons += _post_button("/rsvp", "Absagen", [("event_id", event.id), ("status", "no")], "bad")
    family_buttons = ""
    if len(session.managed) > 1:
        family_buttons = "<div class='row'><span class='pill'>Meine Family</span>"
        family_buttons += _post_button("/rsvp/many", "Alle zusagen", [("event_id", event.id), ("status", "yes"), ("scope", "family")])
        family_buttons += _post_button("/rsvp/many", "Alle absagen", [("event_id", event.id), ("status", "no"), ("scope", "family")])
        if session.kids:
            family_buttons += _post_button("/rsvp/many", "Nur Kids zusagen", [("event_id", event.id), ("status", "yes"), ("scope", "kids")], "good")
            family_buttons += _post_button("/rsvp/many", "Nur Kids absagen", [("event_id", event.id), ("status", "no"), ("scope", "kids")], "bad")
        family_buttons += "</div>"
    admin_html = ""
    if session.admin_unlocked:
        last = audit_log.last_for(event.id)
        edited = (
            f"<div class='muted'>Zuletzt bearbeitet von {html_escape(last.actor)} um {last.at:%H:%M}</div>"
            if last
            else ""
        )
        admin_html = (
            edited
            + f"<details><summary class='muted'>Bearbeiten</summary>{event_form_html(event)}</details>"
            + _post_button(f"/admin/events/{html_escape(event.id)}/delete", "Löschen", [], "bad")
        )
    description = f"<p class='muted'>{html_escape(event.description)}</p>" if event.description else ""
    return f"""
    <div class='card'>
      <div class='topbar'>
        <div class='row'><strong>{html_escape(event.title)}</strong> {count}
          <span class='pill {mine.value}'>{html_escape(session.acting_person)}: {t('rsvp.' + mine.value)}</span></div>
        <div class='row'>{rsvp_buttons}</div>
      </div>
      <div class='muted'>{meta}</div>
      {description}
      {family_buttons}
      {_names('Zusagen', breakdown.yes)}{_names('Absagen', breakdown.no)}{_names('Offen', breakdown.pending)}
      {admin_html}
    </div>
    """


def calendar_html(session: TripSession) -> str:
    parts = []
    if session.admin_unlocked:
        parts.append(f"<div class='card'><h3>Neues Event</h3>{event_form_html()}</div>")
    for day in TRIP_CONFIG.days:
        events = session.store.snapshot.events_on(day)
        cards = "".join(event_card_html(session, event) for event in events) or "<p class='muted'>Keine Events (noch).</p>"
        parts.append(f"<h3>{format_day_label(day)} <span class='pill'>{len(events)} Events</span></h3>{cards}")
    return "".join(parts)


def meals_html(session: TripSession) -> str:
    parts = []
    for day in TRIP_CONFIG.days:
        slots = []
        for slot in MealSlot:
            signups = session.store.meals.get(day, {}).get(slot, {})
            joined = [person for person in TRIP_CONFIG.participants if signups.get(person)]
            signed_up = bool(signups.get(session.acting_person))
            base = [("day", day), ("meal", slot.value)]
            buttons = _post_button(
                "/meals/toggle", "Abmelden" if signed_up else "Anmelden", base, "bad" if signed_up else "good"
            )
            if len(session.managed) > 1:
                buttons += _post_button("/meals/many", "Alle anmelden", base + [("value", "1"), ("scope", "family")])
                buttons += _post_button("/meals/many", "Alle abmelden", base + [("value", "0"), ("scope", "family")])
                if session.kids:
                    buttons += _post_button("/meals/many", "Nur Kids anmelden", base + [("value", "1"), ("scope", "kids")], "good")
                    buttons += _post_button("/meals/many", "Nur Kids abmelden", base + [("value", "0"), ("scope", "kids")], "bad")
            slots.append(
                f"<div class='card'><div class='topbar'><strong>{t('meal.' + slot.value)}</strong>"
                f"<div class='row'>{buttons}</div></div>{_names('Anmeldungen', joined)}</div>"
            )
        parts.append(f"<h3>{format_day_label(day)}</h3>{''.join(slots)}")
    return "".join(parts)


def flights_html(session: TripSession) -> str:
    profile = session.store.profile(session.acting_person)
    forms = []
    for leg_name in FLIGHT_LEGS:
        leg = getattr(profile, leg_name)
        date_value = html_escape(leg.date) if leg else ""
        time_value = html_escape(leg.time) if leg else ""
        flight_value = html_escape(leg.flight) if leg else ""
        forms.append(
            f"""
            <div class='card'>
              <strong>{t('leg.' + leg_name)}</strong>
              <form method='post' action='/profile' class='row'>
                <input type='hidden' name='leg' value='{leg_name}'>
                <input type='date' name='date' value='{date_value}'>
                <input name='time' placeholder='HH:MM' size='5' value='{time_value}'>
                <input name='flight' placeholder='Flug' value='{flight_value}'>
                <button>Speichern</button>
              </form>
            </div>
            """
        )
    intro = f"<p class='muted'>Du bearbeitest gerade: <strong>{html_escape(session.acting_person)}</strong></p>"
    return intro + "".join(forms)


# ---------------------------------------------------------------------------
# Login routes
# ---------------------------------------------------------------------------
def login_page(request: Request, error: str = "") -> HTMLResponse:
    options = "".join(
        f"<option value='{html_escape(name)}'>{html_escape(name)}</option>" for name in TRIP_CONFIG.participants
    )
    error_html = f"<p style='color:#e11d48;'>{html_escape(error)}</p>" if error else ""
    inner = f"""
    <div class='card'>
      <h3>{t('app.title')}</h3>
      {error_html}
      <form method='post' action='/login'>
        <label>Wer bist du?</label> <select name='name'>{options}</select>
        <button class='good' type='submit'>Los geht's</button>
      </form>
    </div>
    """
    return render_page(request, t("app.title"), inner)


@app.get("/", response_class=HTMLResponse)
async def index(request: Request):
    if current_session(request) is not None:
        return RedirectResponse("/trip", status_code=302)
    remembered = request.cookies.get(REMEMBER_NAME_COOKIE, "")
    if remembered and TRIP_CONFIG.is_participant(remembered):
        return await start_session(request, remembered)
    return login_page(request)


@app.post("/login")
async def login(request: Request, name: str = Form(...)):
    try:
        return await start_session(request, name)
    except UnknownPersonError as exc:
        return login_page(request, str(exc))


@app.post("/logout")
async def logout(request: Request):
    session_id = request.session.get(SESSION_ID_KEY)
    if session_id:
        registry.logout(session_id)
    request.session.clear()
    response = RedirectResponse("/", status_code=302)
    response.delete_cookie(REMEMBER_NAME_COOKIE, path="/")
    return response


# ---------------------------------------------------------------------------
# Trip routes
# ---------------------------------------------------------------------------
@app.get("/trip", response_class=HTMLResponse)
async def trip_home(request: Request, tab: str = Query("calendar")):
    session = current_session(request)
    if session is None:
        return to_login(request)
    selected = tab if tab in TABS else "calendar"
    body = {"calendar": calendar_html, "meals": meals_html, "flights": flights_html}[selected](session)
    return render_page(request, t("app.title"), header_html(session, selected) + body)


@app.post("/acting")
async def set_acting_person(request: Request, person: str = Form(...), tab: str = Form("calendar")):
    session = current_session(request)
    if session is None:
        return to_login(request)
    try:
        registry.act_as(session.id, person)
    except NotManagedError as exc:
        set_notice(request, str(exc), "error")
    return back_to(tab)


@app.post("/refresh")
async def refresh(request: Request, tab: str = Form("calendar")):
    session = current_session(request)
    if session is None:
        return to_login(request)
    if not await session.store.reload_all():
        set_notice(request, f"Laden fehlgeschlagen: {session.store.load_error}", "error")
    return back_to(tab)


@app.post("/rsvp")
async def rsvp(request: Request, event_id: str = Form(...), status: str = Form(...)):
    session = current_session(request)
    if session is None:
        return to_login(request)
    try:
        session.store.set_rsvp(event_id, session.acting_person, status)
    except ValueError as exc:
        set_notice(request, str(exc), "error")
    return back_to("calendar")


@app.post("/rsvp/many")
async def rsvp_many(
    request: Request,
    event_id: str = Form(...),
    status: str = Form(...),
    scope: str = Form("family"),
):
    session = current_session(request)
    if session is None:
        return to_login(request)
    try:
        session.store.set_rsvp_many(event_id, scope_people(session, scope), status)
    except ValueError as exc:
        set_notice(request, str(exc), "error")
    return back_to("calendar")


@app.post("/meals/toggle")
async def meals_toggle(request: Request, day: str = Form(...), meal: str = Form(...)):
    session = current_session(request)
    if session is None:
        return to_login(request)
    try:
        session.store.toggle_meal(day, meal, session.acting_person)
    except ValueError as exc:
        set_notice(request, str(exc), "error")
    return back_to("meals")


@app.post("/meals/many")
async def meals_many(
    request: Request,
    day: str = Form(...),
    meal: str = Form(...),
    value: str = Form(...),
    scope: str = Form("family"),
):
    session = current_session(request)
    if session is None:
        return to_login(request)
    enabled = value.strip().lower() in {"1", "true", "on", "yes"}
    try:
        session.store.set_meal_many(day, meal, scope_people(session, scope), enabled)
    except ValueError as exc:
        set_notice(request, str(exc), "error")
    return back_to("meals")


@app.post("/profile")
async def profile_update(
    request: Request,
    leg: str = Form(...),
    date: str = Form(""),
    time: str = Form(""),
    flight: str = Form(""),
):
    session = current_session(request)
    if session is None:
        return to_login(request)
    try:
        session.store.update_profile(session.acting_person, {leg: {"date": date, "time": time, "flight": flight}})
    except ValueError as exc:
        set_notice(request, str(exc), "error")
    return back_to("flights")


# ---------------------------------------------------------------------------
# Admin routes
# ---------------------------------------------------------------------------
@app.post("/admin/unlock")
async def admin_unlock(request: Request, pin: str = Form(""), tab: str = Form("calendar")):
    session = current_session(request)
    if session is None:
        return to_login(request)
    try:
        if not registry.unlock_admin(session.id, pin):
            set_notice(request, "Falsche PIN", "error")
    except AdminLockedError as exc:
        set_notice(request, str(exc), "error")
    return back_to(tab)


@app.post("/admin/lock")
async def admin_lock(request: Request, tab: str = Form("calendar")):
    session = current_session(request)
    if session is None:
        return to_login(request)
    registry.lock_admin(session.id)
    return back_to(tab)


@app.post("/admin/events")
async def admin_save_event(
    request: Request,
    event_id: str = Form(""),
    title: str = Form(...),
    date: str = Form(...),
    start_time: str = Form(""),
    end_time: str = Form(""),
    location: str = Form(""),
    description: str = Form(""),
    capacity: str = Form(""),
    price: str = Form(""),
):
    session = current_session(request)
    if session is None:
        return to_login(request)
    try:
        registry.require_admin(session.id)
    except AdminLockedError as exc:
        set_notice(request, str(exc), "error")
        return back_to("calendar")
    payload = {
        "id": event_id.strip() or new_event_id(),
        "title": title.strip(),
        "date": date.strip(),
        "start_time": start_time,
        "end_time": end_time,
        "location": location,
        "description": description,
        "capacity": parse_capacity(capacity),
        "price": parse_price(price),
    }
    try:
        saved = await session.store.upsert_event(payload)
    except ValueError as exc:
        set_notice(request, str(exc), "error")
        return back_to("calendar")
    audit_log.record(session.user, "upsert_event", payload["id"], title=payload["title"], saved=saved)
    if not saved:
        set_notice(request, "Event konnte nicht gespeichert werden.", "error")
    return back_to("calendar")


@app.post("/admin/events/{event_id}/delete")
async def admin_delete_event(request: Request, event_id: str):
    session = current_session(request)
    if session is None:
        return to_login(request)
    try:
        registry.require_admin(session.id)
    except AdminLockedError as exc:
        set_notice(request, str(exc), "error")
        return back_to("calendar")
    deleted = await session.store.delete_event(event_id)
    audit_log.record(session.user, "delete_event", event_id, deleted=deleted)
    return back_to("calendar")


# ---------------------------------------------------------------------------
# JSON API
# ---------------------------------------------------------------------------
@app.get("/api/state")
async def api_state(request: Request):
    session = current_session(request)
    if session is None:
        return JSONResponse({"error": "Not logged in"}, status_code=401)
    return JSONResponse(exporter.session(session, resolver))


__all__ = [
    "app",
    "audit_log",
    "logger",
    "registry",
    "resolver",
]
