"""Internationalisation helpers for the trip planner."""

from __future__ import annotations

from typing import Dict, Mapping, Optional


class Translator:
    """Store translations for short interface strings."""

    def __init__(self, default_locale: str = "de", *, translations: Optional[Mapping[str, Mapping[str, str]]] = None) -> None:
        self.default_locale = default_locale
        self._translations: Dict[str, Dict[str, str]] = {
            "de": {
                "app.title": "Trip Planner",
                "family.cost.family": "Voraussichtliche Kosten für deine Family",
                "family.cost.just you": "Voraussichtliche Kosten für dich",
                "meal.breakfast": "Frühstück",
                "meal.lunch": "Mittagessen",
                "meal.dinner": "Abendessen",
                "rsvp.yes": "zugesagt",
                "rsvp.no": "abgesagt",
                "rsvp.pending": "offen",
                "tab.calendar": "Kalender",
                "tab.meals": "Meals",
                "tab.flights": "Flüge",
                "leg.arrival": "Ankunft",
                "leg.departure": "Abflug",
                "status.loading": "lädt…",
                "status.stale": "Daten evtl. veraltet",
            },
            "en": {
                "app.title": "Trip Planner",
                "family.cost.family": "Expected cost for your family",
                "family.cost.just you": "Expected cost for you",
                "meal.breakfast": "Breakfast",
                "meal.lunch": "Lunch",
                "meal.dinner": "Dinner",
                "rsvp.yes": "going",
                "rsvp.no": "not going",
                "rsvp.pending": "open",
                "tab.calendar": "Calendar",
                "tab.meals": "Meals",
                "tab.flights": "Flights",
                "leg.arrival": "Arrival",
                "leg.departure": "Departure",
                "status.loading": "loading…",
                "status.stale": "data may be stale",
            },
        }
        if translations:
            for locale, mapping in translations.items():
                self._translations.setdefault(locale, {}).update(mapping)

    def set_translation(self, locale: str, key: str, value: str) -> None:
        self._translations.setdefault(locale, {})[key] = value

    def translate(self, key: str, *, locale: Optional[str] = None) -> str:
        target_locale = locale or self.default_locale
        language = self._translations.get(target_locale) or self._translations[self.default_locale]
        return language.get(key, key)

    def available_locales(self) -> tuple[str, ...]:
        return tuple(sorted(self._translations))


__all__ = ["Translator"]
