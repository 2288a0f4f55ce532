"""
Question Selector

Turns validation results into one natural Dutch question. Users never see
raw validation errors; they get the question for the most important field
that still needs their input.
"""

from typing import Optional


COMPLETE_MESSAGE = "Alle gegevens zijn compleet!"
GENERIC_QUESTION = "Ik heb nog wat extra informatie nodig. Kun je meer details geven?"

FIELD_QUESTIONS: dict[str, dict[str, str]] = {
    "create_client": {
        "name": "Wat is de naam van de klant of het bedrijf?",
        "email": "Wat is het e-mailadres van de klant?",
        "address": "Wat is het adres?",
        "postalCode": "Wat is de postcode?",
        "city": "In welke stad is de klant gevestigd?",
        "kvkNumber": "Wat is het KVK-nummer? (optioneel)",
        "btwId": "Wat is het BTW-ID? (optioneel)",
    },
    "create_factuur": {
        "clientName": "Voor welke klant is deze factuur?",
        "items": "Welke diensten of producten wil je factureren? (Beschrijf met aantal en prijs, bijv. '10 uur @ 75 euro')",
        "amount": "Wat is het factuurbedrag?",
        "dueInDays": "Binnen hoeveel dagen moet de factuur betaald worden? (standaard 14 dagen)",
        "vatRate": "Welk BTW-tarief? (21%, 9%, of 0%)",
        "discount": "Hoeveel procent korting wil je geven? (0 tot 100)",
    },
    "create_offerte": {
        "clientName": "Voor welke klant is deze offerte?",
        "items": "Welke diensten of producten wil je aanbieden? (Beschrijf met aantal en prijs, bijv. '320 stops @ 1.25 euro')",
        "amount": "Wat is het offertebedrag?",
        "validForDays": "Hoeveel dagen is de offerte geldig? (standaard 30 dagen)",
        "vatRate": "Welk BTW-tarief? (21%, 9%, of 0%)",
        "discount": "Hoeveel procent korting wil je geven? (0 tot 100)",
    },
    "create_uitgave": {
        "category": "In welke categorie valt deze uitgave?",
        "amount": "Wat is het bedrag van de uitgave (inclusief BTW)?",
        "vendor": "Bij welke leverancier is de uitgave gedaan?",
        "date": "Op welke datum is de uitgave gedaan?",
        "vatRate": "Welk BTW-tarief? (21%, 9%, of 0%)",
        "receiptUrl": "Wat is de link naar het bonnetje?",
    },
}

FIELD_PRIORITY: dict[str, list[str]] = {
    "create_client": ["name", "email", "city", "address", "postalCode"],
    "create_factuur": ["clientName", "items", "amount", "vatRate", "dueInDays"],
    "create_offerte": ["clientName", "items", "amount", "vatRate", "validForDays"],
    "create_uitgave": ["category", "amount", "vendor", "date", "vatRate"],
}


class QuestionSelector:
    """Picks the next clarifying question for a draft."""

    def __init__(
        self,
        questions: Optional[dict[str, dict[str, str]]] = None,
        priority: Optional[dict[str, list[str]]] = None,
    ):
        self._questions = questions or FIELD_QUESTIONS
        self._priority = priority or FIELD_PRIORITY

    def next_question(
        self,
        intent: str,
        missing_fields: list[str],
        invalid_fields: Optional[dict[str, str]] = None,
    ) -> str:
        """
        Get the question for the highest-priority field that needs input.

        Missing fields always come first. When nothing is missing, the first
        invalid field is re-asked with the reason attached.
        """
        intent = getattr(intent, "value", intent)
        invalid_fields = invalid_fields or {}
        if not missing_fields and not invalid_fields:
            return COMPLETE_MESSAGE

        questions = self._questions.get(intent, {})

        if missing_fields:
            field = self._first_by_priority(intent, missing_fields, questions)
            if field is not None:
                return questions[field]
            return GENERIC_QUESTION

        field = self._first_by_priority(intent, list(invalid_fields), questions)
        reason = invalid_fields.get(field) if field else next(iter(invalid_fields.values()))
        if field is None:
            return f"Er klopt iets niet in je gegevens ({reason}). Kun je het aanpassen?"
        return f"{questions[field]} (De huidige waarde is ongeldig: {reason})"

    def _first_by_priority(
        self,
        intent: str,
        fields: list[str],
        questions: dict[str, str],
    ) -> Optional[str]:
        for field in self._priority.get(intent, []):
            if field in fields and field in questions:
                return field
        # Fallback: the first field, if it has a question at all
        if fields and fields[0] in questions:
            return fields[0]
        return None
