"""
Localized candidate-facing texts.

Every text the assistant sends lives here, keyed by language and message id.
Templates use str.format placeholders; keep the placeholders when editing a
text so profile values are still injected.

Usage:
    from src.common.messages import get_messages

    messages = get_messages(tenant.language)
    messages.render("qualification_questions", name="Ana")
"""

import logging
from typing import Dict

logger = logging.getLogger(__name__)

FALLBACK_LANGUAGE = "en"

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        # Onboarding & consent
        "welcome_disclosure": (
            "Hi! 👋 I am the digital recruitment assistant of {agency}. I am an automated AI "
            "system, not a person.\n\nTo help you find a job I need your consent to process "
            "the information you share with me. Your data is kept for {retention_days} days.\n\n"
            "Do you agree to start? (Reply YES or NO)"
        ),
        "consent_reprompt": 'Please reply "YES" if you agree, or "NO" if you do not. 🙏',
        "consent_refused": (
            "Understood. Without your consent I cannot process personal information. "
            "Your conversation data has been deleted. 👋"
        ),
        "presentation_options": (
            "Thank you for your trust! ✨\n\nTo build your candidate profile you can:\n\n"
            "📄 Send me your CV (PDF or photo) and I will take care of the rest.\n\n"
            "✍️ Tell me about your education, work experience and technical skills.\n\n"
            "How would you like to continue?"
        ),
        # Data collection
        "data_recorded": "✅ Thank you, I noted that. I still need: {missing}. You can also send your CV.",
        "send_cv_prompt": "📄 Please send your CV (PDF or photo), or describe your education, experience and skills.",
        "cv_feedback": (
            "I went through your profile, {name}! 📄\n\n"
            "🏢 Recent experience: {recent_role}\n"
            "🌍 Mobility: {mobility}\n"
            "🏗️ Skills: {skills}\n"
            "🗣️ Language level: {language_level}\n\n"
            "Is this correct? (Reply YES, or NO to add something)"
        ),
        "confirm_reprompt": 'Please reply "YES" if the summary is correct, or "NO" to add details. If you can, also tell me your language level.',
        "correction_prompt": "No problem. Tell me what is missing or should be added and I will note it. ✍️",
        # Qualification
        "qualification_questions": (
            "Great, {name}! 🎯 Before I check the open positions I need two practical details:\n\n"
            "📅 1. When is the earliest date you could start a new job?\n"
            "🏠 2. Do you need accommodation provided by the agency, or do you have your own?\n\n"
            "Answer both questions and we continue! 👇"
        ),
        "candidate_note_prompt": (
            "Thank you! 📝 Is there anything you would like the recruiter to know about you? "
            'Write a short note, or reply "NO" to skip.'
        ),
        # Matching & dispatch consent
        "job_offer_line": "{medal} {title} ({city})\n   💶 {salary}\n   📊 Match: {score}%\n   💬 {reasoning}",
        "job_matches_found": (
            "🚀 I checked our active jobs, {name}!\n\n{jobs}\n\n"
            "📋 Your profile:\n• Availability: {availability}\n• Accommodation: {accommodation}\n\n"
            "⚖️ DATA TRANSFER\nMay we send your profile (never your original CV) to our recruitment team? (YES/NO)"
        ),
        "no_jobs_found": (
            "{name}, I checked your profile carefully but right now there are no open positions "
            "that match your experience.\n\nMay we still send your profile (never your original CV) "
            "to our recruitment team so they can contact you when something fits? (YES/NO)"
        ),
        "dispatch_reprompt": 'Please reply "YES" to send your profile to the recruiters, or "NO" to keep it private.',
        "dispatch_confirmed": (
            "✅ Done, {name}! Your profile was sent to the recruitment team of {agency}.\n\n"
            "📞 A consultant will contact you on this number within 24 hours.\n\n"
            "🔐 You consented to this transfer today and can withdraw your consent at any time."
        ),
        "dispatch_refused": (
            "Understood. Your profile stays with us and will not be sent anywhere without your consent.\n\n"
            'If you change your mind, reply "YES" at any time. 🤝'
        ),
        "dispatch_failed": "⚠️ I could not send your profile right now. Please reply \"YES\" again in a few minutes.",
        "already_dispatched": "Your profile is already with our recruiters. They will contact you soon. 📞",
        "conversation_closed": 'This conversation is closed. Write "RESET" to start again.',
        "session_reset": "Your previous conversation was deleted. Let's start again.",
        # System
        "rate_limited": "Too many messages. Please wait a moment. ⏳",
        "generic_failure": "⚠️ Something went wrong on our side. Please try again in a moment.",
        "api_error": "⚠️ The job search is temporarily unavailable. Your profile is saved.",
        # Document errors
        "doc_unsupported_type": "❌ I can only read PDF, JPG or PNG files. Please send your CV in one of these formats.",
        "doc_oversize": "❌ The file is too large (maximum {max_mb} MB). Please send a smaller file.",
        "doc_timeout": "❌ Downloading your document took too long. Please send it again.",
        "doc_transport": "❌ I could not download your document. Please send it again or try a PDF.",
        "doc_empty": "⚠️ I could not extract details from this document. Please try another format (PDF/JPG) or describe your experience.",
        # Field labels
        "field_education": "education",
        "field_experience_summary": "work experience",
        "field_hard_skills": "technical skills",
        "unknown_value": "not specified",
        "default_name": "friend",
    },
    "ro": {
        "welcome_disclosure": (
            "Salutare! 👋 Sunt asistentul digital de recrutare al {agency}. Sunt un sistem automat "
            "bazat pe AI, nu o persoană.\n\nConform normelor GDPR, am nevoie de acordul tău pentru a-ți "
            "procesa informațiile. Datele tale sunt păstrate {retention_days} zile.\n\n"
            "Ești de acord să începem? (Scrie DA sau NU)"
        ),
        "consent_reprompt": 'Te rog răspunde cu "DA" dacă ești de acord, sau "NU" dacă refuzi. 🙏',
        "consent_refused": (
            "Înțeleg. Fără acordul tău, nu pot procesa informații personale. "
            "Datele conversației au fost șterse. 👋"
        ),
        "presentation_options": (
            "Perfect! Mulțumesc pentru încredere. ✨\n\nPentru a-ți crea profilul de candidat, avem două variante:\n\n"
            "📄 Trimite-mi CV-ul tău (PDF sau poză) și mă ocup eu de restul.\n\n"
            "✍️ Povestește-mi tu despre studiile, experiența și abilitățile tale tehnice.\n\n"
            "Cum preferi să procedăm?"
        ),
        "data_recorded": "✅ Mulțumesc! Am înregistrat informația. Mai am nevoie de: {missing}. Poți trimite și CV-ul.",
        "send_cv_prompt": "📄 Te rog trimite-mi CV-ul (PDF sau poză), sau descrie-mi studiile, experiența și abilitățile tale.",
        "cv_feedback": (
            "Am analizat profilul tău, {name}! 📄\n\n"
            "🏢 Experiență recentă: {recent_role}\n"
            "🌍 Mobilitate: {mobility}\n"
            "🏗️ Expertiză: {skills}\n"
            "🗣️ Nivel limbă: {language_level}\n\n"
            "Este corect? (Scrie DA, sau NU dacă dorești să adăugăm ceva)"
        ),
        "confirm_reprompt": 'Te rog răspunde cu "DA" dacă rezumatul este corect, sau "NU" pentru a adăuga detalii. Dacă poți, spune-mi și nivelul de limbă.',
        "correction_prompt": "Nicio problemă. Spune-mi ce lipsește sau ce trebuie adăugat și notez. ✍️",
        "qualification_questions": (
            "Excelent, {name}! 🎯 Înainte să verific pozițiile deschise, am nevoie de două detalii logistice:\n\n"
            "📅 1. Când este cea mai apropiată dată la care poți începe un nou job?\n"
            "🏠 2. Ai nevoie de cazare oferită de agenție sau ai locuință proprie în zonă?\n\n"
            "Răspunde la ambele întrebări și continuăm! 👇"
        ),
        "candidate_note_prompt": (
            "Mulțumesc! 📝 Vrei să transmiți ceva recruterului despre tine? "
            'Scrie o notă scurtă, sau răspunde "NU" pentru a sări peste.'
        ),
        "job_offer_line": "{medal} {title} ({city})\n   💶 {salary}\n   📊 Potrivire: {score}%\n   💬 {reasoning}",
        "job_matches_found": (
            "🚀 Am verificat baza noastră de joburi active, {name}!\n\n{jobs}\n\n"
            "📋 Profilul tău:\n• Disponibilitate: {availability}\n• Cazare: {accommodation}\n\n"
            "⚖️ TRANSFER DATE\nEști de acord să trimitem profilul tău (fără CV original) echipei de recrutare? (DA/NU)"
        ),
        "no_jobs_found": (
            "{name}, am analizat profilul tău cu atenție, dar în acest moment nu avem poziții deschise "
            "care să se potrivească experienței tale.\n\nEști de acord să trimitem totuși profilul tău "
            "(fără CV original) recruterilor, ca să te contacteze când apare ceva potrivit? (DA/NU)"
        ),
        "dispatch_reprompt": 'Te rog răspunde cu "DA" pentru a trimite profilul recruterilor, sau "NU" pentru a-l păstra privat.',
        "dispatch_confirmed": (
            "✅ Gata, {name}! Dosarul tău a fost trimis către echipa de recrutare {agency}.\n\n"
            "📞 Un consultant te va contacta pe acest număr în maxim 24 de ore.\n\n"
            "🔐 Ai consimțit astăzi la transferul datelor și poți retrage consimțământul oricând."
        ),
        "dispatch_refused": (
            "Înțeleg perfect. Profilul tău rămâne în siguranță la noi și nu va fi trimis nicăieri fără acordul tău.\n\n"
            'Dacă te răzgândești, scrie oricând "DA". 🤝'
        ),
        "dispatch_failed": '⚠️ Nu am putut trimite profilul acum. Te rog scrie din nou "DA" în câteva minute.',
        "already_dispatched": "Profilul tău este deja la recruterii noștri. Te vor contacta în curând. 📞",
        "conversation_closed": 'Această conversație s-a încheiat. Scrie "RESET" pentru a începe din nou.',
        "session_reset": "Conversația anterioară a fost ștearsă. Să începem din nou.",
        "rate_limited": "Prea multe mesaje. Te rog așteaptă puțin. ⏳",
        "generic_failure": "⚠️ A apărut o eroare. Te rog încearcă din nou în câteva momente.",
        "api_error": "⚠️ Căutarea de joburi este temporar indisponibilă. Profilul tău este salvat.",
        "doc_unsupported_type": "❌ Pot citi doar fișiere PDF, JPG sau PNG. Te rog trimite CV-ul într-unul din aceste formate.",
        "doc_oversize": "❌ Fișierul este prea mare (maxim {max_mb} MB). Te rog trimite un fișier mai mic.",
        "doc_timeout": "❌ Descărcarea documentului a durat prea mult. Te rog trimite-l din nou.",
        "doc_transport": "❌ Nu am reușit să descarc documentul tău. Te rog să-l trimiți din nou sau încearcă formatul PDF.",
        "doc_empty": "⚠️ Nu am putut extrage detalii din document. Încearcă cu un alt format (PDF/JPG) sau descrie-mi experiența.",
        "field_education": "studii",
        "field_experience_summary": "experiență profesională",
        "field_hard_skills": "abilități tehnice",
        "unknown_value": "nespecificat",
        "default_name": "prietene",
    },
    "nl": {
        "welcome_disclosure": (
            "Hallo! 👋 Ik ben de digitale recruitment-assistent van {agency}. Ik ben een geautomatiseerd "
            "AI-systeem, geen persoon.\n\nOm je te helpen heb ik je toestemming nodig om je gegevens te "
            "verwerken. Je gegevens worden {retention_days} dagen bewaard.\n\nGa je akkoord? (Antwoord JA of NEE)"
        ),
        "consent_reprompt": 'Antwoord alsjeblieft "JA" als je akkoord gaat, of "NEE" als je weigert. 🙏',
        "consent_refused": "Begrepen. Zonder je toestemming kan ik geen persoonsgegevens verwerken. Je gesprek is verwijderd. 👋",
        "presentation_options": (
            "Bedankt voor je vertrouwen! ✨\n\n📄 Stuur me je cv (PDF of foto), of\n"
            "✍️ vertel me over je opleiding, werkervaring en vaardigheden."
        ),
        "dispatch_confirmed": (
            "✅ Klaar, {name}! Je profiel is verstuurd naar het recruitmentteam van {agency}.\n\n"
            "📞 Een consultant neemt binnen 24 uur contact met je op."
        ),
        "dispatch_refused": 'Begrepen. Je profiel wordt niet gedeeld zonder je toestemming. Antwoord "JA" als je van gedachten verandert. 🤝',
        "rate_limited": "Te veel berichten. Wacht even alsjeblieft. ⏳",
        "generic_failure": "⚠️ Er ging iets mis. Probeer het zo opnieuw.",
        "api_error": "⚠️ Het zoeken naar vacatures is tijdelijk niet beschikbaar. Je profiel is opgeslagen.",
        "doc_unsupported_type": "❌ Ik kan alleen PDF-, JPG- of PNG-bestanden lezen.",
        "doc_oversize": "❌ Het bestand is te groot (maximaal {max_mb} MB).",
        "doc_timeout": "❌ Het downloaden duurde te lang. Stuur het document opnieuw.",
        "doc_transport": "❌ Ik kon je document niet downloaden. Stuur het opnieuw of probeer een PDF.",
        "doc_empty": "⚠️ Ik kon geen gegevens uit dit document halen. Probeer een ander formaat.",
        "field_education": "opleiding",
        "field_experience_summary": "werkervaring",
        "field_hard_skills": "vaardigheden",
        "unknown_value": "niet opgegeven",
        "default_name": "kandidaat",
    },
    "de": {
        "welcome_disclosure": (
            "Hallo! 👋 Ich bin der digitale Recruiting-Assistent von {agency}. Ich bin ein automatisiertes "
            "KI-System, keine Person.\n\nUm dir zu helfen, brauche ich deine Einwilligung zur Verarbeitung "
            "deiner Daten. Deine Daten werden {retention_days} Tage gespeichert.\n\nEinverstanden? (Antworte JA oder NEIN)"
        ),
        "consent_reprompt": 'Bitte antworte mit "JA", wenn du einverstanden bist, oder "NEIN". 🙏',
        "consent_refused": "Verstanden. Ohne deine Einwilligung kann ich keine Daten verarbeiten. Das Gespräch wurde gelöscht. 👋",
        "dispatch_confirmed": (
            "✅ Fertig, {name}! Dein Profil wurde an das Recruiting-Team von {agency} gesendet.\n\n"
            "📞 Ein Berater meldet sich innerhalb von 24 Stunden bei dir."
        ),
        "dispatch_refused": 'Verstanden. Dein Profil wird ohne deine Einwilligung nicht weitergegeben. Antworte "JA", falls du es dir anders überlegst. 🤝',
        "rate_limited": "Zu viele Nachrichten. Bitte warte einen Moment. ⏳",
        "generic_failure": "⚠️ Etwas ist schiefgelaufen. Bitte versuche es gleich noch einmal.",
        "api_error": "⚠️ Die Stellensuche ist vorübergehend nicht verfügbar. Dein Profil ist gespeichert.",
        "doc_unsupported_type": "❌ Ich kann nur PDF-, JPG- oder PNG-Dateien lesen.",
        "doc_oversize": "❌ Die Datei ist zu groß (maximal {max_mb} MB).",
        "doc_timeout": "❌ Der Download hat zu lange gedauert. Bitte sende das Dokument erneut.",
        "doc_transport": "❌ Ich konnte dein Dokument nicht herunterladen. Bitte sende es erneut.",
        "doc_empty": "⚠️ Ich konnte keine Angaben aus diesem Dokument lesen. Versuche ein anderes Format.",
        "field_education": "Ausbildung",
        "field_experience_summary": "Berufserfahrung",
        "field_hard_skills": "Fachkenntnisse",
        "unknown_value": "nicht angegeben",
        "default_name": "Bewerber",
    },
}

# Document pipeline error codes to message ids
DOCUMENT_ERROR_MESSAGES = {
    "unsupported_type": "doc_unsupported_type",
    "oversize": "doc_oversize",
    "timeout": "doc_timeout",
    "transport_failure": "doc_transport",
    "extraction_empty": "doc_empty",
}


class Messages:
    """Message catalog for one language, falling back to English per message."""

    def __init__(self, language: str):
        self.language = language if language in MESSAGES else FALLBACK_LANGUAGE
        self._catalog = MESSAGES[self.language]

    def render(self, key: str, **values) -> str:
        """
        Render a message template.

        Raises:
            KeyError: If no catalog defines the message id
        """
        template = self._catalog.get(key)
        if template is None:
            template = MESSAGES[FALLBACK_LANGUAGE][key]
        return template.format(**values)

    def field_label(self, field_name: str) -> str:
        return self.render(f"field_{field_name}")

    def document_error(self, code: str, max_mb: int = 5) -> str:
        return self.render(DOCUMENT_ERROR_MESSAGES.get(code, "doc_transport"), max_mb=max_mb)


def get_messages(language: str) -> Messages:
    """Get the message catalog for a language (English when unknown)."""
    if language not in MESSAGES:
        logger.debug(f"No catalog for language '{language}', using {FALLBACK_LANGUAGE}")
    return Messages(language)
