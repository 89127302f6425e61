"""Section headings for generated notes, per content language."""

import re
from dataclasses import dataclass
from typing import Optional

DEFAULT_LANGUAGE = "en"


@dataclass(frozen=True)
class LanguageTerms:
    table_of_contents: str
    cue_column: str
    detailed_notes: str
    comprehensive_summary: str
    study_guide: str


LANGUAGE_TERMS = {
    "en": LanguageTerms("Table of Contents", "Exam Prep Questions", "Detailed Notes", "Comprehensive Summary", "Study Guide"),
    "es": LanguageTerms("Tabla de Contenidos", "Preguntas de Examen", "Notas Detalladas", "Resumen", "Guía de Estudio"),
    "fr": LanguageTerms("Table des Matières", "Questions d'Examen", "Notes Détaillées", "Résumé Complet", "Guide d'Étude"),
    "de": LanguageTerms("Inhaltsverzeichnis", "Prüfungsfragen", "Detaillierte Notizen", "Umfassende Zusammenfassung", "Studienführer"),
    "it": LanguageTerms("Indice dei Contenuti", "Domande d'Esame", "Note Dettagliate", "Riassunto Comprensivo", "Guida allo Studio"),
    "pt": LanguageTerms("Índice de Conteúdo", "Questões de Prova", "Notas Detalhadas", "Resumo Abrangente", "Guia de Estudo"),
    "nl": LanguageTerms("Inhoudsopgave", "Examenvragen", "Gedetailleerde Notities", "Uitgebreide Samenvatting", "Studiegids"),
    "ru": LanguageTerms("Содержание", "Экзаменационные Вопросы", "Подробные Заметки", "Всеобъемлющее Резюме", "Учебное Пособие"),
    "zh": LanguageTerms("目录", "考试重点", "详细笔记", "综合总结", "学习指南"),
    "ja": LanguageTerms("目次", "試験対策問題", "詳細ノート", "包括的要約", "学習ガイド"),
    "ko": LanguageTerms("목차", "시험 대비 문제", "세부 노트", "종합 요약", "학습 가이드"),
    "ar": LanguageTerms("جدول المحتويات", "أسئلة الامتحان", "ملاحظات مفصلة", "ملخص شامل", "دليل الدراسة"),
}

# Checked in order; Han characters resolve to Chinese before Japanese
_SCRIPTS = [
    ("ru", re.compile(r"[а-яё]", re.IGNORECASE)),
    ("zh", re.compile(r"[\u4e00-\u9fff]")),
    ("ja", re.compile(r"[\u3040-\u309f\u30a0-\u30ff]")),
    ("ko", re.compile(r"[\uac00-\ud7af]")),
    ("ar", re.compile(r"[\u0600-\u06ff]")),
]


def _words(*words: str) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(words) + r")\b")


_ENGLISH = _words(
    "the", "and", "or", "but", "is", "are", "was", "were", "have", "has", "had", "will",
    "would", "could", "should", "can", "may", "this", "that", "these", "those", "with",
    "from", "they", "them", "their", "there", "where", "when", "what", "how", "who", "why",
    "study", "results", "conclusion", "analysis", "data", "report", "project", "team",
)

# Latin-script languages need at least this many hits and more than English
_MIN_WORD_HITS = 3
_LATIN_LANGUAGES = [
    ("es", _words(
        "español", "señor", "señora", "empresa", "análisis", "estrategia", "mercado", "ingresos",
        "inversión", "desarrollo", "equipo", "proyecto", "organización", "tecnología", "datos",
        "informe", "estudio", "resultados", "conclusión", "que", "los", "las", "una", "para", "por",
    )),
    ("fr", _words(
        "français", "monsieur", "madame", "entreprise", "affaires", "stratégie", "marché",
        "bénéfice", "développement", "équipe", "projet", "données", "rapport", "étude", "résultats",
        "les", "des", "une", "est", "pour", "dans", "avec",
    )),
    ("de", _words(
        "deutsch", "herr", "frau", "unternehmen", "geschäft", "strategie", "markt", "kosten",
        "gewinn", "entwicklung", "projekt", "daten", "bericht", "studie", "ergebnisse",
        "der", "die", "das", "und", "ist", "nicht", "mit",
    )),
    ("it", _words(
        "italiano", "signore", "signora", "azienda", "analisi", "strategia", "mercato", "costi",
        "sviluppo", "progetto", "organizzazione", "dati", "rapporto", "studio", "risultati",
        "il", "della", "che", "sono", "per", "con",
    )),
    ("pt", _words(
        "português", "senhor", "senhora", "negócios", "análise", "estratégia", "lucro",
        "desenvolvimento", "equipe", "projeto", "organização", "relatório", "estudo", "conclusão",
        "não", "uma", "são", "com", "para",
    )),
]


def normalize_language(code: Optional[str]) -> Optional[str]:
    """``en-US`` -> ``en``; blank codes become None."""
    if not code or not code.strip():
        return None
    return code.strip().lower().replace("_", "-").split("-")[0]


def detect_language(text: Optional[str]) -> str:
    """Best guess at the language of ``text``, defaulting to English."""
    if not text or not text.strip():
        return DEFAULT_LANGUAGE

    sample = text[:1000].lower()
    for code, pattern in _SCRIPTS:
        if pattern.search(sample):
            return code

    english = len(_ENGLISH.findall(sample))
    for code, pattern in _LATIN_LANGUAGES:
        hits = len(pattern.findall(sample))
        if hits >= _MIN_WORD_HITS and hits > english:
            return code
    return DEFAULT_LANGUAGE


def terms_for(text: Optional[str], detected_language: Optional[str] = None) -> tuple[str, LanguageTerms]:
    """
    Pick the language and its headings.

    A language reported by the transcription service wins; otherwise it is
    guessed from the text. Unknown codes fall back to English headings.
    """
    language = normalize_language(detected_language) or detect_language(text)
    return language, LANGUAGE_TERMS.get(language, LANGUAGE_TERMS[DEFAULT_LANGUAGE])
