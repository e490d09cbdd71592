"""Classify Gemini / pipeline errors and explain them to the user."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    QUOTA_EXCEEDED = "quota_exceeded"
    MODEL_UNAVAILABLE = "model_unavailable"
    AUTH_FAILURE = "auth_failure"
    NETWORK_FAILURE = "network_failure"
    UNKNOWN = "unknown"


# Evaluated top to bottom; the first row with a matching keyword wins.
ERROR_KEYWORDS: tuple[tuple[ErrorKind, tuple[str, ...]], ...] = (
    (ErrorKind.QUOTA_EXCEEDED, ("429", "quota", "rate limit", "resource_exhausted")),
    (ErrorKind.MODEL_UNAVAILABLE, ("404", "not found", "not supported")),
    (ErrorKind.AUTH_FAILURE, ("401", "403", "api key", "permission_denied")),
    (ErrorKind.NETWORK_FAILURE, ("fetch", "network", "timeout", "timed out", "connection")),
)


@dataclass(frozen=True, slots=True)
class ErrorExplanation:
    cause: str
    remediation: tuple[str, ...]


EXPLANATIONS: dict[ErrorKind, ErrorExplanation] = {
    ErrorKind.QUOTA_EXCEEDED: ErrorExplanation(
        cause="Cuota de API excedida.",
        remediation=(
            "Espera unos minutos",
            "Verifica tu plan de Gemini API",
            "Considera actualizar tu plan si es necesario",
        ),
    ),
    ErrorKind.MODEL_UNAVAILABLE: ErrorExplanation(
        cause="Modelo de IA no disponible.",
        remediation=(
            "El sistema intentará con modelos alternativos automáticamente",
            "Verifica que tu API key tenga acceso a los modelos de Gemini",
        ),
    ),
    ErrorKind.AUTH_FAILURE: ErrorExplanation(
        cause="Error de autenticación.",
        remediation=(
            "Verifica que GEMINI_API_KEY esté configurada correctamente",
            "Verifica que la API key sea válida",
        ),
    ),
    ErrorKind.NETWORK_FAILURE: ErrorExplanation(
        cause="Error de conexión.",
        remediation=(
            "Verifica tu conexión a internet",
            "Intenta nuevamente en unos momentos",
        ),
    ),
    ErrorKind.UNKNOWN: ErrorExplanation(
        cause="",
        remediation=(
            "Verifica la configuración de la API",
            "Si el problema persiste, contacta al administrador",
        ),
    ),
}

NO_REPORT_NOTICE = "**No se generará un reporte sin análisis real con IA.**"


def error_text(error: BaseException | str | None) -> str:
    """Return the text classification runs on, including any status code."""
    if error is None:
        return ""
    if isinstance(error, str):
        return error
    message = str(error) or type(error).__name__
    code = getattr(error, "code", None)
    if isinstance(code, int) and str(code) not in message:
        return f"{code} {message}"
    return message


def classify_error(error: BaseException | str | None) -> ErrorKind:
    lowered = error_text(error).lower()
    for kind, keywords in ERROR_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return kind
    return ErrorKind.UNKNOWN


def is_recoverable(error: BaseException | str | None) -> bool:
    """Model-not-found and transient (non-quota) 429s are worth another try."""
    text = error_text(error).lower()
    if classify_error(error) is ErrorKind.MODEL_UNAVAILABLE:
        return True
    return "429" in text and "quota exceeded" not in text


def create_error_message(error: BaseException | str | None, context: str) -> str:
    """Render a Markdown explanation of ``error`` for display."""
    kind = classify_error(error)
    explanation = EXPLANATIONS[kind]
    cause = explanation.cause or error_text(error) or "Error desconocido"

    lines = [f"❌ **Error: {context}**", "", f"**Causa:** {cause}", "", "**Solución:**"]
    lines.extend(f"- {step}" for step in explanation.remediation)
    lines.extend(["", NO_REPORT_NOTICE])
    return "\n".join(lines)
