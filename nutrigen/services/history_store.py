"""JSON-file persistence for patient cases and their generated prompts."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from nutrigen.config import settings
from nutrigen.models.history import GeneratedPrompt, PatientCase, ResearchHistory


class HistoryImportError(ValueError):
    """Imported history JSON is malformed."""


class HistoryStore:
    """Whole-document store: every write rewrites the file.

    A missing file reads as an empty history. An unreadable one is renamed to
    ``<name>.corrupt-<timestamp>`` and then reads as empty, so the next write
    never overwrites the only copy. Write failures propagate.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path if path is not None else settings.history_path)

    def _quarantine(self) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        target = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        self.path.replace(target)
        return target

    def get_history(self) -> ResearchHistory:
        if not self.path.exists():
            return ResearchHistory()
        try:
            return ResearchHistory.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            target = self._quarantine()
            logger.warning(f"Could not read history file {self.path}, moved it to {target.name}: {e}")
            return ResearchHistory()

    def _write(self, history: ResearchHistory) -> None:
        history.last_updated = datetime.now(timezone.utc)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(history.model_dump_json(indent=2), encoding="utf-8")

    def save_case(self, case: PatientCase) -> PatientCase:
        history = self.get_history()
        case.updated_at = datetime.now(timezone.utc)
        for index, existing in enumerate(history.cases):
            if existing.id == case.id:
                case.created_at = existing.created_at
                history.cases[index] = case
                break
        else:
            history.cases.append(case)
        self._write(history)
        return case

    def save_prompt(self, prompt: GeneratedPrompt) -> GeneratedPrompt:
        history = self.get_history()
        history.prompts.append(prompt)
        self._write(history)
        return prompt

    def get_case(self, case_id: str) -> PatientCase | None:
        return next((c for c in self.get_history().cases if c.id == case_id), None)

    def list_cases(self) -> list[PatientCase]:
        return sorted(self.get_history().cases, key=lambda c: c.updated_at, reverse=True)

    def get_prompts_for_case(self, case_id: str) -> list[GeneratedPrompt]:
        prompts = [p for p in self.get_history().prompts if p.case_id == case_id]
        return sorted(prompts, key=lambda p: p.created_at, reverse=True)

    def delete_case(self, case_id: str) -> bool:
        """Delete a case and every prompt generated for it."""
        history = self.get_history()
        remaining = [c for c in history.cases if c.id != case_id]
        if len(remaining) == len(history.cases):
            return False
        history.cases = remaining
        history.prompts = [p for p in history.prompts if p.case_id != case_id]
        self._write(history)
        return True

    def delete_prompt(self, prompt_id: str) -> bool:
        history = self.get_history()
        remaining = [p for p in history.prompts if p.id != prompt_id]
        if len(remaining) == len(history.prompts):
            return False
        history.prompts = remaining
        self._write(history)
        return True

    def clear(self) -> None:
        self._write(ResearchHistory())

    def export_json(self) -> str:
        return self.get_history().model_dump_json(indent=2)

    def import_json(self, raw: str) -> ResearchHistory:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise HistoryImportError(f"Invalid JSON: {e.msg}") from e
        if not isinstance(payload, dict) or not isinstance(payload.get("cases"), list) or not isinstance(
            payload.get("prompts"), list
        ):
            raise HistoryImportError("History must contain 'cases' and 'prompts' arrays")
        try:
            history = ResearchHistory.model_validate(payload)
        except ValidationError as e:
            raise HistoryImportError(f"Invalid history records: {e.error_count()} error(s)") from e
        self._write(history)
        return history
