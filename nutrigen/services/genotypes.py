from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

GENOTYPES_PATH = Path(__file__).resolve().parents[1] / "data" / "genotypes.json"
CONTEXT_FOOD_LIMIT = 10


@dataclass(frozen=True, slots=True)
class Genotype:
    id: int
    name: str
    essence: str
    superfoods: tuple[str, ...]
    toxins: tuple[str, ...]


@lru_cache(maxsize=1)
def load_genotypes() -> dict[int, Genotype]:
    payload = json.loads(GENOTYPES_PATH.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Genotype reference data must be a JSON object.")
    return {
        int(raw_id): Genotype(
            id=int(raw_id),
            name=entry["name"],
            essence=entry.get("essence", ""),
            superfoods=tuple(dict.fromkeys(entry.get("superfoods", []))),
            toxins=tuple(dict.fromkeys(entry.get("toxins", []))),
        )
        for raw_id, entry in payload.items()
    }


def get_genotype(genotype_id: int | None) -> Genotype | None:
    if genotype_id is None:
        return None
    return load_genotypes().get(genotype_id)


def genotype_context(genotype_id: int | None) -> str:
    """Prompt block describing the genotype's food rules, or '' when unknown."""
    genotype = get_genotype(genotype_id)
    if genotype is None:
        return ""
    return (
        f"CONTEXTO DEL GENOTIPO {genotype.id} ({genotype.name}):\n"
        f"- Esencia: {genotype.essence}\n"
        f"- Superalimentos: {', '.join(genotype.superfoods[:CONTEXT_FOOD_LIMIT])}\n"
        f"- Toxinas (evitar): {', '.join(genotype.toxins[:CONTEXT_FOOD_LIMIT])}"
    )
