from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from nutrigen.agents.prompt_generator import calculate_bmi, generate_research_prompt
from nutrigen.api.deps import get_history_store
from nutrigen.models.history import GeneratedPrompt, PatientCase
from nutrigen.models.schemas import CaseDetailResponse, ImportResponse, PromptRequest
from nutrigen.services.genotypes import get_genotype
from nutrigen.services.history_store import HistoryImportError

router = APIRouter(prefix="/api", tags=["cases"])


def _require_case(case_id: str) -> PatientCase:
    case = get_history_store().get_case(case_id)
    if case is None:
        raise HTTPException(status_code=404, detail="Case not found")
    return case


@router.get("/cases", response_model=list[PatientCase])
async def list_cases():
    return get_history_store().list_cases()


@router.post("/cases", response_model=PatientCase)
async def save_case(case: PatientCase):
    """Create or update a case; BMI and genotype name are derived when missing."""
    if case.bmi is None:
        case.bmi = calculate_bmi(case.height_cm, case.weight_kg)
    if case.genotype_id is not None and not case.genotype_name:
        genotype = get_genotype(case.genotype_id)
        if genotype is not None:
            case.genotype_name = genotype.name
    return get_history_store().save_case(case)


@router.get("/cases/{case_id}", response_model=CaseDetailResponse)
async def get_case(case_id: str):
    case = _require_case(case_id)
    return CaseDetailResponse(case=case, prompts=get_history_store().get_prompts_for_case(case_id))


@router.delete("/cases/{case_id}")
async def delete_case(case_id: str):
    if not get_history_store().delete_case(case_id):
        raise HTTPException(status_code=404, detail="Case not found")
    return {"deleted": case_id}


@router.get("/cases/{case_id}/prompts", response_model=list[GeneratedPrompt])
async def list_case_prompts(case_id: str):
    _require_case(case_id)
    return get_history_store().get_prompts_for_case(case_id)


@router.post("/cases/{case_id}/prompts", response_model=GeneratedPrompt)
async def create_case_prompt(case_id: str, request: PromptRequest):
    """Generate a research prompt for the case and store it."""
    case = _require_case(case_id)
    result = await generate_research_prompt(case, request.target_platform)
    if not result.success or result.prompt is None:
        raise HTTPException(status_code=502, detail=result.error)
    return get_history_store().save_prompt(result.prompt)


@router.delete("/prompts/{prompt_id}")
async def delete_prompt(prompt_id: str):
    if not get_history_store().delete_prompt(prompt_id):
        raise HTTPException(status_code=404, detail="Prompt not found")
    return {"deleted": prompt_id}


@router.get("/history/export")
async def export_history():
    return Response(
        content=get_history_store().export_json(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="research_history.json"'},
    )


@router.post("/history/import", response_model=ImportResponse)
async def import_history(request: Request):
    """Replace the stored history with an exported JSON document."""
    raw = (await request.body()).decode("utf-8", errors="replace")
    try:
        history = get_history_store().import_json(raw)
    except HistoryImportError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return ImportResponse(cases=len(history.cases), prompts=len(history.prompts))
