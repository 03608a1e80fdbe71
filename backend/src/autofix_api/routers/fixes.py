from functools import lru_cache
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from typing import Any, Dict, List
from ..agents.orchestrator import Orchestrator, build_orchestrator
from ..errors import AutoFixError, InvalidRepositoryUrlError
from ..models.remediation import FixPRResult, PipelineResult
from ..models.rules import AutoFixRule, AutoFixRuleRequest, OpenFixPR
from ..models.vulnerability import VulnerabilityFix
from ..services.rules import AutoFixRuleStore, rule_store
from ..logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

class BatchRequest(BaseModel):
    vulnerabilities: List[VulnerabilityFix]

@lru_cache
def get_orchestrator() -> Orchestrator:
    return build_orchestrator()

def get_rule_store() -> AutoFixRuleStore:
    return rule_store

@router.post("/fix-prs", response_model=FixPRResult)
async def generate_fix_pr(vuln: VulnerabilityFix, orchestrator: Orchestrator = Depends(get_orchestrator)):
    logger.info(f"Received fix PR request for {vuln.cve_id} in {vuln.repository_url}")
    try:
        return await orchestrator.generate_fix_pr(vuln)
    except AutoFixError as e:
        logger.error(f"Fix PR generation failed for {vuln.cve_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.error(f"Fix PR generation crashed for {vuln.cve_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/fix-prs/batch", response_model=List[PipelineResult])
async def batch_generate_fix_prs(request: BatchRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Runs the pipeline for every vulnerability; failures are reported per item."""
    logger.info(f"Received batch fix PR request for {len(request.vulnerabilities)} vulnerabilities")
    return await orchestrator.batch_generate_fix_prs(request.vulnerabilities)

@router.get("/fix-prs/open", response_model=List[OpenFixPR])
async def list_open_fix_prs(repository_url: str = Query(...), orchestrator: Orchestrator = Depends(get_orchestrator)):
    try:
        return await orchestrator.publisher.list_open_fix_prs(repository_url)
    except InvalidRepositoryUrlError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.get("/auto-fix/rules", response_model=List[AutoFixRule])
async def list_rules(user_id: str = Query(...), store: AutoFixRuleStore = Depends(get_rule_store)):
    return store.list_rules(user_id)

@router.post("/auto-fix/rules", response_model=AutoFixRule)
async def create_rule(request: AutoFixRuleRequest, user_id: str = Query(...), store: AutoFixRuleStore = Depends(get_rule_store)):
    return store.create_rule(user_id, request)

@router.get("/auto-fix/patches", response_model=List[Dict[str, Any]])
async def list_fixable_patches(user_id: str = Query(...), store: AutoFixRuleStore = Depends(get_rule_store)):
    return store.list_fixable_patches(user_id)

@router.get("/auto-fix/pull-requests", response_model=List[Dict[str, Any]])
async def list_generated_prs(user_id: str = Query(...), store: AutoFixRuleStore = Depends(get_rule_store)):
    return store.list_generated_prs(user_id)
