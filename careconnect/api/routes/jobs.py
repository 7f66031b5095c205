"""
職缺管理相關 API 路由
"""
from datetime import date
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, Query

from careconnect.api.dependencies import CurrentActor, get_application_service, get_job_service
from careconnect.models.schemas import CaregiverMatch, CreateJobPostRequest, JobPost, Page, UpdateJobStatusRequest
from careconnect.services.application_service import ApplicationService
from careconnect.services.job_service import JobService

router = APIRouter(prefix="/api/jobs", tags=["職缺管理"])

Jobs = Annotated[JobService, Depends(get_job_service)]
Applications = Annotated[ApplicationService, Depends(get_application_service)]


@router.post("", response_model=JobPost, status_code=201)
def create_job_post(request: CreateJobPostRequest, actor: CurrentActor, job_service: Jobs):
    """建立職缺（家屬）"""
    return job_service.create_job_post(actor, request)


@router.get("", response_model=Page[JobPost])
def list_job_posts(
    actor: CurrentActor,
    job_service: Jobs,
    page: int = Query(1),
    limit: int = Query(10),
    status: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    skill: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    """取得所有職缺（管理員）"""
    return job_service.list_job_posts(
        actor, page=page, limit=limit, status=status, location=location,
        skill=skill, date_from=date_from, date_to=date_to,
    )


@router.get("/family", response_model=Page[JobPost])
def list_family_job_posts(
    actor: CurrentActor,
    job_service: Jobs,
    page: int = Query(1),
    limit: int = Query(10),
    status: Optional[str] = Query(None),
):
    """取得自己的職缺（家屬）"""
    return job_service.list_family_job_posts(actor, page=page, limit=limit, status=status)


@router.get("/available", response_model=Page[JobPost])
def list_available_jobs(
    actor: CurrentActor,
    job_service: Jobs,
    page: int = Query(1),
    limit: int = Query(10),
    location: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    """取得可應徵的職缺（照護員）"""
    return job_service.list_available_jobs(
        actor, page=page, limit=limit, location=location, date_from=date_from, date_to=date_to
    )


@router.get("/applications/history", response_model=Page[JobPost])
def list_application_history(
    actor: CurrentActor,
    application_service: Applications,
    page: int = Query(1),
    limit: int = Query(10),
):
    """取得應徵過的職缺（照護員）"""
    return application_service.list_application_history(actor, page=page, limit=limit)


@router.get("/{job_post_id}", response_model=JobPost)
def get_job_post(job_post_id: str, actor: CurrentActor, job_service: Jobs):
    """取得特定職缺"""
    return job_service.get_job_post(actor, job_post_id)


@router.post("/{job_post_id}/apply", response_model=JobPost)
def apply_for_job(job_post_id: str, actor: CurrentActor, application_service: Applications):
    """應徵職缺（已驗證的照護員）"""
    return application_service.apply(actor, job_post_id)


@router.patch("/{job_post_id}/status", response_model=JobPost)
def update_job_status(
    job_post_id: str, request: UpdateJobStatusRequest, actor: CurrentActor, job_service: Jobs
):
    """更新職缺狀態（職缺擁有者）"""
    return job_service.update_job_status(actor, job_post_id, request.status)


@router.delete("/{job_post_id}")
def delete_job_post(job_post_id: str, actor: CurrentActor, job_service: Jobs):
    """刪除職缺（職缺擁有者）"""
    job_service.delete_job_post(actor, job_post_id)
    return {"success": True, "message": "Job post deleted"}


@router.get("/{job_post_id}/matching-caregivers", response_model=List[CaregiverMatch])
def get_matching_caregivers(job_post_id: str, actor: CurrentActor, job_service: Jobs):
    """取得推薦照護員（職缺擁有者）"""
    return job_service.get_matching_caregivers(actor, job_post_id)
