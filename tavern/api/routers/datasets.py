"""Dataset and document endpoints (RPC-style)."""

from __future__ import annotations

from fastapi import APIRouter, status

from tavern.api.deps import CurrentUser, DbSession, Paging
from tavern.api.managers import datasets
from tavern.api.models.api import (
    DatasetCreate,
    DatasetResponse,
    DatasetUpdate,
    DocumentCreate,
    DocumentResponse,
    PageResponse,
)

router = APIRouter(prefix="/datasets", tags=["datasets"])


@router.get("/list", response_model=PageResponse[DatasetResponse])
async def list_datasets(workspace_id: str, caller: CurrentUser, page: Paging, db: DbSession):
    return await datasets.list_datasets(db, workspace_id, caller.user_id, page)


@router.get("/{dataset_id}/get", response_model=DatasetResponse)
async def get_dataset(dataset_id: str, caller: CurrentUser, db: DbSession):
    return await datasets.get_dataset(db, dataset_id, caller.user_id)


@router.post("/create", response_model=DatasetResponse, status_code=status.HTTP_201_CREATED)
async def create_dataset(body: DatasetCreate, caller: CurrentUser, db: DbSession):
    return await datasets.create_dataset(db, caller.user_id, body)


@router.post("/{dataset_id}/update", response_model=DatasetResponse)
async def update_dataset(dataset_id: str, body: DatasetUpdate, caller: CurrentUser, db: DbSession):
    return await datasets.update_dataset(db, dataset_id, caller.user_id, body)


@router.post("/{dataset_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_dataset(dataset_id: str, caller: CurrentUser, db: DbSession) -> None:
    """Delete a dataset and all its documents."""
    await datasets.delete_dataset(db, dataset_id, caller.user_id)


# -- Documents -----------------------------------------------------------------


@router.get("/{dataset_id}/documents/list", response_model=PageResponse[DocumentResponse])
async def list_documents(dataset_id: str, caller: CurrentUser, page: Paging, db: DbSession):
    return await datasets.list_documents(db, dataset_id, caller.user_id, page)


@router.post("/{dataset_id}/documents/create", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(dataset_id: str, body: DocumentCreate, caller: CurrentUser, db: DbSession):
    return await datasets.create_document(db, dataset_id, caller.user_id, body)


@router.get("/documents/{document_id}/get", response_model=DocumentResponse)
async def get_document(document_id: str, caller: CurrentUser, db: DbSession):
    return await datasets.get_document(db, document_id, caller.user_id)


@router.post("/documents/{document_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(document_id: str, caller: CurrentUser, db: DbSession) -> None:
    await datasets.delete_document(db, document_id, caller.user_id)
