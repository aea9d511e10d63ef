"""Dataset and document records.

Only the records are managed here; document contents, chunking and
embeddings live in external services keyed by the ids stored in metadata.
"""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from tavern.api.db.engine import transaction
from tavern.api.db.tables import Dataset, Document
from tavern.api.errors import NotFoundError
from tavern.api.guard import verify_membership
from tavern.api.models.api import DatasetCreate, DatasetUpdate, DocumentCreate
from tavern.api.models.metadata import merge_metadata
from tavern.api.pagination import Page, PageParams, paginate


async def get_dataset(db: AsyncSession, dataset_id: str, user_id: str) -> Dataset:
    dataset = await db.get(Dataset, dataset_id)
    if dataset is None:
        raise NotFoundError(f"Dataset with id {dataset_id} not found")
    await verify_membership(db, dataset.workspace_id, user_id)
    return dataset


async def list_datasets(db: AsyncSession, workspace_id: str, user_id: str, params: PageParams) -> Page[Dataset]:
    await verify_membership(db, workspace_id, user_id)
    stmt = select(Dataset).where(Dataset.workspace_id == workspace_id)
    return await paginate(db, stmt, key=Dataset.id, params=params)


async def create_dataset(db: AsyncSession, user_id: str, body: DatasetCreate) -> Dataset:
    async with transaction(db):
        await verify_membership(db, body.workspace_id, user_id)
        dataset = Dataset(workspace_id=body.workspace_id, name=body.name, metadata_=body.metadata)
        db.add(dataset)
        await db.flush()
    await db.refresh(dataset)
    return dataset


async def update_dataset(db: AsyncSession, dataset_id: str, user_id: str, body: DatasetUpdate) -> Dataset:
    changes = body.model_dump(exclude_unset=True)
    async with transaction(db):
        dataset = await get_dataset(db, dataset_id, user_id)
        if changes.get("name") is not None:
            dataset.name = changes["name"]
        if "metadata" in changes:
            dataset.metadata_ = merge_metadata(dataset.metadata_, changes["metadata"])
    await db.refresh(dataset)
    return dataset


async def delete_dataset(db: AsyncSession, dataset_id: str, user_id: str) -> None:
    """Delete a dataset; its documents go with it."""
    async with transaction(db):
        await get_dataset(db, dataset_id, user_id)
        await db.execute(delete(Document).where(Document.dataset_id == dataset_id))
        await db.execute(delete(Dataset).where(Dataset.id == dataset_id))


# -- Documents -----------------------------------------------------------------


async def get_document(db: AsyncSession, document_id: str, user_id: str) -> Document:
    document = await db.get(Document, document_id)
    if document is None:
        raise NotFoundError(f"Document with id {document_id} not found")
    await verify_membership(db, document.workspace_id, user_id)
    return document


async def list_documents(db: AsyncSession, dataset_id: str, user_id: str, params: PageParams) -> Page[Document]:
    await get_dataset(db, dataset_id, user_id)
    stmt = select(Document).where(Document.dataset_id == dataset_id)
    return await paginate(db, stmt, key=Document.id, params=params)


async def create_document(db: AsyncSession, dataset_id: str, user_id: str, body: DocumentCreate) -> Document:
    async with transaction(db):
        dataset = await get_dataset(db, dataset_id, user_id)
        document = Document(
            workspace_id=dataset.workspace_id,
            dataset_id=dataset.id,
            name=body.name,
            metadata_=body.metadata,
        )
        db.add(document)
        await db.flush()
    await db.refresh(document)
    return document


async def delete_document(db: AsyncSession, document_id: str, user_id: str) -> None:
    async with transaction(db):
        await get_document(db, document_id, user_id)
        await db.execute(delete(Document).where(Document.id == document_id))
