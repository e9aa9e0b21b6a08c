"""FastAPI application - main entry point."""
from functools import lru_cache
import logging

from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from config import settings
from exceptions import BookNotLinkedError, GroupNotFoundError, ProviderError
from models import Book, Group
from repository import GroupRepository, build_repository
from schemas import (
    BookSchema, BookListResponse,
    GroupSchema, GroupListResponse,
    LastReadUpdate, DownloadStatus,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Underground Reader API",
    description="Chapter group cache synchronized with the underground and web novel providers",
    version="1.0.0",
)


@lru_cache
def get_repository() -> GroupRepository:
    """Process-wide repository backed by the configured database."""
    return build_repository()


def _require_book(repository: GroupRepository, book_id: int) -> Book:
    book = repository.books.get_by_id(book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


def _require_group(repository: GroupRepository, link: str) -> Group:
    group = repository.get_group_by_link(link).current()
    if group is None:
        raise GroupNotFoundError(link)
    return group


# ============================================================================
# Error mapping
# ============================================================================

@app.exception_handler(GroupNotFoundError)
async def group_not_found_handler(request: Request, exc: GroupNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(BookNotLinkedError)
async def book_not_linked_handler(request: Request, exc: BookNotLinkedError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    logger.error(f"Provider failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc), "source": exc.source})


# ============================================================================
# Book Endpoints
# ============================================================================

@app.get("/books", response_model=BookListResponse, tags=["Books"])
def list_books(repository: GroupRepository = Depends(get_repository)):
    """List all books in the library."""
    books = repository.books.list_all()
    return BookListResponse(
        items=[BookSchema.model_validate(b) for b in books],
        total=len(books)
    )


@app.get("/books/{book_id}", response_model=BookSchema, tags=["Books"])
def get_book(book_id: int, repository: GroupRepository = Depends(get_repository)):
    """Get a single book."""
    return BookSchema.model_validate(_require_book(repository, book_id))


@app.get("/books/{book_id}/groups", response_model=GroupListResponse, tags=["Groups"])
async def list_groups(
    book_id: int,
    refresh: bool = Query(False, description="Fetch from the providers even if groups are cached"),
    repository: GroupRepository = Depends(get_repository)
):
    """
    List the chapter groups of a book.

    Contacts the providers when nothing is cached yet or when refresh is set.
    """
    book = await run_in_threadpool(_require_book, repository, book_id)

    live = await repository.get_groups(book, refresh=refresh)
    groups = await run_in_threadpool(live.current)

    return GroupListResponse(
        items=[GroupSchema.model_validate(g) for g in groups],
        total=len(groups)
    )


# ============================================================================
# Group Endpoints
# ============================================================================

@app.get("/groups", response_model=GroupSchema, tags=["Groups"])
def get_group(
    link: str = Query(..., description="Group link"),
    repository: GroupRepository = Depends(get_repository)
):
    """Get a chapter group by its link."""
    return GroupSchema.model_validate(_require_group(repository, link))


@app.get("/groups/downloaded", response_model=DownloadStatus, tags=["Groups"])
def get_download_status(
    link: str = Query(..., description="Group link"),
    repository: GroupRepository = Depends(get_repository)
):
    """Whether every chapter of a group has been downloaded."""
    group = _require_group(repository, link)
    return DownloadStatus(link=group.link, downloaded=repository.is_downloaded(group))


@app.put("/groups/last-read", response_model=GroupSchema, tags=["Groups"])
def update_last_read(
    request: LastReadUpdate,
    repository: GroupRepository = Depends(get_repository)
):
    """Move the last-read marker of a group."""
    group = _require_group(repository, request.link)
    repository.update_last_read(group, request.last_read)

    logger.info(f"Group {group.link} marked read up to {request.last_read}")

    return GroupSchema.model_validate(_require_group(repository, request.link))


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "underground-reader"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
