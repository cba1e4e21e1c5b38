from fastapi import APIRouter

from library_api.api import books

router = APIRouter()

router.include_router(books.router, prefix="/books", tags=["books"])
